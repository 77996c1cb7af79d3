"""Visibility resolution tests — operators, AND/OR groups, cascading hides
and fail-closed handling of unknown references."""

import logging

import pytest

from helpers.builders import make_template, q, raw_q
from questionnaire_engine.models import ChoiceWithOtherAnswer, LogicCondition, MultiValueAnswer, ScalarAnswer
from questionnaire_engine.visibility import VisibilityResolver, dependent_questions, resolve_visible


def _cond(qid, operator, value=None):
    return {"question_id": qid, "operator": operator, "value": value}


def _shown_if(qid, *conditions, operator="AND"):
    return q(qid, conditional_logic={"show_if": list(conditions), "operator": operator})


class TestResolveVisible:
    def test_questions_without_logic_always_visible(self):
        questions = [q("a"), q("b")]
        assert resolve_visible(questions, {}) == questions

    def test_order_preserved_and_deterministic(self):
        questions = [q("a"), _shown_if("b", _cond("a", "equals", "x")), q("c")]
        answers = {"a": "x"}
        first = [x.id for x in resolve_visible(questions, answers)]
        second = [x.id for x in resolve_visible(questions, answers)]
        assert first == second == ["a", "b", "c"]

    def test_hidden_when_condition_fails(self):
        questions = [q("a"), _shown_if("b", _cond("a", "equals", "x"))]
        assert [x.id for x in resolve_visible(questions, {"a": "y"})] == ["a"]

    def test_hide_if(self):
        questions = [q("a"), q("b", conditional_logic={"hide_if": [_cond("a", "equals", "No")]})]
        assert [x.id for x in resolve_visible(questions, {"a": "No"})] == ["a"]
        assert [x.id for x in resolve_visible(questions, {"a": "Yes"})] == ["a", "b"]

    def test_or_group(self):
        questions = [q("a"), _shown_if("b", _cond("a", "equals", "1"), _cond("a", "equals", "2"), operator="OR")]
        assert len(resolve_visible(questions, {"a": "2"})) == 2
        assert len(resolve_visible(questions, {"a": "3"})) == 1

    def test_accepts_tagged_answers(self):
        questions = [q("a"), _shown_if("b", _cond("a", "equals", "x"))]
        assert len(resolve_visible(questions, {"a": ScalarAnswer(value="x")})) == 2

    def test_cascading_hide_ignores_hidden_answers(self):
        questions = [
            q("a"),
            _shown_if("b", _cond("a", "equals", "yes")),
            _shown_if("c", _cond("b", "is_not_empty")),
        ]
        # b still has a stored answer, but b itself is hidden
        live = resolve_visible(questions, {"a": "no", "b": "kept"})
        assert [x.id for x in live] == ["a"]

    def test_unknown_reference_fails_closed(self, caplog):
        questions = [q("a"), _shown_if("b", _cond("ghost", "is_empty"))]
        with caplog.at_level(logging.WARNING):
            live = resolve_visible(questions, {}, known_ids={"a", "b"})
        assert [x.id for x in live] == ["a"]
        assert "ghost" in caplog.text


class TestOperators:
    @pytest.mark.parametrize(
        "op, actual, expected, result",
        [
            ("equals", "a", "a", True),
            ("equals", ["a", "b"], "b", True),
            ("not_equals", "a", "b", True),
            ("not_equals", ["a"], "a", False),
            ("contains", "Severe Pain", "pain", True),
            ("contains", ["x", "Yellow"], "yell", True),
            ("greater_than", "7", 5, True),
            ("greater_than", "abc", 5, False),
            ("less_than", 3, 5, True),
            ("is_empty", None, None, True),
            ("is_empty", [], None, True),
            ("is_not_empty", "x", None, True),
            ("in", "b", ["a", "b"], True),
            ("not_in", ["c"], ["a", "b"], True),
        ],
    )
    def test_compare(self, op, actual, expected, result):
        assert VisibilityResolver._compare(op, actual, expected) is result

    def test_unknown_operator_hides_question(self, caplog):
        template = make_template([
            raw_q("a"),
            raw_q("b", conditional_logic={"show_if": [_cond("a", "matches", "x")]}),
            raw_q("c", conditional_logic={"hide_if": [_cond("a", "matches", "x")]}),
        ])
        with caplog.at_level(logging.WARNING):
            live = resolve_visible(template.all_questions(), {"a": "x"})
        # show_if never holds; hide_if never fires
        assert [x.id for x in live] == ["a", "c"]
        assert "Unknown condition operator: matches" in caplog.text

    def test_other_choice_compares_by_value(self):
        resolver = VisibilityResolver()
        cond = LogicCondition(question_id="a", operator="equals", value="Other")
        answers = {"a": ChoiceWithOtherAnswer(selected=["Other"], other_text="x")}
        assert resolver._eval_condition(cond, answers) is True

    def test_multi_value_membership(self):
        resolver = VisibilityResolver()
        cond = LogicCondition(question_id="a", operator="equals", value="B")
        assert resolver._eval_condition(cond, {"a": MultiValueAnswer(values=["A", "B"])}) is True


class TestDependentQuestions:
    def test_lists_referencing_questions(self):
        questions = [q("a"), _shown_if("b", _cond("a", "equals", "x")), q("c")]
        assert [x.id for x in dependent_questions("a", questions)] == ["b"]
