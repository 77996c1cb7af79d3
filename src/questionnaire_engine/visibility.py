"""Visibility resolution — which questions are live under the current answers.

Each question may carry ``conditional_logic`` (``show_if`` / ``hide_if``
condition groups).  A question with no logic is always visible.  Resolution
is a pure function of (questions, answers): no state is kept between calls
and the result preserves authoring order.

Resolution walks the questions in order and ignores the answers of questions
already found hidden when evaluating later conditions.  Hidden answers are
kept in the store (retain-but-ignore) and take effect again once their
question becomes visible, so a hidden branch cannot keep its own dependants
alive through stale answers.

A condition that references an id outside ``known_ids`` is a template
authoring error.  The referencing question fails closed: it is hidden and a
warning is logged instead of raising.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Sequence

from questionnaire_engine.models.question import ConditionalLogic, LogicCondition, Question

logger = logging.getLogger(__name__)


def is_empty_value(value: Any) -> bool:
    """Engine-wide emptiness rule: None, "", empty list and empty dict."""
    if value is None or value == "":
        return True
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


def _comparable(value: Any) -> Any:
    """Reduce a stored answer to the plain value conditions compare against.

    Tagged answers are unwrapped via ``to_raw()``; ``{"value": ...}`` choice
    entries collapse to their value and file descriptors to their name.
    """
    if hasattr(value, "to_raw"):
        value = value.to_raw()
    if isinstance(value, dict):
        if "value" in value:
            return value["value"]
        if "name" in value:
            return value["name"]
        return value
    if isinstance(value, (list, tuple)):
        return [_comparable(v) for v in value]
    return value


class VisibilityResolver:
    """Evaluates show/hide conditions against answers.

    Args:
        known_ids: every question id of the template.  When given, conditions
            that reference other ids hide their question (fail closed).
            When ``None`` no reference check is made.
    """

    def __init__(self, known_ids: Iterable[str] | None = None) -> None:
        self._known_ids = frozenset(known_ids) if known_ids is not None else None

    def resolve(
        self, questions: Sequence[Question], answers: Mapping[str, Any]
    ) -> list[Question]:
        """Return the live subset of *questions*, in their given order."""
        effective = dict(answers)
        live: list[Question] = []
        for question in questions:
            if self.is_visible(question, effective):
                live.append(question)
            else:
                # Later conditions must not see a hidden question's answer.
                effective.pop(question.id, None)
        return live

    def is_visible(self, question: Question, answers: Mapping[str, Any]) -> bool:
        """Evaluate one question's conditional logic against *answers*."""
        logic = question.conditional_logic
        if logic is None:
            return True

        if self._known_ids is not None:
            missing = [qid for qid in logic.referenced_ids if qid not in self._known_ids]
            if missing:
                logger.warning(
                    "Question %s references unknown question(s) %s; hiding it",
                    question.id, missing,
                )
                return False

        if logic.show_if and not self._eval_group(logic.show_if, logic, answers):
            return False
        if logic.hide_if and self._eval_group(logic.hide_if, logic, answers):
            return False
        return True

    # ------------------------------------------------------------------
    # Condition evaluation
    # ------------------------------------------------------------------

    def _eval_group(
        self,
        conditions: list[LogicCondition],
        logic: ConditionalLogic,
        answers: Mapping[str, Any],
    ) -> bool:
        results = (self._eval_condition(c, answers) for c in conditions)
        if logic.operator == "OR":
            return any(results)
        return all(results)

    def _eval_condition(self, cond: LogicCondition, answers: Mapping[str, Any]) -> bool:
        """Evaluate a single condition; unanswered questions read as None."""
        actual = _comparable(answers.get(cond.question_id))
        return self._compare(cond.operator, actual, cond.value)

    @staticmethod
    def _compare(op: str, actual: Any, expected: Any) -> bool:
        """Apply *op* to an answer and the condition's expected value."""
        if op == "equals":
            if isinstance(actual, list):
                return expected in actual
            return actual == expected

        if op == "not_equals":
            if isinstance(actual, list):
                return expected not in actual
            return actual != expected

        if op == "contains":
            needle = str(expected).lower()
            if isinstance(actual, list):
                return any(needle in str(v).lower() for v in actual)
            return needle in str(actual if actual is not None else "").lower()

        if op in ("greater_than", "less_than"):
            try:
                a, e = float(actual), float(expected)
            except (TypeError, ValueError):
                return False
            return a > e if op == "greater_than" else a < e

        if op == "is_empty":
            return is_empty_value(actual)

        if op == "is_not_empty":
            return not is_empty_value(actual)

        if op in ("in", "not_in"):
            pool = expected if isinstance(expected, (list, tuple, set)) else [expected]
            if isinstance(actual, list):
                hit = any(v in pool for v in actual)
            else:
                hit = actual in pool
            return hit if op == "in" else not hit

        logger.warning("Unknown condition operator: %s", op)
        return False


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------

def resolve_visible(
    questions: Sequence[Question],
    answers: Mapping[str, Any],
    *,
    known_ids: Iterable[str] | None = None,
) -> list[Question]:
    """Ordered list of live questions; see :class:`VisibilityResolver`."""
    return VisibilityResolver(known_ids).resolve(questions, answers)


def dependent_questions(question_id: str, questions: Sequence[Question]) -> list[Question]:
    """Questions whose conditional logic references *question_id*."""
    return [
        q for q in questions
        if q.conditional_logic is not None and question_id in q.conditional_logic.referenced_ids
    ]
