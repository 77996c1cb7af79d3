"""QuestionnaireSession tests: answer store, dirty tracking, completion,
time accounting and the save/complete/exit lifecycle.

Persistence is the in-memory RecordingPersistence from tests/helpers; the
clock is a FakeClock so time assertions are exact.
"""

import asyncio
import re

import pytest

from helpers.builders import make_template, raw_q
from questionnaire_engine.config import EngineSettings
from questionnaire_engine.errors import PersistenceError
from questionnaire_engine.models import ScalarAnswer, SessionStatus, Template
from questionnaire_engine.session import QuestionnaireSession, new_submission_token


def _branching_template():
    """``b`` shows only when ``a`` is "Yes"; ``c`` is always visible."""
    return make_template([
        raw_q("a", "single_choice", options=["Yes", "No"]),
        raw_q("b", conditional_logic={"show_if": [
            {"question_id": "a", "operator": "equals", "value": "Yes"},
        ]}),
        raw_q("c"),
    ])


class TestAnswers:
    def test_update_marks_dirty_and_stores(self, session):
        assert session.is_dirty is False
        assert session.update_answer("full_name", "Ann") is True
        assert session.is_dirty is True
        assert session.get_answer("full_name") == ScalarAnswer(value="Ann")
        assert session.get_record("full_name").page_id == "p1"
        assert session.revision == 1

    def test_unknown_question_raises(self, session):
        with pytest.raises(ValueError, match="Question not found"):
            session.update_answer("ghost", "x")

    def test_max_length_refused_without_dirtying(self, session):
        assert session.update_answer("full_name", "x" * 11) is False
        assert session.get_answer("full_name") is None
        assert session.is_dirty is False

    def test_remove_answer(self, session):
        session.update_answer("nickname", "A")
        session.mark_clean()
        session.remove_answer("nickname")
        assert session.get_answer("nickname") is None
        assert session.is_dirty is True

    def test_hidden_answers_retained_by_default(self, session):
        session.update_answer("has_allergies", "Yes")
        session.update_answer("allergy_list", "Peanuts")
        session.update_answer("has_allergies", "No")
        assert "allergy_list" in session.raw_answers()
        assert "allergy_list" not in [q.id for q in session.live_questions()]

        # Re-showing the question brings the retained answer back.
        session.update_answer("has_allergies", "Yes")
        assert "allergy_list" in [q.id for q in session.live_questions(1)]

    def test_clear_policy_drops_hidden_answers(self, template, persistence, clock):
        session = QuestionnaireSession(
            template, persistence,
            settings=EngineSettings(hidden_answer_policy="clear"), clock=clock,
        )
        session.update_answer("has_allergies", "Yes")
        session.update_answer("allergy_list", "Peanuts")
        session.update_answer("has_allergies", "No")
        assert session.get_answer("allergy_list") is None

    def test_subscribe_and_unsubscribe(self, session):
        events = []
        unsubscribe = session.subscribe(lambda event, s: events.append(event))
        session.update_answer("nickname", "A")
        unsubscribe()
        session.update_answer("nickname", "B")
        assert events == ["changed"]

    def test_failing_listener_does_not_break_edit(self, session):
        def broken(event, s):
            raise RuntimeError("listener bug")

        session.subscribe(broken)
        assert session.update_answer("nickname", "A") is True

    def test_template_without_pages_rejected(self, persistence):
        with pytest.raises(ValueError, match="no pages"):
            QuestionnaireSession(Template(id="empty"), persistence)


class TestNavigationBookkeeping:
    def test_set_current_page_tracks_visits(self, session):
        session.set_current_page(2)
        assert session.current_page == 2
        assert session.visited_pages == [1, 2]

    def test_unknown_page_raises(self, session):
        with pytest.raises(ValueError):
            session.set_current_page(9)

    def test_can_navigate_to_next_or_visited(self, session):
        assert session.can_navigate_to_page(2) is True
        assert session.can_navigate_to_page(3) is False

    def test_set_total_pages_validates(self, session):
        with pytest.raises(ValueError):
            session.set_total_pages(0)


class TestCompletion:
    def test_percentage_over_live_questions(self, persistence, clock):
        session = QuestionnaireSession(_branching_template(), persistence, clock=clock)
        assert session.get_completion_percentage() == 0.0

        session.update_answer("a", "No")
        assert session.get_completion_percentage() == 50.0

        session.update_answer("a", "Yes")
        session.update_answer("b", "detail")
        assert session.get_completion_percentage() == pytest.approx(200 / 3)

    def test_hiding_unanswered_question_raises_percentage(self, persistence, clock):
        template = make_template([
            raw_q("a", "single_choice", options=["Show", "Hide"]),
            raw_q("b", conditional_logic={"show_if": [
                {"question_id": "a", "operator": "equals", "value": "Show"},
            ]}),
            raw_q("c"),
            raw_q("d"),
        ])
        session = QuestionnaireSession(template, persistence, clock=clock)
        session.update_answer("a", "Show")
        session.update_answer("c", "x")
        assert session.get_completion_percentage() == 50.0

        session.update_answer("a", "Hide")
        assert session.get_completion_percentage() == pytest.approx(66.67, abs=0.01)

    def test_empty_answers_do_not_count(self, persistence, clock):
        session = QuestionnaireSession(_branching_template(), persistence, clock=clock)
        session.update_answer("c", "")
        assert session.get_completion_percentage() == 0.0

    def test_payload_rounds_percentage(self, persistence, clock):
        session = QuestionnaireSession(_branching_template(), persistence, clock=clock)
        session.update_answer("a", "Yes")
        session.update_answer("b", "detail")
        payload = session.build_payload()
        assert payload.completion_percentage == 67
        assert payload.submission_data["b"]["value"] == "detail"
        assert session.build_payload(is_complete=True).completion_percentage == 100


class TestTime:
    def test_time_spent(self, session, clock):
        clock.advance(125)
        assert session.get_time_spent_seconds() == 125
        assert session.get_time_spent_minutes() == 2

    def test_estimate_counts_down_then_disappears(self, session, clock):
        # two pages at 2.5 minutes each
        assert session.estimated_minutes_remaining() == 5.0
        clock.advance(120)
        assert session.estimated_minutes_remaining() == 3.0
        clock.advance(180)
        assert session.estimated_minutes_remaining() is None


class TestSaveProgress:
    @pytest.mark.asyncio
    async def test_clean_session_skips_backend(self, session, persistence):
        result = await session.save_progress()
        assert result.ok and result.skipped
        assert persistence.saves == []

    @pytest.mark.asyncio
    async def test_save_clears_dirty_and_is_idempotent(self, session, persistence):
        session.update_answer("full_name", "Ann")
        first = await session.save_progress()
        second = await session.save_progress()
        assert first.ok and not first.skipped
        assert second.skipped
        assert len(persistence.saves) == 1
        assert session.is_dirty is False
        assert session.last_saved_at is not None

    @pytest.mark.asyncio
    async def test_edit_during_save_stays_dirty(self, session, persistence):
        session.update_answer("full_name", "Ann")
        persistence.hold()
        task = asyncio.create_task(session.save_progress())
        await asyncio.sleep(0)
        await asyncio.sleep(0)

        session.update_answer("nickname", "A")
        persistence.release()
        result = await task

        assert result.ok
        assert session.is_dirty is True
        assert "nickname" not in persistence.saves[0].submission_data

        await session.save_progress()
        assert session.is_dirty is False
        assert "nickname" in persistence.saves[1].submission_data

    @pytest.mark.asyncio
    async def test_concurrent_saves_are_serialized(self, session, persistence):
        session.update_answer("full_name", "Ann")
        persistence.hold()
        first = asyncio.create_task(session.save_progress())
        await asyncio.sleep(0)
        session.update_answer("nickname", "A")
        second = asyncio.create_task(session.save_progress())
        await asyncio.sleep(0)
        persistence.release()
        await asyncio.gather(first, second)
        assert persistence.max_in_flight == 1
        assert len(persistence.saves) == 2

    @pytest.mark.asyncio
    async def test_failed_save_keeps_answers_dirty(self, session, persistence):
        session.update_answer("full_name", "Ann")
        persistence.fail_saves = 1
        result = await session.save_progress()
        assert result.ok is False
        assert result.reason == "Network error"
        assert session.is_dirty is True
        assert session.get_answer("full_name") == ScalarAnswer(value="Ann")

    @pytest.mark.asyncio
    async def test_backend_exception_becomes_failure(self, session, persistence):
        session.update_answer("full_name", "Ann")
        persistence.raise_on_save = RuntimeError("connection reset")
        result = await session.save_progress()
        assert result.ok is False
        assert result.reason == "connection reset"

    @pytest.mark.asyncio
    async def test_persistence_error_becomes_failure(self, session, persistence):
        session.update_answer("full_name", "Ann")
        persistence.raise_on_save = PersistenceError("disk full")
        result = await session.save_progress()
        assert (result.ok, result.reason) == (False, "disk full")


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_complete_closes_and_clears(self, session, persistence):
        events = []
        session.subscribe(lambda event, s: events.append(event))
        session.update_answer("full_name", "Ann")
        result = await session.complete()

        assert result.ok
        assert session.status == SessionStatus.COMPLETED
        assert session.raw_answers() == {}
        assert persistence.completes[0].is_complete is True
        assert persistence.completes[0].completion_percentage == 100
        assert events[-1] == "closed"

    @pytest.mark.asyncio
    async def test_failed_complete_keeps_session(self, session, persistence):
        session.update_answer("full_name", "Ann")
        persistence.complete_fails = True
        with pytest.raises(PersistenceError, match="Service unavailable"):
            await session.complete()
        assert session.is_active
        assert session.get_answer("full_name") is not None

    @pytest.mark.asyncio
    async def test_second_complete_waiting_on_first_is_refused(self, session, persistence):
        session.update_answer("full_name", "Ann")
        persistence.hold()
        first = asyncio.create_task(session.complete())
        await asyncio.sleep(0)
        second = asyncio.create_task(session.complete())
        await asyncio.sleep(0)

        persistence.release()
        await first
        with pytest.raises(ValueError, match="completed"):
            await second
        assert len(persistence.completes) == 1
        assert persistence.completes[0].submission_data["full_name"]["value"] == "Ann"

    def test_exit_clean_clears_answers(self, session):
        session.update_answer("full_name", "Ann")
        session.mark_clean()
        session.exit()
        assert session.status == SessionStatus.EXITED
        assert session.raw_answers() == {}

    @pytest.mark.asyncio
    async def test_exit_dirty_keeps_answers_until_saved(self, session, persistence):
        session.update_answer("full_name", "Ann")
        session.exit()
        assert session.raw_answers() == {"full_name": "Ann"}
        with pytest.raises(ValueError):
            session.update_answer("nickname", "A")

        result = await session.save_progress()
        assert result.ok
        assert persistence.saves[0].submission_data["full_name"]["value"] == "Ann"
        assert session.raw_answers() == {}

    def test_discard_drops_unsaved_answers(self, session):
        session.update_answer("full_name", "Ann")
        session.exit()
        session.discard()
        assert session.raw_answers() == {}
        assert session.is_dirty is False


class TestRestore:
    def test_restore_records_and_bare_values(self, session):
        session.restore(
            {
                "full_name": {
                    "question_id": "full_name",
                    "value": "Ann",
                    "page_id": "p1",
                    "answered_at": "2024-01-01T00:00:00Z",
                },
                "nickname": "Annie",
                "removed_question": "x",
            },
            current_page=2,
            time_spent_seconds=60,
        )
        assert session.raw_answers() == {"full_name": "Ann", "nickname": "Annie"}
        assert session.get_record("full_name").answered_at.year == 2024
        assert session.is_dirty is False
        assert session.current_page == 2
        assert session.visited_pages == [1, 2]
        assert session.get_time_spent_seconds() == 60

    def test_bad_timestamp_keeps_answer(self, session, caplog):
        with caplog.at_level("WARNING"):
            session.restore({
                "full_name": {"question_id": "full_name", "value": "Ann", "answered_at": "yesterday"},
                "nickname": {"question_id": "nickname", "value": "Annie", "answered_at": "2024-01-01T00:00:00Z"},
            })
        assert session.raw_answers() == {"full_name": "Ann", "nickname": "Annie"}
        assert session.get_record("full_name").answered_at is not None
        assert session.get_record("nickname").answered_at.year == 2024
        assert "Bad answered_at for full_name" in caplog.text


def test_submission_token_format():
    token = new_submission_token()
    assert re.fullmatch(r"sub_\d+_[a-z0-9]{13}", token)
    assert new_submission_token() != token
