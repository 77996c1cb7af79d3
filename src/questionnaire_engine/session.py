"""QuestionnaireSession — the answer store for one questionnaire fill-out.

One instance per in-progress submission; nothing is process-global, so any
number of sessions can live side by side.  Every component (visibility,
validation, gate, autosave, guard) receives the session explicitly.

Lifecycle::

    create -> update_answer* / set_current_page* / save_progress* ->
        complete()  answers persisted as final, then cleared
        exit()      clean: answers cleared
                    dirty: answers kept (still saveable) until a successful
                           save or discard()
        discard()   answers dropped without saving

Mutations are synchronous and applied in call order.  ``save_progress`` is
the only coroutine that touches persistence; calls are serialized by an
``asyncio.Lock`` so the backend sees saves in invocation order, one at a
time.  The dirty flag is cleared only when no edit happened while the save
was in flight (tracked through ``revision``), so edits made during a slow
save are never reported as saved.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import string
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional

from questionnaire_engine.config import EngineSettings
from questionnaire_engine.constants import MINUTES_PER_PAGE_ESTIMATE
from questionnaire_engine.errors import PersistenceError
from questionnaire_engine.interfaces import PersistenceBackend
from questionnaire_engine.models import (
    AnswerRecord,
    AnswerValue,
    Page,
    Question,
    SaveResult,
    ScalarAnswer,
    SessionInfo,
    SessionStatus,
    SubmissionPayload,
    Template,
    TextQuestion,
    coerce_answer,
)
from questionnaire_engine.visibility import VisibilityResolver

logger = logging.getLogger(__name__)

SessionListener = Callable[[str, "QuestionnaireSession"], None]

_TOKEN_ALPHABET = string.ascii_lowercase + string.digits


def new_submission_token() -> str:
    """``sub_<epoch ms>_<13 random base36 chars>``."""
    suffix = "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(13))
    return f"sub_{int(time.time() * 1000)}_{suffix}"


class QuestionnaireSession:
    """Mutable state of one questionnaire fill-out.

    Args:
        template: the loaded template (read-only)
        persistence: backend used by ``save_progress`` and ``complete``
        settings: engine settings (hidden-answer policy)
        clock: monotonic clock in seconds, injectable for tests
        submission_token: token of an existing submission when resuming
        session_id: explicit id, defaults to a random UUID
    """

    def __init__(
        self,
        template: Template,
        persistence: PersistenceBackend,
        *,
        settings: EngineSettings | None = None,
        clock: Callable[[], float] = time.monotonic,
        submission_token: str | None = None,
        session_id: str | None = None,
    ) -> None:
        if not template.pages:
            raise ValueError(f"Template {template.id} has no pages")
        self.template = template
        self._persistence = persistence
        self._settings = settings or EngineSettings()
        self._clock = clock
        self._resolver = VisibilityResolver(template.question_ids())

        self.session_id = session_id or str(uuid.uuid4())
        self.submission_token = submission_token or new_submission_token()
        self.started_at = datetime.now(timezone.utc)
        self._started = clock()
        # Time already spent in earlier visits of a resumed submission
        self._prior_seconds = 0

        self._answers: dict[str, AnswerRecord] = {}
        self._dirty = False
        self._revision = 0
        self._status = SessionStatus.ACTIVE
        self._current_page = template.pages[0].page_number
        self._total_pages = template.total_pages
        self._visited: set[int] = {self._current_page}

        self._save_lock = asyncio.Lock()
        self._listeners: list[SessionListener] = []
        self.last_saved_at: Optional[datetime] = None
        self.last_save_result: Optional[SaveResult] = None

        logger.info(
            "Session created: id=%s token=%s template=%s",
            self.session_id, self.submission_token, template.id,
        )

    # ==================================================================
    # State accessors
    # ==================================================================

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def is_active(self) -> bool:
        return self._status == SessionStatus.ACTIVE

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    @property
    def revision(self) -> int:
        """Incremented by every accepted edit."""
        return self._revision

    @property
    def current_page(self) -> int:
        return self._current_page

    @property
    def total_pages(self) -> int:
        return self._total_pages

    @property
    def visited_pages(self) -> list[int]:
        return sorted(self._visited)

    @property
    def current_page_model(self) -> Page:
        return self.template.get_page(self._current_page)

    def get_answer(self, question_id: str) -> AnswerValue | None:
        record = self._answers.get(question_id)
        return record.value if record is not None else None

    def get_record(self, question_id: str) -> AnswerRecord | None:
        return self._answers.get(question_id)

    def answer_values(self) -> dict[str, AnswerValue]:
        """Stored answers keyed by question id (hidden ones included)."""
        return {qid: rec.value for qid, rec in self._answers.items()}

    def raw_answers(self) -> dict[str, Any]:
        """Stored answers in their plain JSON shape."""
        return {qid: rec.value.to_raw() for qid, rec in self._answers.items()}

    # ==================================================================
    # Answer mutation
    # ==================================================================

    def update_answer(self, question_id: str, value: Any, page_id: str | None = None) -> bool:
        """Set or overwrite the answer to *question_id* and mark dirty.

        Returns False when the edit was refused because it would exceed the
        text question's ``max_length``; the stored value is then unchanged
        and the session is not marked dirty.

        Raises ValueError for unknown question ids, unsupported value shapes
        and edits after the session was closed.
        """
        self._require_active()
        question = self._require_question(question_id)
        answer = coerce_answer(question, value)

        if self._exceeds_max_length(question, answer):
            logger.debug("Edit to %s refused: exceeds max_length", question_id)
            return False

        self._answers[question_id] = AnswerRecord(
            question_id=question_id,
            value=answer,
            page_id=page_id or question.page_id,
            answered_at=datetime.now(timezone.utc),
        )
        self._touch()
        if self._settings.hidden_answer_policy == "clear":
            self._clear_hidden_answers(keep=question_id)
        self._emit("changed")
        return True

    def remove_answer(self, question_id: str) -> None:
        """Drop the answer to *question_id* (no-op if unanswered)."""
        self._require_active()
        self._require_question(question_id)
        if self._answers.pop(question_id, None) is not None:
            self._touch()
            self._emit("changed")

    def mark_dirty(self) -> None:
        self._dirty = True
        self._emit("changed")

    def mark_clean(self) -> None:
        self._dirty = False

    def restore(
        self,
        submission_data: Mapping[str, Any],
        *,
        current_page: int | None = None,
        time_spent_seconds: int = 0,
    ) -> None:
        """Load answers of a previously saved submission.

        Entries may be full answer records (``{"value": ..., "page_id": ...}``)
        or bare values.  Entries for questions that no longer exist in the
        template are skipped.  Restoring does not mark the session dirty.
        """
        self._require_active()
        for question_id, entry in submission_data.items():
            question = self.template.find_question(question_id)
            if question is None:
                logger.warning("Skipping saved answer for unknown question %s", question_id)
                continue
            is_record = isinstance(entry, dict) and "question_id" in entry and "value" in entry
            raw = entry["value"] if is_record else entry
            try:
                answer = coerce_answer(question, raw)
            except ValueError as exc:
                logger.warning("Skipping saved answer for %s: %s", question_id, exc)
                continue
            answered_at = datetime.now(timezone.utc)
            if is_record and entry.get("answered_at"):
                try:
                    answered_at = datetime.fromisoformat(str(entry["answered_at"]).replace("Z", "+00:00"))
                except ValueError:
                    logger.warning("Bad answered_at for %s: %r", question_id, entry["answered_at"])
            self._answers[question_id] = AnswerRecord(
                question_id=question_id,
                value=answer,
                page_id=(entry.get("page_id") if is_record else None) or question.page_id,
                answered_at=answered_at,
            )
        self._prior_seconds = max(0, int(time_spent_seconds))
        if current_page is not None:
            self.set_current_page(current_page)
            self._visited.update(
                p.page_number for p in self.template.pages if p.page_number <= current_page
            )

    # ==================================================================
    # Navigation bookkeeping (never triggers persistence)
    # ==================================================================

    def set_current_page(self, page_number: int) -> None:
        self.template.get_page(page_number)  # raises ValueError if unknown
        self._current_page = page_number
        self._visited.add(page_number)

    def set_total_pages(self, total: int) -> None:
        if total < 1:
            raise ValueError(f"total_pages must be at least 1, got {total}")
        self._total_pages = total

    def can_navigate_to_page(self, page_number: int) -> bool:
        """Visited pages and the page right after the current one."""
        try:
            index = self.template.page_index(page_number)
        except ValueError:
            return False
        current = self.template.page_index(self._current_page)
        return page_number in self._visited or index == current + 1

    # ==================================================================
    # Derived values
    # ==================================================================

    def live_questions(self, page_number: int | None = None) -> list[Question]:
        """Visible questions, template-wide or for one page."""
        live = self._resolver.resolve(self.template.all_questions(), self.answer_values())
        if page_number is None:
            return live
        page_ids = {q.id for q in self.template.get_page(page_number).questions}
        return [q for q in live if q.id in page_ids]

    def get_completion_percentage(self) -> float:
        """Answered live questions over all live questions, in [0, 100]."""
        live = self.live_questions()
        if not live:
            return 0.0
        answered = sum(
            1 for q in live
            if q.id in self._answers and not self._answers[q.id].value.is_empty()
        )
        return min(100.0, max(0.0, answered / len(live) * 100))

    def get_time_spent_seconds(self) -> int:
        return self._prior_seconds + max(0, int(self._clock() - self._started))

    def get_time_spent_minutes(self) -> int:
        return self.get_time_spent_seconds() // 60

    def estimated_minutes_remaining(self) -> float | None:
        """Rough estimate from a fixed time per page; None once exceeded."""
        estimated_total = self._total_pages * MINUTES_PER_PAGE_ESTIMATE
        spent = self.get_time_spent_minutes()
        if spent >= estimated_total:
            return None
        return max(0.0, estimated_total - spent)

    def build_payload(self, *, is_complete: bool = False) -> SubmissionPayload:
        return SubmissionPayload(
            submission_token=self.submission_token,
            template_id=self.template.id,
            submission_data={qid: rec.to_raw() for qid, rec in self._answers.items()},
            completion_percentage=100 if is_complete else round(self.get_completion_percentage()),
            time_spent_seconds=self.get_time_spent_seconds(),
            current_page=self._current_page,
            is_complete=is_complete,
        )

    def info(self) -> SessionInfo:
        return SessionInfo(
            session_id=self.session_id,
            submission_token=self.submission_token,
            template_id=self.template.id,
            status=self._status,
            current_page=self._current_page,
            total_pages=self._total_pages,
            answered_count=sum(1 for rec in self._answers.values() if not rec.value.is_empty()),
            is_dirty=self._dirty,
            completion_percentage=self.get_completion_percentage(),
            started_at=self.started_at,
            last_saved_at=self.last_saved_at,
        )

    # ==================================================================
    # Persistence
    # ==================================================================

    async def save_progress(self) -> SaveResult:
        """Persist the current answers as a draft.

        Idempotent: a clean session returns a skipped success without calling
        the backend.  Backend failures (returned or raised) come back as a
        failed ``SaveResult``; the answers stay in memory and dirty.
        """
        async with self._save_lock:
            if not self._dirty:
                return SaveResult.clean()

            revision = self._revision
            payload = self.build_payload()
            result = await self._call_backend(self._persistence.save, payload)

            if result.ok:
                if self._revision == revision:
                    self._dirty = False
                self.last_saved_at = result.saved_at or datetime.now(timezone.utc)
                logger.info(
                    "Draft saved: token=%s answers=%d completion=%d%%",
                    self.submission_token, len(payload.submission_data),
                    payload.completion_percentage,
                )
                # An exited session only kept its answers until this save.
                if self._status == SessionStatus.EXITED and not self._dirty:
                    self._answers.clear()
            else:
                logger.warning("Draft save failed: token=%s reason=%s", self.submission_token, result.reason)
            self.last_save_result = result
            return result

    async def complete(self) -> SaveResult:
        """Persist the final answers and close the session as completed.

        Raises PersistenceError when the completion could not be stored; the
        session then stays active with its answers intact.
        """
        self._require_active()
        async with self._save_lock:
            # A completion queued behind this lock may find the session closed
            self._require_active()
            payload = self.build_payload(is_complete=True)
            result = await self._call_backend(self._persistence.complete, payload)
            if not result.ok:
                raise PersistenceError(result.reason or "Failed to complete submission")

            self.last_saved_at = result.saved_at or datetime.now(timezone.utc)
            self.last_save_result = result
            self._dirty = False
            self._answers.clear()
            self._close(SessionStatus.COMPLETED)
            return result

    async def _call_backend(self, method, payload: SubmissionPayload) -> SaveResult:
        try:
            return await method(payload)
        except PersistenceError as exc:
            return SaveResult.failure(str(exc) or "Persistence error")
        except Exception as exc:
            logger.exception("Persistence backend raised for token=%s", self.submission_token)
            return SaveResult.failure(str(exc) or type(exc).__name__)

    # ==================================================================
    # Lifecycle
    # ==================================================================

    def exit(self) -> None:
        """Leave the questionnaire.

        Unsaved answers are kept in memory and can still be saved; a clean
        session drops its answers right away.
        """
        if not self.is_active:
            return
        if not self._dirty:
            self._answers.clear()
        self._close(SessionStatus.EXITED)

    def discard(self) -> None:
        """Drop all answers without saving and close the session."""
        self._answers.clear()
        self._dirty = False
        if self.is_active:
            self._close(SessionStatus.EXITED)

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register *listener* for ``changed`` / ``closed`` events.

        Returns a callable that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ==================================================================
    # Internal helpers
    # ==================================================================

    def _close(self, status: SessionStatus) -> None:
        self._status = status
        logger.info("Session closed: id=%s status=%s", self.session_id, status.value)
        self._emit("closed")

    def _touch(self) -> None:
        self._revision += 1
        self._dirty = True

    def _emit(self, event: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, self)
            except Exception:
                logger.exception("Session listener failed on %s", event)

    def _require_active(self) -> None:
        if not self.is_active:
            raise ValueError(f"Session {self.session_id} is {self._status.value}")

    def _require_question(self, question_id: str) -> Question:
        question = self.template.find_question(question_id)
        if question is None:
            raise ValueError(f"Question not found: {question_id}")
        return question

    @staticmethod
    def _exceeds_max_length(question: Question, answer: AnswerValue) -> bool:
        if not isinstance(question, TextQuestion) or not isinstance(answer, ScalarAnswer):
            return False
        limit = question.validation_rules.max_length
        return bool(limit) and isinstance(answer.value, str) and len(answer.value) > limit

    def _clear_hidden_answers(self, keep: str) -> None:
        live_ids = {q.id for q in self.live_questions()}
        hidden = [qid for qid in self._answers if qid not in live_ids and qid != keep]
        for qid in hidden:
            del self._answers[qid]
        if hidden:
            self._revision += 1
            logger.debug("Cleared answers of hidden questions: %s", hidden)
