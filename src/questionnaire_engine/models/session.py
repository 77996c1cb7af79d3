"""Session-facing models — the contract between the engine and its callers.

These models describe what the engine hands to collaborators (persistence
payloads, navigation targets) and what it returns to the host UI (page
views, navigation capability flags, save results).  They carry no behaviour
beyond small derived properties.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel

from questionnaire_engine.constants import ROUTE_PREFIX

from .page import Page
from .question import Question


class SessionStatus(str, enum.Enum):
    """Lifecycle states for a questionnaire session.

    Transitions:
        active -> completed (completion persisted)
        active -> exited    (user left through the navigation guard)
    """

    ACTIVE = "active"
    COMPLETED = "completed"
    EXITED = "exited"


class NavigationOutcome(str, enum.Enum):
    """Result of a guarded navigation request."""

    NAVIGATED = "navigated"
    ABORTED = "aborted"      # save failed and the user declined to leave
    REJECTED = "rejected"    # another navigation was already in progress
    BLOCKED = "blocked"      # the navigation gate did not allow it


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

class SubmissionPayload(BaseModel):
    """What a persistence backend receives on save/complete.

    ``submission_data`` maps question ids to the stored answer records
    (``{question_id, value, page_id, answered_at}``).  The submission token
    identifies the submission, so saving the same payload twice is an
    idempotent upsert.
    """

    submission_token: str
    template_id: str
    submission_data: dict[str, dict[str, Any]]
    completion_percentage: int
    time_spent_seconds: int
    current_page: int
    is_complete: bool = False


class SaveResult(BaseModel):
    """Outcome of one save attempt."""

    ok: bool
    reason: Optional[str] = None
    # True when nothing was sent because the session was already clean
    skipped: bool = False
    saved_at: Optional[datetime] = None

    @classmethod
    def success(cls) -> "SaveResult":
        return cls(ok=True, saved_at=datetime.now(timezone.utc))

    @classmethod
    def failure(cls, reason: str) -> "SaveResult":
        return cls(ok=False, reason=reason)

    @classmethod
    def clean(cls) -> "SaveResult":
        return cls(ok=True, skipped=True)


# ---------------------------------------------------------------------------
# Navigation
# ---------------------------------------------------------------------------

class NavigationState(BaseModel):
    """Per-direction capability flags for the current page."""

    can_go_next: bool
    can_go_previous: bool
    is_last_page: bool
    # Live required questions that are still unanswered or invalid
    blocking_question_ids: list[str] = []


class NavigationTarget(BaseModel):
    """Where a guarded navigation wants to go."""

    kind: Literal["page", "complete", "exit", "intro"]
    template_id: str
    page_number: Optional[int] = None

    @property
    def path(self) -> str:
        """Host route for this target."""
        if self.kind == "page":
            return f"{ROUTE_PREFIX}/{self.template_id}/{self.page_number}"
        if self.kind == "complete":
            return f"{ROUTE_PREFIX}/{self.template_id}/complete"
        if self.kind == "intro":
            return f"{ROUTE_PREFIX}/{self.template_id}"
        return ROUTE_PREFIX


# ---------------------------------------------------------------------------
# Views for the host UI
# ---------------------------------------------------------------------------

class QuestionView(BaseModel):
    """Everything a renderer needs for one live question."""

    question: Question
    value: Any = None
    error: Optional[str] = None


class PageView(BaseModel):
    """A snapshot of one page under the current answer state."""

    page: Page
    page_index: int
    total_pages: int
    questions: list[QuestionView]
    navigation: NavigationState
    show_validation: bool
    errors: dict[str, str]
    completion_percentage: float
    time_spent_minutes: int
    estimated_minutes_remaining: Optional[float] = None
    is_dirty: bool
    last_saved_at: Optional[datetime] = None


class SessionInfo(BaseModel):
    """Public view of session state."""

    session_id: str
    submission_token: str
    template_id: str
    status: SessionStatus
    current_page: int
    total_pages: int
    answered_count: int
    is_dirty: bool
    completion_percentage: float
    started_at: datetime
    last_saved_at: Optional[datetime] = None
