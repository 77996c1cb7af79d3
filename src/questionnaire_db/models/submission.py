"""QuestionnaireSubmission ORM model — single row per submission.

Each row holds one fill-out of one template.  Answers live in a single JSON
column keyed by question id, so a draft save is one row upsert and resuming
a submission is one row read.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, CheckConstraint, DateTime, Integer, SmallInteger, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from questionnaire_db.models.base import Base
from questionnaire_db.models.enums import SubmissionStatus

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in local runs)
JsonColumn = JSON().with_variant(JSONB(), "postgresql")


class QuestionnaireSubmission(Base):
    """One row per submission, identified by its submission token."""

    __tablename__ = "questionnaire_submissions"

    # --- Primary key ---
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # --- Identity ---
    # Client-generated token ("sub_<ms>_<random>"); upserts key on it
    submission_token: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    template_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)

    # --- Lifecycle ---
    status: Mapped[SubmissionStatus] = mapped_column(
        # Store as the lowercase string value, not the Python name
        String(20),
        nullable=False,
        default=SubmissionStatus.IN_PROGRESS,
        index=True,
    )
    current_page: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=1)

    # --- Answers ---
    # Dict keyed by question id -> {"question_id", "value", "page_id", "answered_at"}
    submission_data: Mapped[dict] = mapped_column(JsonColumn, nullable=False, default=dict)

    # --- Progress ---
    completion_percentage: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=0)
    time_spent_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # --- Timestamps ---
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "completion_percentage BETWEEN 0 AND 100",
            name="ck_completion_range",
        ),
        # Completed submissions must record when they were completed
        CheckConstraint(
            "status != 'completed' OR completed_at IS NOT NULL",
            name="ck_completed_has_timestamp",
        ),
    )

    @property
    def is_complete(self) -> bool:
        return self.status == SubmissionStatus.COMPLETED

    def __repr__(self) -> str:
        return (
            f"<QuestionnaireSubmission(token={self.submission_token!r}, "
            f"template={self.template_id!r}, status={self.status!r}, "
            f"completion={self.completion_percentage})>"
        )
