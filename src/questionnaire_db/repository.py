"""Token-keyed reads and writes of QuestionnaireSubmission rows.

Methods take the caller's ``AsyncSession`` and only flush; committing is
left to the caller.

Writes are keyed by submission token, which makes them idempotent: saving
the same draft twice updates the same row to the same values.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from questionnaire_db.models.enums import SubmissionStatus
from questionnaire_db.models.submission import QuestionnaireSubmission

logger = logging.getLogger(__name__)


class SubmissionRepository:
    """Async read/write operations on the ``questionnaire_submissions`` table."""

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get_by_token(
        self, db: AsyncSession, submission_token: str
    ) -> QuestionnaireSubmission | None:
        """Fetch a submission by its token."""
        stmt = select(QuestionnaireSubmission).where(
            QuestionnaireSubmission.submission_token == submission_token
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    async def save_progress(
        self,
        db: AsyncSession,
        *,
        submission_token: str,
        template_id: str,
        submission_data: dict[str, Any],
        completion_percentage: int,
        time_spent_seconds: int,
        current_page: int,
    ) -> QuestionnaireSubmission:
        """Insert or update the draft row for *submission_token*.

        Completed submissions are never overwritten by a late draft save;
        the stored row is returned unchanged.  The caller must
        ``await db.commit()`` to persist.
        """
        row = await self.get_by_token(db, submission_token)
        if row is None:
            row = QuestionnaireSubmission(
                submission_token=submission_token,
                template_id=template_id,
                status=SubmissionStatus.IN_PROGRESS,
            )
            db.add(row)
        elif row.status == SubmissionStatus.COMPLETED:
            logger.warning("Ignoring draft save for completed submission %s", submission_token)
            return row

        row.submission_data = dict(submission_data)
        row.completion_percentage = max(0, min(100, completion_percentage))
        row.time_spent_seconds = time_spent_seconds
        row.current_page = current_page
        row.updated_at = datetime.now(timezone.utc)
        await db.flush()
        return row

    async def complete(
        self,
        db: AsyncSession,
        *,
        submission_token: str,
        template_id: str,
        submission_data: dict[str, Any],
        time_spent_seconds: int,
        current_page: int,
    ) -> QuestionnaireSubmission:
        """Store the final answers and mark the submission completed.

        Completing an already completed submission is a no-op.  The caller
        must ``await db.commit()`` to persist.
        """
        row = await self.get_by_token(db, submission_token)
        if row is None:
            row = QuestionnaireSubmission(submission_token=submission_token, template_id=template_id)
            db.add(row)
        elif row.status == SubmissionStatus.COMPLETED:
            return row

        now = datetime.now(timezone.utc)
        row.submission_data = dict(submission_data)
        row.completion_percentage = 100
        row.time_spent_seconds = time_spent_seconds
        row.current_page = current_page
        row.status = SubmissionStatus.COMPLETED
        row.completed_at = now
        row.updated_at = now
        await db.flush()
        return row
