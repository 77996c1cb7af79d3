"""DatabasePersistence — PersistenceBackend on top of SubmissionRepository.

Each call opens its own ``AsyncSession`` from the factory and commits it,
so the engine's saves map one-to-one onto transactions.  Database errors
are rolled back and reported as failed ``SaveResult`` values; the engine
then keeps the answers dirty and falls back to its retry/confirmation
paths.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from questionnaire_db.repository import SubmissionRepository
from questionnaire_engine.interfaces import PersistenceBackend
from questionnaire_engine.models import SaveResult, SubmissionPayload

logger = logging.getLogger(__name__)


class DatabasePersistence(PersistenceBackend):
    """Stores submissions in the ``questionnaire_submissions`` table.

    Args:
        session_factory: async session factory, typically
            :func:`questionnaire_db.get_session_factory`
        repository: repository instance (injectable for tests)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        repository: SubmissionRepository | None = None,
    ) -> None:
        self._factory = session_factory
        self._repo = repository or SubmissionRepository()

    async def save(self, payload: SubmissionPayload) -> SaveResult:
        async with self._factory() as db:
            try:
                await self._repo.save_progress(
                    db,
                    submission_token=payload.submission_token,
                    template_id=payload.template_id,
                    submission_data=payload.submission_data,
                    completion_percentage=payload.completion_percentage,
                    time_spent_seconds=payload.time_spent_seconds,
                    current_page=payload.current_page,
                )
                await db.commit()
            except SQLAlchemyError as exc:
                await db.rollback()
                logger.warning("Draft save failed for %s: %s", payload.submission_token, exc)
                return SaveResult.failure("Database error while saving draft")
        return SaveResult.success()

    async def complete(self, payload: SubmissionPayload) -> SaveResult:
        async with self._factory() as db:
            try:
                await self._repo.complete(
                    db,
                    submission_token=payload.submission_token,
                    template_id=payload.template_id,
                    submission_data=payload.submission_data,
                    time_spent_seconds=payload.time_spent_seconds,
                    current_page=payload.current_page,
                )
                await db.commit()
            except SQLAlchemyError as exc:
                await db.rollback()
                logger.warning("Completion failed for %s: %s", payload.submission_token, exc)
                return SaveResult.failure("Database error while completing submission")
        logger.info("Submission completed: %s", payload.submission_token)
        return SaveResult.success()

    async def load_draft(self, submission_token: str) -> dict | None:
        """Saved state of a submission in the shape ``create_session`` resumes from.

        Returns None for unknown tokens and for completed submissions.
        """
        async with self._factory() as db:
            row = await self._repo.get_by_token(db, submission_token)
        if row is None or row.is_complete:
            return None
        return {
            "submission_token": row.submission_token,
            "template_id": row.template_id,
            "submission_data": row.submission_data,
            "current_page": row.current_page,
            "time_spent_seconds": row.time_spent_seconds,
        }
