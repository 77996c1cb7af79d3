"""Navigation guard — save before leaving, ask before losing work.

The decision itself is the pure function :func:`decide_navigation`.
:class:`NavigationGuard` is the thin adapter that gathers its inputs (dirty
flag, save result), asks the user when needed and calls the router.

Only one guarded navigation runs at a time.  A request arriving while
another is waiting for its save or confirmation is rejected (default) or
queued behind it, depending on ``reentrancy``.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Awaitable, Callable, Optional

from questionnaire_engine.config import DEFAULT_SAVE_FAILED_MESSAGE, DEFAULT_UNSAVED_MESSAGE, ReentrancyPolicy
from questionnaire_engine.interfaces import ConfirmationPrompt, Router
from questionnaire_engine.models import NavigationOutcome, NavigationTarget, SaveResult
from questionnaire_engine.session import QuestionnaireSession

logger = logging.getLogger(__name__)


class NavigationDecision(str, enum.Enum):
    PROCEED = "proceed"
    CONFIRM = "confirm"
    ABORT = "abort"


def decide_navigation(has_unsaved_changes: bool, save_result: Optional[SaveResult]) -> NavigationDecision:
    """Decide what to do with a navigation request.

    - nothing unsaved: proceed
    - unsaved and the save succeeded: proceed
    - unsaved and the save failed: ask the user
    - unsaved and no save was attempted: abort
    """
    if not has_unsaved_changes:
        return NavigationDecision.PROCEED
    if save_result is None:
        return NavigationDecision.ABORT
    if save_result.ok:
        return NavigationDecision.PROCEED
    return NavigationDecision.CONFIRM


class NavigationGuard:
    """Wraps route changes of one session.

    Args:
        session: the session whose unsaved changes are guarded
        router: performs the view transition
        confirmer: asks the user whether to leave after a failed save
        save: coroutine that saves the session, normally
            ``AutosaveCoordinator.save_now`` so guard saves never race an
            autosave; defaults to ``session.save_progress``
        reentrancy: ``"reject"`` or ``"queue"``
        save_failed_message: prompt shown when the save failed
        unsaved_message: warning returned by :meth:`leave_warning`
    """

    def __init__(
        self,
        session: QuestionnaireSession,
        router: Router,
        confirmer: ConfirmationPrompt,
        *,
        save: Optional[Callable[[], Awaitable[SaveResult]]] = None,
        reentrancy: ReentrancyPolicy = "reject",
        save_failed_message: str = DEFAULT_SAVE_FAILED_MESSAGE,
        unsaved_message: str = DEFAULT_UNSAVED_MESSAGE,
    ) -> None:
        self._session = session
        self._router = router
        self._confirmer = confirmer
        self._save = save or session.save_progress
        self._reentrancy = reentrancy
        self._save_failed_message = save_failed_message
        self._unsaved_message = unsaved_message
        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        """True while a guarded navigation is pending."""
        return self._lock.locked()

    def leave_warning(self) -> Optional[str]:
        """Message for an unguarded exit (closing the window), or None."""
        return self._unsaved_message if self._session.is_dirty else None

    async def navigate(
        self,
        target: NavigationTarget,
        *,
        on_commit: Optional[Callable[[], None]] = None,
    ) -> NavigationOutcome:
        """Navigate to *target* once unsaved changes are dealt with.

        ``on_commit`` runs right before the router is called, so state
        changes tied to the transition (current page, exit) only happen for
        navigations that actually proceed.
        """
        if self._rejects(target):
            return NavigationOutcome.REJECTED

        async with self._lock:
            has_unsaved = self._session.is_dirty
            result = await self._save() if has_unsaved else None
            decision = decide_navigation(has_unsaved, result)

            if decision == NavigationDecision.CONFIRM:
                if not await self._ask(self._save_failed_message):
                    logger.info("Navigation to %s aborted by user", target.path)
                    return NavigationOutcome.ABORTED
            elif decision == NavigationDecision.ABORT:
                return NavigationOutcome.ABORTED

            if on_commit is not None:
                on_commit()
            await self._router.navigate(target)
            return NavigationOutcome.NAVIGATED

    async def submit(
        self,
        target: NavigationTarget,
        complete: Callable[[], Awaitable[object]],
    ) -> NavigationOutcome:
        """Run *complete* and route to *target*, exclusive with other navigations.

        Completion stores every answer itself, so there is no draft save and
        no confirmation.  Exceptions from *complete* propagate and nothing is
        routed.  A submit that waited in the queue behind another one finds
        the session closed and returns ``rejected``.
        """
        if self._rejects(target):
            return NavigationOutcome.REJECTED

        async with self._lock:
            if not self._session.is_active:
                logger.warning("Submit to %s rejected: session is %s", target.path, self._session.status.value)
                return NavigationOutcome.REJECTED
            await complete()
            await self._router.navigate(target)
            return NavigationOutcome.NAVIGATED

    def _rejects(self, target: NavigationTarget) -> bool:
        if self._reentrancy == "reject" and self._lock.locked():
            logger.warning("Navigation to %s rejected: another navigation is pending", target.path)
            return True
        return False

    async def _ask(self, message: str) -> bool:
        try:
            return bool(await self._confirmer.confirm(message))
        except Exception:
            # No explicit confirmation means staying put.
            logger.exception("Confirmation prompt failed")
            return False
