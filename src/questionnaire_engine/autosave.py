"""AutosaveCoordinator — timer-driven draft saves for one session.

State machine::

    idle --dirty--> scheduled --delay--> saving --ok--> idle
                        ^                  |
                        |                  +--fail--> error --dirty--> scheduled
                        +---- still dirty after the save (one follow-up)

    any state --disarm()--> disarmed

At most one save is in flight.  An edit that arrives while ``saving`` only
sets a re-arm flag; once the in-flight save resolves and the session is
still dirty, exactly one follow-up save is scheduled.  ``disarm()`` cancels
the pending timer and bumps a generation counter; an in-flight save is left
to finish, but its result is no longer acted upon.

Timers go through a :class:`Scheduler` so tests can drive time by hand.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional, Protocol

from questionnaire_engine.models import SaveResult
from questionnaire_engine.session import QuestionnaireSession

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Scheduling
# ---------------------------------------------------------------------------

class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(ABC):
    """Runs a callback after a delay."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], Any]) -> TimerHandle:
        """Schedule *callback* in *delay* seconds; the handle cancels it."""
        ...


class AsyncioScheduler(Scheduler):
    """Scheduler backed by the running event loop."""

    def call_later(self, delay: float, callback: Callable[[], Any]) -> TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)


# ---------------------------------------------------------------------------
# Coordinator
# ---------------------------------------------------------------------------

class AutosaveState(str, enum.Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    SAVING = "saving"
    ERROR = "error"
    DISARMED = "disarmed"


class AutosaveCoordinator:
    """Observes a session's dirty flag and saves it on a cadence.

    Args:
        session: the session to persist
        scheduler: timer source (``AsyncioScheduler`` in production)
        interval: seconds between a dirty transition and the save
        debounce: when True every edit restarts the delay; otherwise edits
            made while a save is scheduled leave the timer alone
        on_saved: called with the ``SaveResult`` of each successful timer save
        on_error: called with the ``SaveResult`` of each failed timer save;
            ``save_now`` callers get the result directly instead
    """

    def __init__(
        self,
        session: QuestionnaireSession,
        scheduler: Scheduler,
        *,
        interval: float = 30.0,
        debounce: bool = False,
        on_saved: Optional[Callable[[SaveResult], None]] = None,
        on_error: Optional[Callable[[SaveResult], None]] = None,
    ) -> None:
        self._session = session
        self._scheduler = scheduler
        self._interval = interval
        self._debounce = debounce
        self._on_saved = on_saved
        self._on_error = on_error

        self._state = AutosaveState.IDLE
        self._timer: Optional[TimerHandle] = None
        self._task: Optional[asyncio.Task] = None
        self._rearm = False
        self._generation = 0
        self._last_error: Optional[str] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def state(self) -> AutosaveState:
        return self._state

    @property
    def last_error(self) -> Optional[str]:
        """Reason of the most recent failed save, cleared by a success."""
        return self._last_error

    @property
    def save_in_flight(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # Arming
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Begin observing the session."""
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self._session.subscribe(self._on_session_event)
        if self._session.is_dirty:
            self.notify_dirty()

    def disarm(self) -> None:
        """Stop autosaving.  An in-flight save finishes but is ignored."""
        if self._state == AutosaveState.DISARMED:
            return
        self._generation += 1
        self._cancel_timer()
        self._rearm = False
        self._state = AutosaveState.DISARMED
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        logger.debug("Autosave disarmed for session %s", self._session.session_id)

    def notify_dirty(self) -> None:
        """React to the session becoming (or staying) dirty."""
        if self._state in (AutosaveState.IDLE, AutosaveState.ERROR):
            self._schedule()
        elif self._state == AutosaveState.SCHEDULED:
            if self._debounce:
                self._cancel_timer()
                self._schedule()
        elif self._state == AutosaveState.SAVING:
            self._rearm = True

    # ------------------------------------------------------------------
    # Saving
    # ------------------------------------------------------------------

    async def save_now(self) -> SaveResult:
        """Save immediately (keyboard save, guarded navigation).

        Cancels a pending timer and waits for an in-flight save instead of
        starting a concurrent one.
        """
        if self._state == AutosaveState.DISARMED:
            return await self._session.save_progress()
        self._cancel_timer()
        if self.save_in_flight:
            await self._task
            # The finished save may have scheduled a follow-up
            self._cancel_timer()
        return await self._run_save(notify=False)

    async def wait_for_save(self) -> None:
        """Wait until the in-flight save (if any) has resolved."""
        if self._task is not None:
            await self._task

    def _schedule(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._state = AutosaveState.SCHEDULED
        self._timer = self._scheduler.call_later(self._interval, self._fire)

    def _fire(self) -> None:
        self._timer = None
        if self._state != AutosaveState.SCHEDULED:
            return
        self._state = AutosaveState.SAVING
        self._task = asyncio.ensure_future(self._run_save())

    async def _run_save(self, notify: bool = True) -> SaveResult:
        generation = self._generation
        self._state = AutosaveState.SAVING
        self._rearm = False

        result = await self._session.save_progress()

        if generation != self._generation:
            logger.debug("Ignoring save result of disarmed autosave (ok=%s)", result.ok)
            return result

        rearm, self._rearm = self._rearm, False
        if result.ok:
            self._state = AutosaveState.IDLE
            self._last_error = None
            if notify and not result.skipped:
                self._callback(self._on_saved, result)
        else:
            self._state = AutosaveState.ERROR
            self._last_error = result.reason
            logger.warning("Autosave failed: %s", result.reason)
            if notify:
                self._callback(self._on_error, result)

        # Edits made during the save are still owed one follow-up save.
        if self._session.is_dirty and (result.ok or rearm):
            self._schedule()
        return result

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _on_session_event(self, event: str, session: QuestionnaireSession) -> None:
        if event == "changed" and session.is_dirty:
            self.notify_dirty()
        elif event == "closed":
            self.disarm()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._state == AutosaveState.SCHEDULED:
            self._state = AutosaveState.IDLE

    @staticmethod
    def _callback(fn: Optional[Callable[[SaveResult], None]], result: SaveResult) -> None:
        if fn is None:
            return
        try:
            fn(result)
        except Exception:
            logger.exception("Autosave callback failed")
