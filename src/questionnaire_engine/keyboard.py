"""Keyboard and accessibility coordinator.

Key mapping::

    outside input fields
        ArrowRight, Enter, PageDown  -> advance
        ArrowLeft, PageUp            -> retreat
        Ctrl/Cmd + S                 -> save
        Escape                       -> dismiss (blur the focused field)
    inside input fields (typing must not navigate)
        Ctrl/Cmd + Enter             -> advance
        Ctrl/Cmd + S                 -> save

Advance and retreat are no-ops while the matching capability flag of the
navigation gate is False.  ``scroll_to_first_invalid`` and ``announce`` are
fire-and-forget side channels: collaborator failures are logged and never
touch session state.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Literal, Mapping, Optional, Sequence

from questionnaire_engine.interfaces import Announcer, FocusHandler
from questionnaire_engine.models import NavigationState, Question

logger = logging.getLogger(__name__)


class KeyIntent(str, enum.Enum):
    ADVANCE = "advance"
    RETREAT = "retreat"
    SAVE = "save"
    DISMISS = "dismiss"


@dataclass(frozen=True)
class KeyEvent:
    """A key press as reported by the host UI."""

    key: str
    ctrl: bool = False
    meta: bool = False
    in_input_field: bool = False

    @property
    def command(self) -> bool:
        """Ctrl on most platforms, Cmd on macOS."""
        return self.ctrl or self.meta


_PLAIN_KEYS = {
    "ArrowRight": KeyIntent.ADVANCE,
    "Enter": KeyIntent.ADVANCE,
    "PageDown": KeyIntent.ADVANCE,
    "ArrowLeft": KeyIntent.RETREAT,
    "PageUp": KeyIntent.RETREAT,
    "Escape": KeyIntent.DISMISS,
}


def map_key_event(event: KeyEvent) -> Optional[KeyIntent]:
    """Translate a key press into an intent, or None if it is not ours."""
    if event.command and event.key.lower() == "s":
        return KeyIntent.SAVE
    if event.in_input_field:
        if event.command and event.key == "Enter":
            return KeyIntent.ADVANCE
        return None
    return _PLAIN_KEYS.get(event.key)


@dataclass
class KeyHandlers:
    """Actions the coordinator triggers.  Missing handlers are no-ops."""

    on_advance: Optional[Callable[[], Awaitable[object]]] = None
    on_retreat: Optional[Callable[[], Awaitable[object]]] = None
    on_save: Optional[Callable[[], Awaitable[object]]] = None
    on_dismiss: Optional[Callable[[], None]] = None


class KeyboardCoordinator:
    """Routes key intents to navigation actions and owns the a11y channels.

    Args:
        announcer: live-region collaborator, optional
        focus: focus/scroll collaborator, optional
    """

    def __init__(self, announcer: Announcer | None = None, focus: FocusHandler | None = None) -> None:
        self._announcer = announcer
        self._focus = focus

    async def handle(
        self,
        event: KeyEvent,
        navigation: NavigationState,
        handlers: KeyHandlers,
    ) -> Optional[KeyIntent]:
        """Run the action for *event*; return the intent that ran, if any."""
        intent = map_key_event(event)
        if intent is None:
            return None

        if intent == KeyIntent.ADVANCE:
            if not navigation.can_go_next or handlers.on_advance is None:
                return None
            await handlers.on_advance()
        elif intent == KeyIntent.RETREAT:
            if not navigation.can_go_previous or handlers.on_retreat is None:
                return None
            await handlers.on_retreat()
        elif intent == KeyIntent.SAVE:
            if handlers.on_save is None:
                return None
            await handlers.on_save()
        elif intent == KeyIntent.DISMISS:
            if handlers.on_dismiss is None:
                return None
            handlers.on_dismiss()
        return intent

    def scroll_to_first_invalid(
        self, errors: Mapping[str, str], questions: Sequence[Question]
    ) -> Optional[str]:
        """Focus the first question (in page order) that has an error.

        Returns the focused question id, or None when nothing is invalid.
        """
        target = next((q.id for q in questions if q.id in errors), None)
        if target is None or self._focus is None:
            return target
        try:
            self._focus.focus(target)
        except Exception:
            logger.exception("Focus handler failed for %s", target)
        return target

    def announce(self, message: str, priority: Literal["polite", "assertive"] = "polite") -> None:
        if self._announcer is None:
            return
        try:
            self._announcer.announce(message, priority)
        except Exception:
            logger.exception("Announcer failed")
