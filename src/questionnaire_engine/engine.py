"""QuestionnaireEngine — entry point that loads templates and opens sessions.

The engine holds the collaborators shared by all sessions (template loader,
persistence backend, scheduler, settings) and no per-session state.  Each
``open()`` builds a fresh session plus its autosave coordinator, navigation
guard and keyboard coordinator, and returns a controller bound to them.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Mapping

from questionnaire_engine.autosave import AsyncioScheduler, AutosaveCoordinator, Scheduler
from questionnaire_engine.config import EngineSettings
from questionnaire_engine.controller import DRAFT_SAVE_FAILED, QuestionnaireController
from questionnaire_engine.errors import TemplateLoadError
from questionnaire_engine.guard import NavigationGuard
from questionnaire_engine.interfaces import (
    Announcer,
    ConfirmationPrompt,
    FocusHandler,
    PersistenceBackend,
    Router,
    TemplateLoader,
)
from questionnaire_engine.keyboard import KeyboardCoordinator
from questionnaire_engine.models import SubmissionPayload, Template
from questionnaire_engine.session import QuestionnaireSession

logger = logging.getLogger(__name__)


class QuestionnaireEngine:
    """Loads templates and opens questionnaire sessions.

    Args:
        loader: template source
        persistence: backend shared by all sessions
        settings: engine settings (defaults apply when omitted)
        scheduler: timer source for autosave; ``AsyncioScheduler`` by default
        clock: monotonic clock handed to sessions
    """

    def __init__(
        self,
        loader: TemplateLoader,
        persistence: PersistenceBackend,
        settings: EngineSettings | None = None,
        scheduler: Scheduler | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._loader = loader
        self._persistence = persistence
        self._settings = settings or EngineSettings()
        self._scheduler = scheduler or AsyncioScheduler()
        self._clock = clock

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    async def load_template(self, template_id: str) -> Template:
        """Load *template_id* or raise TemplateLoadError.

        Any loader failure is wrapped; a template without pages or without
        questions is a load error too, so no session ever runs on a partial
        template.
        """
        try:
            template = await self._loader.load(template_id)
        except TemplateLoadError:
            raise
        except Exception as exc:
            logger.error("Failed to load template %s: %s", template_id, exc)
            raise TemplateLoadError(template_id, str(exc) or type(exc).__name__) from exc

        if not template.pages:
            raise TemplateLoadError(template_id, "template has no pages")
        if not template.all_questions():
            raise TemplateLoadError(template_id, "template has no questions")
        return template

    async def create_session(
        self,
        template_id: str,
        resume_data: SubmissionPayload | Mapping[str, Any] | None = None,
    ) -> QuestionnaireSession:
        """Create a session, optionally resuming a saved submission.

        ``resume_data`` carries ``submission_token``, ``submission_data``
        and optionally ``current_page`` and ``time_spent_seconds``, as
        produced by :meth:`QuestionnaireSession.build_payload`.
        """
        template = await self.load_template(template_id)
        if isinstance(resume_data, SubmissionPayload):
            resume_data = resume_data.model_dump()

        session = QuestionnaireSession(
            template,
            self._persistence,
            settings=self._settings,
            clock=self._clock,
            submission_token=(resume_data or {}).get("submission_token"),
        )
        if resume_data:
            session.restore(
                resume_data.get("submission_data") or {},
                current_page=resume_data.get("current_page"),
                time_spent_seconds=resume_data.get("time_spent_seconds") or 0,
            )
        return session

    async def open(
        self,
        template_id: str,
        *,
        router: Router,
        confirmer: ConfirmationPrompt,
        announcer: Announcer | None = None,
        focus: FocusHandler | None = None,
        page_number: int | None = None,
        resume_data: SubmissionPayload | Mapping[str, Any] | None = None,
    ) -> QuestionnaireController:
        """Create a session and return a controller with autosave running."""
        session = await self.create_session(template_id, resume_data)
        if page_number is not None:
            session.set_current_page(page_number)
        return self.attach(session, router=router, confirmer=confirmer, announcer=announcer, focus=focus)

    def attach(
        self,
        session: QuestionnaireSession,
        *,
        router: Router,
        confirmer: ConfirmationPrompt,
        announcer: Announcer | None = None,
        focus: FocusHandler | None = None,
    ) -> QuestionnaireController:
        """Build the coordinators and controller for an existing session."""
        keyboard = KeyboardCoordinator(announcer, focus)
        autosave = AutosaveCoordinator(
            session,
            self._scheduler,
            interval=self._settings.autosave_interval,
            debounce=self._settings.autosave_debounce,
            on_error=lambda result: keyboard.announce(DRAFT_SAVE_FAILED, "assertive"),
        )
        guard = NavigationGuard(
            session,
            router,
            confirmer,
            save=autosave.save_now,
            reentrancy=self._settings.navigation_reentrancy,
            save_failed_message=self._settings.save_failed_message,
            unsaved_message=self._settings.unsaved_message,
        )
        autosave.start()
        return QuestionnaireController(session, guard, autosave, keyboard)
