"""QuestionnaireController — drives one open questionnaire.

Wires the session to the pure components (visibility, validation, gate) and
to the stateful coordinators (autosave, navigation guard, keyboard).  The
host UI talks only to the controller:

    view = controller.page_view()        # what to show
    controller.render(renderer)          # or let the controller draw it
    controller.answer(qid, value)        # on every edit
    await controller.next()              # "Next" button / Enter
    await controller.save_draft()        # "Save draft" / Ctrl+S
    await controller.exit()              # "Exit"

Validation errors are recomputed on every view; the controller only keeps
*whether* they are shown (after a blocked "next") and which questions were
edited since, whose errors stay hidden until the next attempt.
"""

from __future__ import annotations

import logging
from typing import Any

from questionnaire_engine.autosave import AutosaveCoordinator
from questionnaire_engine.errors import PersistenceError
from questionnaire_engine.gate import compute_navigation
from questionnaire_engine.guard import NavigationGuard
from questionnaire_engine.interfaces import Renderer
from questionnaire_engine.keyboard import KeyboardCoordinator, KeyEvent, KeyHandlers, KeyIntent
from questionnaire_engine.models import (
    NavigationOutcome,
    NavigationState,
    NavigationTarget,
    PageView,
    Question,
    QuestionView,
    SaveResult,
)
from questionnaire_engine.session import QuestionnaireSession
from questionnaire_engine.validation import ValidationEngine

logger = logging.getLogger(__name__)

DRAFT_SAVED = "Draft saved successfully"
DRAFT_SAVE_FAILED = "Failed to save draft"
SUBMIT_FAILED = "Failed to submit questionnaire"


class QuestionnaireController:
    """Page-level orchestration for one session.

    Args:
        session: the session being filled out
        guard: navigation guard of the session; every route change goes
            through it
        autosave: autosave coordinator of the session (already started)
        keyboard: keyboard/accessibility coordinator
    """

    def __init__(
        self,
        session: QuestionnaireSession,
        guard: NavigationGuard,
        autosave: AutosaveCoordinator,
        keyboard: KeyboardCoordinator,
    ) -> None:
        self.session = session
        self._guard = guard
        self._autosave = autosave
        self._keyboard = keyboard
        self._validator = ValidationEngine()

        self._show_validation = False
        # Questions edited since validation was last shown
        self._edited_since_shown: set[str] = set()

    @property
    def autosave(self) -> AutosaveCoordinator:
        return self._autosave

    @property
    def guard(self) -> NavigationGuard:
        return self._guard

    # ==================================================================
    # Views
    # ==================================================================

    def live_questions(self) -> list[Question]:
        return self.session.live_questions(self.session.current_page)

    def navigation(self) -> NavigationState:
        page = self.session.current_page_model
        return compute_navigation(
            page,
            self.live_questions(),
            self.session.answer_values(),
            self.session.template.page_index(page.page_number),
            self.session.total_pages,
        )

    def errors(self) -> dict[str, str]:
        """Errors currently shown to the user (empty before a blocked next)."""
        if not self._show_validation:
            return {}
        errors = self._validator.validate(self.live_questions(), self.session.answer_values(), mode="submit")
        return {qid: msg for qid, msg in errors.items() if qid not in self._edited_since_shown}

    def page_view(self) -> PageView:
        page = self.session.current_page_model
        errors = self.errors()
        return PageView(
            page=page,
            page_index=self.session.template.page_index(page.page_number),
            total_pages=self.session.total_pages,
            questions=[
                QuestionView(
                    question=q,
                    value=self._raw_value(q.id),
                    error=errors.get(q.id),
                )
                for q in self.live_questions()
            ],
            navigation=self.navigation(),
            show_validation=self._show_validation,
            errors=errors,
            completion_percentage=self.session.get_completion_percentage(),
            time_spent_minutes=self.session.get_time_spent_minutes(),
            estimated_minutes_remaining=self.session.estimated_minutes_remaining(),
            is_dirty=self.session.is_dirty,
            last_saved_at=self.session.last_saved_at,
        )

    def render(self, renderer: Renderer) -> None:
        """Hand every live question of the current page to *renderer*."""
        view = self.page_view()
        for qv in view.questions:
            qid = qv.question.id
            try:
                renderer.render(qv.question, qv.value, lambda value, qid=qid: self.answer(qid, value), qv.error)
            except Exception:
                logger.exception("Renderer failed for question %s", qid)

    # ==================================================================
    # Edits
    # ==================================================================

    def answer(self, question_id: str, value: Any) -> bool:
        """Record an edit; returns False if the store refused it."""
        page = self.session.template.page_of(question_id)
        accepted = self.session.update_answer(question_id, value, page.id if page else None)
        if accepted and self._show_validation:
            self._edited_since_shown.add(question_id)
        return accepted

    # ==================================================================
    # Navigation
    # ==================================================================

    async def next(self) -> NavigationOutcome:
        """Advance, or complete on the last page; blocked while invalid."""
        nav = self.navigation()
        if not nav.can_go_next:
            self._block()
            return NavigationOutcome.BLOCKED
        if nav.is_last_page:
            return await self.complete()
        template = self.session.template
        following = template.pages[template.page_index(self.session.current_page)].page_number
        return await self._go_to(following)

    async def previous(self) -> NavigationOutcome:
        if not self.navigation().can_go_previous:
            return NavigationOutcome.BLOCKED
        template = self.session.template
        preceding = template.pages[template.page_index(self.session.current_page) - 2].page_number
        return await self._go_to(preceding)

    async def jump_to(self, page_number: int) -> NavigationOutcome:
        """Go to a visited page, or to the next page when this one is valid."""
        if page_number == self.session.current_page:
            return NavigationOutcome.NAVIGATED
        if not self.session.can_navigate_to_page(page_number):
            return NavigationOutcome.BLOCKED
        template = self.session.template
        forward = template.page_index(page_number) > template.page_index(self.session.current_page)
        if forward and not self.navigation().can_go_next:
            self._block()
            return NavigationOutcome.BLOCKED
        return await self._go_to(page_number)

    async def _go_to(self, page_number: int) -> NavigationOutcome:
        target = NavigationTarget(kind="page", template_id=self.session.template.id, page_number=page_number)

        def commit() -> None:
            self.session.set_current_page(page_number)
            self._show_validation = False
            self._edited_since_shown.clear()

        outcome = await self._guard.navigate(target, on_commit=commit)
        if outcome == NavigationOutcome.NAVIGATED:
            page = self.session.current_page_model
            self._keyboard.announce(
                f"Page {self.session.template.page_index(page_number)} of {self.session.total_pages}: {page.title}"
            )
        return outcome

    # ==================================================================
    # Saving, exiting and completing
    # ==================================================================

    async def save_draft(self) -> SaveResult:
        result = await self._autosave.save_now()
        if result.ok:
            self._keyboard.announce(DRAFT_SAVED)
        else:
            self._keyboard.announce(DRAFT_SAVE_FAILED, "assertive")
        return result

    async def exit(self) -> NavigationOutcome:
        """Leave the questionnaire through the guard."""
        target = NavigationTarget(kind="exit", template_id=self.session.template.id)
        return await self._guard.navigate(target, on_commit=self.session.exit)

    async def complete(self) -> NavigationOutcome:
        """Submit the questionnaire.

        Every live question of every page must validate.  The submission and
        the route change run through the guard, so they never overlap with
        another navigation.  Raises PersistenceError when the completion
        could not be stored; the session then stays open with its answers.
        """
        all_live = self.session.live_questions()
        errors = self._validator.validate(all_live, self.session.answer_values(), mode="submit")
        if errors:
            self._block(errors)
            return NavigationOutcome.BLOCKED

        target = NavigationTarget(kind="complete", template_id=self.session.template.id)
        try:
            return await self._guard.submit(target, self.session.complete)
        except PersistenceError:
            self._keyboard.announce(SUBMIT_FAILED, "assertive")
            raise

    async def handle_key(self, event: KeyEvent) -> KeyIntent | None:
        handlers = KeyHandlers(
            on_advance=self.next,
            on_retreat=self.previous,
            on_save=self.save_draft,
        )
        return await self._keyboard.handle(event, self.navigation(), handlers)

    def close(self) -> None:
        """Stop background work without touching the answers."""
        self._autosave.disarm()

    # ==================================================================
    # Internal helpers
    # ==================================================================

    def _block(self, errors: dict[str, str] | None = None) -> None:
        self._show_validation = True
        self._edited_since_shown.clear()
        if errors is None:
            errors = self.errors()
        self._keyboard.scroll_to_first_invalid(errors, self.session.live_questions())
        count = len(errors)
        self._keyboard.announce(
            f"Please fix {count} error{'s' if count != 1 else ''} before continuing", "assertive"
        )

    def _raw_value(self, question_id: str) -> Any:
        answer = self.session.get_answer(question_id)
        return answer.to_raw() if answer is not None else None
