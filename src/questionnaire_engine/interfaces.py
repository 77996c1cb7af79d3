"""Abstract interfaces for the engine's external collaborators.

The engine owns no I/O of its own.  Loading templates, persisting answers,
changing views, asking the user, rendering widgets and talking to assistive
technology are all delegated to implementations of these ABCs, supplied by
the host application.

Typical integration flow::

    engine = QuestionnaireEngine(YamlTemplateLoader(), DatabasePersistence(factory))
    controller = await engine.open(
        "dental_consultation",
        router=MyRouter(), confirmer=MyDialog(), announcer=MyLiveRegion(),
    )
    controller.render(MyRenderer())
    controller.answer("full_name", "Ada Lovelace")
    await controller.next()

Methods that imply I/O are coroutines.  ``Renderer``, ``Announcer`` and
``FocusHandler`` are synchronous and fire-and-forget: the engine logs their
failures and never lets them affect session state.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Literal, Optional

from questionnaire_engine.models import (
    NavigationTarget,
    Question,
    SaveResult,
    SubmissionPayload,
    Template,
)


class TemplateLoader(ABC):
    """Source of questionnaire templates."""

    @abstractmethod
    async def load(self, template_id: str) -> Template:
        """Return the complete template with its ordered pages.

        Parameters
        ----------
        template_id:
            Identifier of the questionnaire template.

        Returns
        -------
        Template
            Pages ordered by page number, questions by authoring order.

        Raises
        ------
        Exception
            Any failure.  The engine wraps it in ``TemplateLoadError``.
        """
        ...


class PersistenceBackend(ABC):
    """Stores in-progress and completed submissions.

    Both methods must be idempotent for the same payload: the submission
    token identifies the submission, so a repeated save overwrites rather
    than duplicates.  The engine never issues two calls concurrently for
    one session.
    """

    @abstractmethod
    async def save(self, payload: SubmissionPayload) -> SaveResult:
        """Persist a draft.  Return ``SaveResult.failure(reason)`` or raise
        ``PersistenceError`` when the draft could not be stored."""
        ...

    @abstractmethod
    async def complete(self, payload: SubmissionPayload) -> SaveResult:
        """Persist the final answers and mark the submission complete."""
        ...


class Router(ABC):
    """Performs the actual view transition.

    The navigation guard only decides *whether* to call it.
    """

    @abstractmethod
    async def navigate(self, target: NavigationTarget) -> None:
        ...


class ConfirmationPrompt(ABC):
    """Blocking yes/no question to the user ("leave anyway?")."""

    @abstractmethod
    async def confirm(self, message: str) -> bool:
        """Return True when the user confirms."""
        ...


class Renderer(ABC):
    """Presents one live question.  Presentation only."""

    @abstractmethod
    def render(
        self,
        question: Question,
        value: Any,
        on_change: Callable[[Any], None],
        error: Optional[str],
    ) -> None:
        """Draw *question* with its current *value* and *error*.

        ``on_change`` must be called with the new raw value whenever the
        user edits the answer.
        """
        ...


class Announcer(ABC):
    """Status channel for assistive technologies (an ARIA live region)."""

    @abstractmethod
    def announce(self, message: str, priority: Literal["polite", "assertive"] = "polite") -> None:
        ...


class FocusHandler(ABC):
    """Moves focus / scrolls to a question's input."""

    @abstractmethod
    def focus(self, question_id: str) -> None:
        ...
