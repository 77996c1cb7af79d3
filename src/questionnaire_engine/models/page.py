"""Page and template models.

A ``Template`` is the read-only definition of one questionnaire: an ordered
list of ``Page`` objects, each holding its questions in authoring order.
Templates are loaded once per session (see :mod:`questionnaire_engine.loader`)
and never mutated by the engine.
"""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, model_validator

from .question import Question


class Page(BaseModel):
    """One page of a questionnaire with its behavioural flags."""

    model_config = ConfigDict(extra="ignore")

    id: str
    page_number: int
    title: str
    description: Optional[str] = None
    instruction_text: Optional[str] = None
    page_type: Literal["intro", "standard", "photo_upload", "summary"] = "standard"
    show_progress: bool = True
    allow_back_navigation: bool = True
    auto_advance: bool = False
    questions: List[Question] = []

    @model_validator(mode="after")
    def _order_questions(self):
        # Authoring order is order_index; sorted() is stable so ties keep
        # their declaration order.
        self.questions = sorted(self.questions, key=lambda q: q.order_index)
        for q in self.questions:
            if q.page_id is None:
                q.page_id = self.id
        return self


class Template(BaseModel):
    """A complete questionnaire definition."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str = ""
    description: Optional[str] = None
    pages: List[Page] = []

    @model_validator(mode="after")
    def _chk(self):
        self.pages = sorted(self.pages, key=lambda p: p.page_number)
        seen: set[str] = set()
        for q in self.all_questions():
            if q.id in seen:
                raise ValueError(f"Duplicate question id in template {self.id}: {q.id}")
            seen.add(q.id)
        return self

    # ------------------------------------------------------------------
    # Lookup helpers
    # ------------------------------------------------------------------

    @property
    def total_pages(self) -> int:
        return len(self.pages)

    def get_page(self, page_number: int) -> Page:
        """Return the page with *page_number* or raise ValueError."""
        for page in self.pages:
            if page.page_number == page_number:
                return page
        raise ValueError(f"Page not found: template={self.id}, page_number={page_number}")

    def page_index(self, page_number: int) -> int:
        """1-based position of *page_number* in page order."""
        for i, page in enumerate(self.pages, start=1):
            if page.page_number == page_number:
                return i
        raise ValueError(f"Page not found: template={self.id}, page_number={page_number}")

    def all_questions(self) -> list[Question]:
        """Every question across all pages, in page then authoring order."""
        return [q for page in self.pages for q in page.questions]

    def question_ids(self) -> set[str]:
        return {q.id for q in self.all_questions()}

    def find_question(self, question_id: str) -> Question | None:
        for q in self.all_questions():
            if q.id == question_id:
                return q
        return None

    def page_of(self, question_id: str) -> Page | None:
        for page in self.pages:
            if any(q.id == question_id for q in page.questions):
                return page
        return None

    def logic_problems(self) -> list[str]:
        """Describe misconfigured conditional logic.

        Reports conditions that reference a question id missing from the
        template or use an unknown operator, plus conditions that need a
        comparison value but have none. The engine still runs such templates
        (those questions stay hidden); the loader logs these problems so
        authors can fix them.
        """
        ids = self.question_ids()
        problems: list[str] = []
        for q in self.all_questions():
            logic = q.conditional_logic
            if logic is None:
                continue
            for group_name, group in (("show_if", logic.show_if), ("hide_if", logic.hide_if)):
                for i, cond in enumerate(group, start=1):
                    if cond.question_id not in ids:
                        problems.append(
                            f"{q.id} {group_name} condition {i}: "
                            f'Question ID "{cond.question_id}" does not exist'
                        )
                    if not cond.is_known_operator:
                        problems.append(f'{q.id} {group_name} condition {i}: Unknown operator "{cond.operator}"')
                    if cond.value is None and cond.operator not in ("is_empty", "is_not_empty"):
                        problems.append(f"{q.id} {group_name} condition {i}: Missing value")
        return problems
