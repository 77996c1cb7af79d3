"""Navigation gate — per-direction capability flags for a page.

Pure functions of (page, live questions, answers, position).  Nothing is
cached: callers recompute after every state change so the flags can never
describe stale state.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from questionnaire_engine.models import NavigationState, Page, Question
from questionnaire_engine.validation import ValidationEngine

_validator = ValidationEngine()


def _is_answered(answer: Any) -> bool:
    if answer is None:
        return False
    if hasattr(answer, "is_empty"):
        return not answer.is_empty()
    return answer not in ("", [], {})


def compute_navigation(
    page: Page,
    live_questions: Sequence[Question],
    answers: Mapping[str, Any],
    page_index: int,
    total_pages: int,
) -> NavigationState:
    """Capability flags for *page*.

    Args:
        page: the current page (provides ``allow_back_navigation``)
        live_questions: the page's visible questions
        answers: stored answers keyed by question id
        page_index: 1-based position of the page
        total_pages: number of pages in the template

    ``can_go_next`` requires a clean submit-mode validation *and* an answer
    for every required live question.  ``can_go_previous`` requires a page
    before this one and the page's back-navigation flag.
    """
    errors = _validator.validate(live_questions, answers, mode="submit")
    blocking = [
        q.id for q in live_questions
        if q.id in errors or (q.is_required and not _is_answered(answers.get(q.id)))
    ]
    return NavigationState(
        can_go_next=not blocking,
        can_go_previous=page_index > 1 and page.allow_back_navigation,
        is_last_page=page_index == total_pages,
        blocking_question_ids=blocking,
    )
