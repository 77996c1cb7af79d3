"""ValidationEngine — per-question validation of live answers.

For each live question the engine applies, in order:

  1. required-presence (None, "", empty list count as absent)
  2. the category rules for the question's answer shape:
       - text-like: min/max length, optional pattern, then the structural
         check of email / phone / date
       - numeric: numeric parse, inclusive min/max
       - choice: option membership, "Other" free text, selection count
       - upload: file count, per-file size and content type

The first failing rule wins; a question never reports two errors at once.

Validation failures are data, never exceptions.  Two modes exist:

  - ``submit``: everything is reported (after the user tried to move on)
  - ``live``: "incomplete" failures (required, minimum length, minimum
    selections/files, missing Other text) are suppressed so that validating
    on every keystroke never nags about input the user is still typing
"""

from __future__ import annotations

import logging
import math
import re
from datetime import date, datetime
from typing import Any, Literal, Mapping, Optional, Sequence

from pydantic import BaseModel

from questionnaire_engine.constants import EMAIL_PATTERN, PHONE_PATTERN, PHONE_STRIP_PATTERN
from questionnaire_engine.models.answer import (
    AnswerValue,
    ChoiceWithOtherAnswer,
    FileListAnswer,
    MultiValueAnswer,
    ScalarAnswer,
    coerce_answer,
)
from questionnaire_engine.models.question import (
    ChoiceQuestion,
    NumberQuestion,
    Question,
    TextQuestion,
    UploadQuestion,
    is_other_token,
)

logger = logging.getLogger(__name__)

ValidationMode = Literal["submit", "live"]
IssueKind = Literal["required", "format", "length", "range", "choice", "file"]

_TAGGED = (ScalarAnswer, MultiValueAnswer, ChoiceWithOtherAnswer, FileListAnswer)


class ValidationIssue(BaseModel):
    """One failed rule for one question."""

    question_id: str
    message: str
    kind: IssueKind
    # Incomplete issues are hidden in live mode
    incomplete: bool = False


def _fmt(n: float) -> str:
    """Render 10.0 as "10" and 2.5 as "2.5" in messages."""
    return str(int(n)) if float(n).is_integer() else str(n)


def _mb(size: int) -> str:
    return _fmt(round(size / (1024 * 1024), 1))


class ValidationEngine:
    """Validates answers for live questions.  Stateless; safe to share."""

    def validate(
        self,
        questions: Sequence[Question],
        answers: Mapping[str, Any],
        *,
        mode: ValidationMode = "submit",
    ) -> dict[str, str]:
        """Return ``{question_id: message}`` for every failing question."""
        return {
            issue.question_id: issue.message
            for issue in self.issues(questions, answers, mode=mode)
        }

    def issues(
        self,
        questions: Sequence[Question],
        answers: Mapping[str, Any],
        *,
        mode: ValidationMode = "submit",
    ) -> list[ValidationIssue]:
        """Like :meth:`validate` but keeps the issue kind, in question order."""
        found: list[ValidationIssue] = []
        for question in questions:
            issue = self.check(question, answers.get(question.id), live=(mode == "live"))
            if issue is not None:
                found.append(issue)
        return found

    def check(self, question: Question, answer: Any, *, live: bool = False) -> ValidationIssue | None:
        """Validate one answer; return the first failing rule or None."""
        if answer is not None and not isinstance(answer, _TAGGED):
            try:
                answer = coerce_answer(question, answer)
            except ValueError:
                return self._issue(question, "Invalid answer", "format")

        if answer is None or answer.is_empty():
            if question.is_required and not live:
                return self._issue(question, f"{question.question_text} is required", "required", True)
            return None

        if isinstance(question, TextQuestion):
            issue = self._check_text(question, answer)
        elif isinstance(question, NumberQuestion):
            issue = self._check_number(question, answer)
        elif isinstance(question, ChoiceQuestion):
            issue = self._check_choice(question, answer)
        elif isinstance(question, UploadQuestion):
            issue = self._check_upload(question, answer)
        else:
            issue = None

        if issue is not None and live and issue.incomplete:
            return None
        return issue

    # ------------------------------------------------------------------
    # Category checks
    # ------------------------------------------------------------------

    def _check_text(self, q: TextQuestion, answer: AnswerValue) -> ValidationIssue | None:
        if not isinstance(answer, ScalarAnswer) or isinstance(answer.value, bool):
            return self._issue(q, "Please enter a single text value", "format")
        text = str(answer.value)
        rules = q.validation_rules

        if rules.min_length and len(text) < rules.min_length:
            return self._issue(q, f"Minimum {rules.min_length} characters required", "length", True)
        if rules.max_length and len(text) > rules.max_length:
            return self._issue(q, f"Maximum {rules.max_length} characters allowed", "length")

        if rules.pattern:
            try:
                matched = re.search(rules.pattern, text) is not None
            except re.error:
                logger.warning("Invalid pattern %r on question %s; skipping", rules.pattern, q.id)
                matched = True
            if not matched:
                return self._issue(q, q.validation_message or "Invalid format", "format")

        if q.question_type == "email" and not re.match(EMAIL_PATTERN, text):
            return self._issue(q, "Please enter a valid email address", "format")
        if q.question_type == "phone":
            cleaned = re.sub(PHONE_STRIP_PATTERN, "", text)
            if not re.match(PHONE_PATTERN, cleaned):
                return self._issue(q, "Please enter a valid phone number", "format")
        if q.question_type == "date" and not _parse_date(text):
            return self._issue(q, "Please enter a valid date", "format")
        return None

    def _check_number(self, q: NumberQuestion, answer: AnswerValue) -> ValidationIssue | None:
        number = _parse_number(answer)
        if number is None:
            return self._issue(q, "Please enter a valid number", "format")
        lo, hi = q.bounds
        if lo is not None and number < lo:
            return self._issue(q, f"Value must be at least {_fmt(lo)}", "range")
        if hi is not None and number > hi:
            return self._issue(q, f"Value must be at most {_fmt(hi)}", "range")
        return None

    def _check_choice(self, q: ChoiceQuestion, answer: AnswerValue) -> ValidationIssue | None:
        if isinstance(answer, FileListAnswer):
            return self._issue(q, "Please select a valid option", "choice")

        if isinstance(answer, ChoiceWithOtherAnswer):
            selected: list[Any] = list(answer.selected)
        elif isinstance(answer, MultiValueAnswer):
            selected = list(answer.values)
        else:
            selected = [answer.value]

        if not q.allows_multiple and len(selected) > 1:
            return self._issue(q, "Please select only one option", "choice")

        # Questions without options (e.g. a single consent checkbox) accept
        # any value.
        if q.options or q.validation_rules.allow_other:
            for value in selected:
                if not q.accepts(value):
                    return self._issue(q, "Please select a valid option", "choice")

        if isinstance(answer, ChoiceWithOtherAnswer) and any(is_other_token(s) for s in selected):
            if not answer.other_text.strip():
                return self._issue(q, "Please specify your answer for Other", "choice", True)

        rules = q.validation_rules
        if q.allows_multiple:
            if rules.min_files and len(selected) < rules.min_files:
                return self._issue(q, f"Minimum {rules.min_files} selections required", "range", True)
            if rules.max_files and len(selected) > rules.max_files:
                return self._issue(q, f"Maximum {rules.max_files} selections allowed", "range")
        return None

    def _check_upload(self, q: UploadQuestion, answer: AnswerValue) -> ValidationIssue | None:
        if not isinstance(answer, FileListAnswer):
            return self._issue(q, "Please upload a file", "file")
        count = len(answer.files)
        if count < q.min_files:
            return self._issue(q, f"Please upload at least {q.min_files} file(s)", "file", True)
        if count > q.max_files:
            return self._issue(q, f"Maximum {q.max_files} files allowed", "file")
        accepted = {t.lower() for t in q.accepted_types}
        for f in answer.files:
            if f.size > q.max_file_size:
                return self._issue(q, f"{f.name} exceeds the maximum size of {_mb(q.max_file_size)} MB", "file")
            if f.content_type.lower() not in accepted:
                return self._issue(q, f"{f.name} has an unsupported file type", "file")
        return None

    @staticmethod
    def _issue(q: Question, message: str, kind: IssueKind, incomplete: bool = False) -> ValidationIssue:
        return ValidationIssue(question_id=q.id, message=message, kind=kind, incomplete=incomplete)


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------

def _parse_number(answer: AnswerValue) -> Optional[float]:
    if not isinstance(answer, ScalarAnswer) or isinstance(answer.value, bool):
        return None
    try:
        number = float(str(answer.value).strip())
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _parse_date(text: str) -> bool:
    text = text.strip()
    try:
        date.fromisoformat(text)
        return True
    except ValueError:
        pass
    try:
        datetime.fromisoformat(text.replace("Z", "+00:00"))
        return True
    except ValueError:
        return False


_default_engine = ValidationEngine()


def validate(
    questions: Sequence[Question],
    answers: Mapping[str, Any],
    *,
    mode: ValidationMode = "submit",
) -> dict[str, str]:
    """Module-level shortcut for :meth:`ValidationEngine.validate`."""
    return _default_engine.validate(questions, answers, mode=mode)
