"""Answer value models — a tagged union per answer category.

The host UI hands the engine loosely shaped values (a string, a list of
strings, ``{"value": "Other", "otherText": "..."}``, a list of file
descriptors).  :func:`coerce_answer` converts them once, at the store
boundary, into one of four variants so that validation and visibility can
dispatch on the variant instead of probing shapes:

  - ScalarAnswer: a single scalar (text, number, date string, single choice)
  - MultiValueAnswer: several plain selections (multiple_choice, checkbox)
  - ChoiceWithOtherAnswer: selections that include the "Other" sentinel
    plus its free text
  - FileListAnswer: uploaded file descriptors

``to_raw()`` gives back the plain JSON shape used for persistence and for
condition evaluation.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, Field

from .question import ChoiceQuestion, Question, UploadQuestion, is_other_token


# --- File descriptor ---

class UploadedFile(BaseModel):
    """Metadata of an uploaded file as declared by the upload widget."""

    name: str
    size: int = 0
    content_type: str = Field("", validation_alias=AliasChoices("content_type", "type"))
    url: Optional[str] = None


# --- Variants ---

class ScalarAnswer(BaseModel):
    kind: Literal["scalar"] = "scalar"
    value: Union[bool, int, float, str, None] = None

    def is_empty(self) -> bool:
        return self.value is None or self.value == ""

    def to_raw(self) -> Any:
        return self.value


class MultiValueAnswer(BaseModel):
    kind: Literal["multi"] = "multi"
    values: List[Union[bool, int, float, str]] = []

    def is_empty(self) -> bool:
        return len(self.values) == 0

    def to_raw(self) -> Any:
        return list(self.values)


class ChoiceWithOtherAnswer(BaseModel):
    """Selections including the "Other" sentinel and its free text."""

    kind: Literal["choice_with_other"] = "choice_with_other"
    selected: List[str] = []
    other_text: str = ""
    multiple: bool = False

    def is_empty(self) -> bool:
        return len(self.selected) == 0

    def to_raw(self) -> Any:
        other = {"value": next((s for s in self.selected if is_other_token(s)), "Other"),
                 "otherText": self.other_text}
        if not self.multiple:
            return other
        return [other if is_other_token(s) else s for s in self.selected]


class FileListAnswer(BaseModel):
    kind: Literal["files"] = "files"
    files: List[UploadedFile] = []

    def is_empty(self) -> bool:
        return len(self.files) == 0

    def to_raw(self) -> Any:
        return [f.model_dump(exclude_none=True) for f in self.files]


AnswerValue = Annotated[
    Union[ScalarAnswer, MultiValueAnswer, ChoiceWithOtherAnswer, FileListAnswer],
    Field(discriminator="kind"),
]


class AnswerRecord(BaseModel):
    """A stored answer.  Its existence marks the question as touched."""

    question_id: str
    value: AnswerValue
    page_id: Optional[str] = None
    answered_at: datetime

    def to_raw(self) -> dict[str, Any]:
        """Persistence shape, matching the host's ``submission_data`` entries."""
        return {
            "question_id": self.question_id,
            "value": self.value.to_raw(),
            "page_id": self.page_id,
            "answered_at": self.answered_at.isoformat(),
        }


# ---------------------------------------------------------------------------
# Coercion
# ---------------------------------------------------------------------------

_SCALARS = (bool, int, float, str)


def _is_other_dict(item: Any) -> bool:
    return isinstance(item, dict) and "value" in item and is_other_token(item.get("value"))


def _other_text(item: dict) -> str:
    text = item.get("otherText", item.get("other_text", ""))
    return "" if text is None else str(text)


def _is_file_dict(item: Any) -> bool:
    return isinstance(item, dict) and "name" in item


def coerce_answer(question: Question, raw: Any) -> AnswerValue:
    """Convert a host value into the tagged answer union for *question*.

    Already-coerced answers pass through unchanged.  Raises ``ValueError``
    for shapes no question type can hold (e.g. a dict without ``value`` or
    ``name``).  Type mismatches that *can* be represented, such as a list
    given to a text question, are kept so the validation engine can report
    them instead of the store rejecting the edit.
    """
    if isinstance(raw, (ScalarAnswer, MultiValueAnswer, ChoiceWithOtherAnswer, FileListAnswer)):
        return raw

    if raw is None or isinstance(raw, _SCALARS):
        if isinstance(question, ChoiceQuestion) and is_other_token(raw):
            return ChoiceWithOtherAnswer(
                selected=[raw], multiple=question.allows_multiple
            )
        return ScalarAnswer(value=raw)

    if isinstance(raw, dict):
        if _is_other_dict(raw):
            multiple = isinstance(question, ChoiceQuestion) and question.allows_multiple
            return ChoiceWithOtherAnswer(
                selected=[str(raw["value"])], other_text=_other_text(raw), multiple=multiple
            )
        if _is_file_dict(raw):
            return FileListAnswer(files=[UploadedFile.model_validate(raw)])
        raise ValueError(f"Unsupported answer shape for {question.id}: {raw!r}")

    if isinstance(raw, (list, tuple)):
        items = list(raw)
        if isinstance(question, UploadQuestion) or (items and all(_is_file_dict(i) for i in items)):
            files = []
            for item in items:
                if isinstance(item, UploadedFile):
                    files.append(item)
                elif _is_file_dict(item):
                    files.append(UploadedFile.model_validate(item))
                else:
                    raise ValueError(f"Unsupported file entry for {question.id}: {item!r}")
            return FileListAnswer(files=files)

        other = next((i for i in items if _is_other_dict(i) or is_other_token(i)), None)
        if other is not None and isinstance(question, ChoiceQuestion):
            selected = [str(i["value"]) if isinstance(i, dict) else str(i) for i in items]
            text = _other_text(other) if isinstance(other, dict) else ""
            return ChoiceWithOtherAnswer(selected=selected, other_text=text, multiple=True)

        for item in items:
            if not isinstance(item, _SCALARS):
                raise ValueError(f"Unsupported list entry for {question.id}: {item!r}")
        return MultiValueAnswer(values=items)

    raise ValueError(f"Unsupported answer shape for {question.id}: {type(raw).__name__}")
