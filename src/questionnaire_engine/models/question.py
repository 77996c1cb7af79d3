"""Question models for questionnaire templates.

Each question type belongs to one answer category, and each category maps to
one pydantic class:

  - text-like (``TextQuestion``): text, textarea, email, phone, date
  - numeric (``NumberQuestion``): number, rating, slider, pain_scale
  - choice (``ChoiceQuestion``): single_choice, multiple_choice, checkbox
  - upload (``UploadQuestion``): file_upload, photo_upload

The discriminated ``Question`` union uses ``question_type`` as its
discriminator so template dicts (from YAML or the host backend) deserialise
directly into the right class.  ``question_mapper`` maps type strings to
their classes for callers that build questions dynamically.

Visibility is described by ``ConditionalLogic`` (``show_if`` / ``hide_if``
groups of ``LogicCondition``); see :mod:`questionnaire_engine.visibility`.
"""

from __future__ import annotations

from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from questionnaire_engine.constants import (
    FILE_UPLOAD_ACCEPTED_TYPES,
    FILE_UPLOAD_MAX_FILES,
    FILE_UPLOAD_MAX_SIZE,
    MULTI_SELECT_TYPES,
    OTHER_SENTINEL,
    PAIN_SCALE_MAX,
    PAIN_SCALE_MIN,
    PHOTO_UPLOAD_ACCEPTED_TYPES,
    PHOTO_UPLOAD_MAX_FILES,
    PHOTO_UPLOAD_MAX_SIZE,
)


def is_other_token(value: Any) -> bool:
    """True if *value* is the "Other" sentinel (case-insensitive)."""
    return isinstance(value, str) and value.strip().lower() == OTHER_SENTINEL.lower()


# --- Validation rule bag ---

class ValidationRules(BaseModel):
    """Type-specific validation rules attached to a question.

    Templates authored by different tools use both snake_case and camelCase
    keys, so every rule accepts either spelling.  Unknown keys are ignored.
    """

    model_config = ConfigDict(extra="ignore")

    min_length: Optional[int] = Field(None, validation_alias=AliasChoices("min_length", "minLength"))
    max_length: Optional[int] = Field(None, validation_alias=AliasChoices("max_length", "maxLength"))
    min: Optional[float] = None
    max: Optional[float] = None
    pattern: Optional[str] = None
    min_files: Optional[int] = Field(None, validation_alias=AliasChoices("min_files", "minFiles"))
    max_files: Optional[int] = Field(None, validation_alias=AliasChoices("max_files", "maxFiles"))
    max_file_size: Optional[int] = Field(
        None, validation_alias=AliasChoices("max_file_size", "maxFileSize")
    )
    accepted_types: Optional[List[str]] = Field(
        None, validation_alias=AliasChoices("accepted_types", "fileTypes")
    )
    allow_other: bool = False


# --- Conditional logic models ---

CONDITION_OPERATORS: frozenset[str] = frozenset({
    "equals", "not_equals", "contains",
    "greater_than", "less_than",
    "is_empty", "is_not_empty",
    "in", "not_in",
})


class LogicCondition(BaseModel):
    """A single condition over another question's answer.

    Operators:
      - equals, not_equals: equality (membership for multi-value answers)
      - contains: case-insensitive substring (any element for lists)
      - greater_than, less_than: numeric comparison
      - is_empty, is_not_empty: presence check
      - in, not_in: answer (or any selected element) in ``value`` list

    Any other operator loads, evaluates to False and is logged.
    """

    question_id: str
    operator: str
    value: Any = None

    @property
    def is_known_operator(self) -> bool:
        return self.operator in CONDITION_OPERATORS


class ConditionalLogic(BaseModel):
    """Show/hide rules for a question.

    The question is visible when the ``show_if`` group holds and the
    ``hide_if`` group does not.  ``operator`` combines the conditions inside
    each group; empty groups are neutral.
    """

    show_if: List[LogicCondition] = []
    hide_if: List[LogicCondition] = []
    operator: Literal["AND", "OR"] = "AND"

    @property
    def referenced_ids(self) -> list[str]:
        """Question ids referenced by any condition, in declaration order."""
        return [c.question_id for c in (*self.show_if, *self.hide_if)]


# --- Shared option model ---

class QuestionOption(BaseModel):
    """A selectable option of a choice question."""

    id: str
    label: str
    value: str
    is_other: bool = Field(False, validation_alias=AliasChoices("is_other", "isOther"))

    @model_validator(mode="before")
    @classmethod
    def _fill_missing(cls, data: Any) -> Any:
        # Options are often authored as bare strings or {label} dicts.
        if isinstance(data, str):
            data = {"label": data}
        if isinstance(data, dict):
            data = dict(data)
            label = data.get("label") or data.get("value") or data.get("id")
            data.setdefault("label", label)
            data.setdefault("value", label)
            data.setdefault("id", data["value"])
            explicit = "is_other" in data or "isOther" in data
            if not explicit and (is_other_token(data["value"]) or is_other_token(data["label"])):
                data["is_other"] = True
        return data


# --- Base question type ---

class BaseQuestion(BaseModel):
    """Fields shared by all question types."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    question_text: str
    is_required: bool = Field(False, validation_alias=AliasChoices("is_required", "required"))
    order_index: int = 0
    page_id: Optional[str] = None
    section: Optional[str] = None
    question_group: Optional[str] = None
    help_text: Optional[str] = None
    placeholder_text: Optional[str] = None
    validation_message: Optional[str] = None
    validation_rules: ValidationRules = Field(default_factory=ValidationRules)
    conditional_logic: Optional[ConditionalLogic] = None

    @field_validator("validation_rules", mode="before")
    @classmethod
    def _none_rules(cls, v: Any) -> Any:
        return {} if v is None else v


# --- Category classes ---

class TextQuestion(BaseQuestion):
    """Free text input: short text, long text, email, phone or date."""

    question_type: Literal["text", "textarea", "email", "phone", "date"]


class NumberQuestion(BaseQuestion):
    """Numeric input, including rating, slider and pain-scale widgets."""

    question_type: Literal["number", "rating", "slider", "pain_scale"]

    @property
    def bounds(self) -> tuple[Optional[float], Optional[float]]:
        """Inclusive (min, max); pain scales default to 0..10."""
        lo, hi = self.validation_rules.min, self.validation_rules.max
        if self.question_type == "pain_scale":
            lo = PAIN_SCALE_MIN if lo is None else lo
            hi = PAIN_SCALE_MAX if hi is None else hi
        return lo, hi


class ChoiceQuestion(BaseQuestion):
    """Pick one (single_choice) or several (multiple_choice, checkbox) options."""

    question_type: Literal["single_choice", "multiple_choice", "checkbox"]
    options: List[QuestionOption] = []

    @property
    def allows_multiple(self) -> bool:
        return self.question_type in MULTI_SELECT_TYPES

    @property
    def other_option(self) -> Optional[QuestionOption]:
        """The "Other" option, synthesised when ``allow_other`` is set."""
        for opt in self.options:
            if opt.is_other:
                return opt
        if self.validation_rules.allow_other:
            return QuestionOption(id="other", label=OTHER_SENTINEL, value=OTHER_SENTINEL, is_other=True)
        return None

    @property
    def regular_options(self) -> list[QuestionOption]:
        return [opt for opt in self.options if not opt.is_other]

    def accepts(self, selected: Any) -> bool:
        """True if *selected* is a regular option value or the Other sentinel."""
        if any(selected == opt.value for opt in self.regular_options):
            return True
        return self.other_option is not None and is_other_token(selected)


class UploadQuestion(BaseQuestion):
    """File or photo upload with count, size and content-type limits."""

    question_type: Literal["file_upload", "photo_upload"]

    @property
    def max_files(self) -> int:
        if self.validation_rules.max_files is not None:
            return self.validation_rules.max_files
        return PHOTO_UPLOAD_MAX_FILES if self.question_type == "photo_upload" else FILE_UPLOAD_MAX_FILES

    @property
    def min_files(self) -> int:
        """At least one file when required, otherwise zero (unless overridden)."""
        if self.validation_rules.min_files is not None:
            return self.validation_rules.min_files
        return 1 if self.is_required else 0

    @property
    def max_file_size(self) -> int:
        if self.validation_rules.max_file_size is not None:
            return self.validation_rules.max_file_size
        return PHOTO_UPLOAD_MAX_SIZE if self.question_type == "photo_upload" else FILE_UPLOAD_MAX_SIZE

    @property
    def accepted_types(self) -> tuple[str, ...]:
        if self.validation_rules.accepted_types:
            return tuple(self.validation_rules.accepted_types)
        if self.question_type == "photo_upload":
            return PHOTO_UPLOAD_ACCEPTED_TYPES
        return FILE_UPLOAD_ACCEPTED_TYPES


# --- Discriminated union of all question types ---

Question = Annotated[
    Union[TextQuestion, NumberQuestion, ChoiceQuestion, UploadQuestion],
    Field(discriminator="question_type"),
]

# Maps question_type string → pydantic class for dynamic construction.
question_mapper = {
    "text": TextQuestion,
    "textarea": TextQuestion,
    "email": TextQuestion,
    "phone": TextQuestion,
    "date": TextQuestion,
    "number": NumberQuestion,
    "rating": NumberQuestion,
    "slider": NumberQuestion,
    "pain_scale": NumberQuestion,
    "single_choice": ChoiceQuestion,
    "multiple_choice": ChoiceQuestion,
    "checkbox": ChoiceQuestion,
    "file_upload": UploadQuestion,
    "photo_upload": UploadQuestion,
}
