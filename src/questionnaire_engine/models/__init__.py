"""Public model re-exports for questionnaire_engine.

Consumers should import from ``questionnaire_engine.models`` rather than
reaching into sub-modules directly.
"""

# --- Questions ---
from questionnaire_engine.models.question import (
    BaseQuestion,
    ChoiceQuestion,
    ConditionalLogic,
    LogicCondition,
    NumberQuestion,
    Question,
    QuestionOption,
    TextQuestion,
    UploadQuestion,
    ValidationRules,
    question_mapper,
)

# --- Pages / templates ---
from questionnaire_engine.models.page import Page, Template

# --- Answers ---
from questionnaire_engine.models.answer import (
    AnswerRecord,
    AnswerValue,
    ChoiceWithOtherAnswer,
    FileListAnswer,
    MultiValueAnswer,
    ScalarAnswer,
    UploadedFile,
    coerce_answer,
)

# --- Session / navigation ---
from questionnaire_engine.models.session import (
    NavigationOutcome,
    NavigationState,
    NavigationTarget,
    PageView,
    QuestionView,
    SaveResult,
    SessionInfo,
    SessionStatus,
    SubmissionPayload,
)

__all__ = [
    # Questions
    "BaseQuestion",
    "ChoiceQuestion",
    "ConditionalLogic",
    "LogicCondition",
    "NumberQuestion",
    "Question",
    "QuestionOption",
    "TextQuestion",
    "UploadQuestion",
    "ValidationRules",
    "question_mapper",
    # Pages
    "Page",
    "Template",
    # Answers
    "AnswerRecord",
    "AnswerValue",
    "ChoiceWithOtherAnswer",
    "FileListAnswer",
    "MultiValueAnswer",
    "ScalarAnswer",
    "UploadedFile",
    "coerce_answer",
    # Session
    "NavigationOutcome",
    "NavigationState",
    "NavigationTarget",
    "PageView",
    "QuestionView",
    "SaveResult",
    "SessionInfo",
    "SessionStatus",
    "SubmissionPayload",
]
