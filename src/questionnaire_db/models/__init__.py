"""ORM models for questionnaire_db."""

from questionnaire_db.models.base import Base
from questionnaire_db.models.enums import SubmissionStatus
from questionnaire_db.models.submission import QuestionnaireSubmission

__all__ = ["Base", "SubmissionStatus", "QuestionnaireSubmission"]
