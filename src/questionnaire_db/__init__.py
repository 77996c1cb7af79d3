"""PostgreSQL storage for questionnaire drafts and completed submissions.

:class:`DatabasePersistence` is the backend handed to
:class:`questionnaire_engine.QuestionnaireEngine`; the rest of the package
is the table, its repository and the connection pool behind it.
"""

from questionnaire_db.engine import create_schema, dispose_engine, get_engine, get_session_factory
from questionnaire_db.models.enums import SubmissionStatus
from questionnaire_db.models.submission import QuestionnaireSubmission
from questionnaire_db.persistence import DatabasePersistence
from questionnaire_db.repository import SubmissionRepository

__all__ = [
    "QuestionnaireSubmission",
    "SubmissionStatus",
    "get_engine",
    "get_session_factory",
    "create_schema",
    "dispose_engine",
    "SubmissionRepository",
    "DatabasePersistence",
]
