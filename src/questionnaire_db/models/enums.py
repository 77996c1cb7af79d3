"""Database-level enumerations for questionnaire submissions."""

import enum


class SubmissionStatus(str, enum.Enum):
    """Lifecycle states of a stored submission.

    Transitions:
        in_progress -> completed (final answers persisted)
    """

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
