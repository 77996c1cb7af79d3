"""Exception hierarchy for the questionnaire engine.

Only *load* and *persistence* failures are exceptions.  Validation failures
are returned as data by :mod:`questionnaire_engine.validation` and never
raised.  Misuse of the public API (unknown question id, editing a closed
session) raises plain ``ValueError`` with a descriptive message.
"""


class QuestionnaireError(Exception):
    """Base class for engine errors."""


class TemplateLoadError(QuestionnaireError):
    """A template (or one of its pages) could not be loaded.

    Fatal to the session: no partially loaded template is ever used.
    """

    def __init__(self, template_id: str, reason: str) -> None:
        super().__init__(f"Failed to load questionnaire {template_id!r}: {reason}")
        self.template_id = template_id
        self.reason = reason


class PersistenceError(QuestionnaireError):
    """A persistence backend could not store the submission.

    Backends may raise this from ``save``/``complete``; the session converts
    it into a failed :class:`SaveResult` for autosave and navigation.
    """
