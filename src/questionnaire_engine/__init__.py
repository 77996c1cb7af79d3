"""questionnaire_engine — runtime engine for multi-page questionnaires.

Public API:
    QuestionnaireEngine     — loads templates and opens sessions
    QuestionnaireController — drives one open questionnaire (views, edits, navigation)
    QuestionnaireSession    — answer store of one fill-out
    YamlTemplateLoader      — reads templates from ``templates/*.yaml``
    EngineSettings          — immutable configuration; ``load_settings()`` reads env vars

Components (usable on their own):
    resolve_visible         — live questions under the current answers
    validate                — ``{question_id: message}`` for live questions
    compute_navigation      — next/previous capability flags of a page
    AutosaveCoordinator     — timer-driven saves, at most one in flight
    NavigationGuard         — save-before-leave with a confirmation fallback
    decide_navigation       — the guard's pure decision function
    KeyboardCoordinator     — key intents, focus and announcements

Collaborator interfaces (implemented by the host):
    TemplateLoader, PersistenceBackend, Router, ConfirmationPrompt,
    Renderer, Announcer, FocusHandler

Errors:
    QuestionnaireError, TemplateLoadError, PersistenceError
"""

from questionnaire_engine.autosave import AsyncioScheduler, AutosaveCoordinator, AutosaveState, Scheduler
from questionnaire_engine.config import EngineSettings, configure_logging, load_settings
from questionnaire_engine.controller import QuestionnaireController
from questionnaire_engine.engine import QuestionnaireEngine
from questionnaire_engine.errors import PersistenceError, QuestionnaireError, TemplateLoadError
from questionnaire_engine.gate import compute_navigation
from questionnaire_engine.guard import NavigationDecision, NavigationGuard, decide_navigation
from questionnaire_engine.interfaces import (
    Announcer,
    ConfirmationPrompt,
    FocusHandler,
    PersistenceBackend,
    Renderer,
    Router,
    TemplateLoader,
)
from questionnaire_engine.keyboard import KeyboardCoordinator, KeyEvent, KeyIntent, map_key_event
from questionnaire_engine.loader import YamlTemplateLoader
from questionnaire_engine.session import QuestionnaireSession
from questionnaire_engine.validation import ValidationEngine, ValidationIssue, validate
from questionnaire_engine.visibility import VisibilityResolver, resolve_visible

__all__ = [
    # Engine & session
    "QuestionnaireEngine",
    "QuestionnaireController",
    "QuestionnaireSession",
    "YamlTemplateLoader",
    # Configuration
    "EngineSettings",
    "configure_logging",
    "load_settings",
    # Components
    "VisibilityResolver",
    "resolve_visible",
    "ValidationEngine",
    "ValidationIssue",
    "validate",
    "compute_navigation",
    "AsyncioScheduler",
    "AutosaveCoordinator",
    "AutosaveState",
    "Scheduler",
    "NavigationDecision",
    "NavigationGuard",
    "decide_navigation",
    "KeyboardCoordinator",
    "KeyEvent",
    "KeyIntent",
    "map_key_event",
    # Collaborators
    "Announcer",
    "ConfirmationPrompt",
    "FocusHandler",
    "PersistenceBackend",
    "Renderer",
    "Router",
    "TemplateLoader",
    # Errors
    "QuestionnaireError",
    "TemplateLoadError",
    "PersistenceError",
]
