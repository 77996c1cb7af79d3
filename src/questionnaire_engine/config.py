"""Engine configuration — reads settings from environment variables.

All settings have defaults suitable for local use.  Hosts that need other
values either set the ``QUESTIONNAIRE_*`` env vars or build an
``EngineSettings`` directly (tests do the latter).
"""

import logging
import os
from dataclasses import dataclass
from typing import Literal

HiddenAnswerPolicy = Literal["retain", "clear"]
ReentrancyPolicy = Literal["reject", "queue"]

DEFAULT_UNSAVED_MESSAGE = "You have unsaved changes. Are you sure you want to leave this page?"
DEFAULT_SAVE_FAILED_MESSAGE = "Failed to save your changes. Do you still want to leave?"

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class EngineSettings:
    """Immutable engine configuration."""

    # Seconds between a dirty transition and the autosave.
    # With debounce enabled every edit restarts the delay; otherwise edits
    # made while a save is scheduled do not push it back.
    autosave_interval: float = 30.0
    autosave_debounce: bool = False

    # "retain": hidden answers are kept but ignored, restored on re-show.
    # "clear": answers of questions that become hidden are removed.
    hidden_answer_policy: HiddenAnswerPolicy = "retain"

    # Template directory (None → <repo>/templates)
    template_dir: str | None = None

    # A navigation request arriving while another is pending
    navigation_reentrancy: ReentrancyPolicy = "reject"

    # Confirmation prompts of the navigation guard
    unsaved_message: str = DEFAULT_UNSAVED_MESSAGE
    save_failed_message: str = DEFAULT_SAVE_FAILED_MESSAGE

    # Logging
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.autosave_interval <= 0:
            raise ValueError(f"autosave_interval must be positive, got {self.autosave_interval}")
        if self.hidden_answer_policy not in ("retain", "clear"):
            raise ValueError(f"Unknown hidden answer policy: {self.hidden_answer_policy!r}")
        if self.navigation_reentrancy not in ("reject", "queue"):
            raise ValueError(f"Unknown navigation reentrancy policy: {self.navigation_reentrancy!r}")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def load_settings() -> EngineSettings:
    """Build settings from ``QUESTIONNAIRE_*`` environment variables.

    Raises ValueError for values that cannot be parsed or are out of range.
    """
    return EngineSettings(
        autosave_interval=float(os.getenv("QUESTIONNAIRE_AUTOSAVE_INTERVAL", "30")),
        autosave_debounce=_env_bool("QUESTIONNAIRE_AUTOSAVE_DEBOUNCE", False),
        hidden_answer_policy=os.getenv("QUESTIONNAIRE_HIDDEN_ANSWER_POLICY", "retain").strip().lower(),
        template_dir=os.getenv("QUESTIONNAIRE_TEMPLATE_DIR") or None,
        navigation_reentrancy=os.getenv("QUESTIONNAIRE_NAVIGATION_REENTRANCY", "reject").strip().lower(),
        unsaved_message=os.getenv("QUESTIONNAIRE_UNSAVED_MESSAGE") or DEFAULT_UNSAVED_MESSAGE,
        save_failed_message=os.getenv("QUESTIONNAIRE_SAVE_FAILED_MESSAGE") or DEFAULT_SAVE_FAILED_MESSAGE,
        log_level=os.getenv("QUESTIONNAIRE_LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    """Apply the engine's log format to the root logger."""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
