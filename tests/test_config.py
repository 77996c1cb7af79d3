"""EngineSettings and environment loading."""

import pytest

from questionnaire_engine.config import DEFAULT_UNSAVED_MESSAGE, EngineSettings, load_settings

_ENV = [
    "QUESTIONNAIRE_AUTOSAVE_INTERVAL",
    "QUESTIONNAIRE_AUTOSAVE_DEBOUNCE",
    "QUESTIONNAIRE_HIDDEN_ANSWER_POLICY",
    "QUESTIONNAIRE_TEMPLATE_DIR",
    "QUESTIONNAIRE_NAVIGATION_REENTRANCY",
    "QUESTIONNAIRE_UNSAVED_MESSAGE",
    "QUESTIONNAIRE_SAVE_FAILED_MESSAGE",
    "QUESTIONNAIRE_LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV:
        monkeypatch.delenv(name, raising=False)


class TestLoadSettings:
    def test_defaults(self):
        settings = load_settings()
        assert settings == EngineSettings()
        assert settings.autosave_interval == 30.0
        assert settings.hidden_answer_policy == "retain"
        assert settings.unsaved_message == DEFAULT_UNSAVED_MESSAGE

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("QUESTIONNAIRE_AUTOSAVE_INTERVAL", "5")
        monkeypatch.setenv("QUESTIONNAIRE_AUTOSAVE_DEBOUNCE", "yes")
        monkeypatch.setenv("QUESTIONNAIRE_HIDDEN_ANSWER_POLICY", "Clear")
        monkeypatch.setenv("QUESTIONNAIRE_NAVIGATION_REENTRANCY", "queue")
        monkeypatch.setenv("QUESTIONNAIRE_LOG_LEVEL", "debug")
        settings = load_settings()
        assert settings.autosave_interval == 5.0
        assert settings.autosave_debounce is True
        assert settings.hidden_answer_policy == "clear"
        assert settings.navigation_reentrancy == "queue"
        assert settings.log_level == "DEBUG"

    @pytest.mark.parametrize(
        "name, value",
        [
            ("QUESTIONNAIRE_AUTOSAVE_INTERVAL", "soon"),
            ("QUESTIONNAIRE_AUTOSAVE_INTERVAL", "0"),
            ("QUESTIONNAIRE_AUTOSAVE_DEBOUNCE", "maybe"),
            ("QUESTIONNAIRE_HIDDEN_ANSWER_POLICY", "forget"),
            ("QUESTIONNAIRE_NAVIGATION_REENTRANCY", "parallel"),
        ],
    )
    def test_invalid_values_raise(self, monkeypatch, name, value):
        monkeypatch.setenv(name, value)
        with pytest.raises(ValueError):
            load_settings()


def test_settings_are_frozen():
    settings = EngineSettings()
    with pytest.raises(AttributeError):
        settings.autosave_interval = 1
