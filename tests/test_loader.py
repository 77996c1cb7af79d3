"""YamlTemplateLoader tests against the bundled templates and tmp_path
fixtures."""

import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from helpers.fakes import RecordingPersistence
from questionnaire_engine.engine import QuestionnaireEngine
from questionnaire_engine.errors import TemplateLoadError
from questionnaire_engine.loader import YamlTemplateLoader, load_yaml
from questionnaire_engine.models import ChoiceQuestion, NumberQuestion

TEMPLATE_DIR = Path(__file__).resolve().parents[1] / "templates"


@pytest.fixture
def loader():
    return YamlTemplateLoader(TEMPLATE_DIR)


class TestBundledTemplates:
    def test_available(self, loader):
        assert "dental_consultation" in loader.available()

    @pytest.mark.asyncio
    async def test_dental_consultation_loads(self, loader):
        template = await loader.load("dental_consultation")
        assert template.id == "dental_consultation"
        assert [p.id for p in template.pages] == [
            "about_you", "medical_history", "dental_concern", "consent",
        ]
        assert template.pages[0].allow_back_navigation is False
        assert isinstance(template.find_question("pain_level"), NumberQuestion)
        medications = template.find_question("medications")
        assert isinstance(medications, ChoiceQuestion)
        assert medications.other_option is not None
        assert template.logic_problems() == []


class TestErrors:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("template_id", ["../secrets", "a/b", ""])
    async def test_invalid_id(self, loader, template_id):
        with pytest.raises(ValueError, match="Invalid template id"):
            await loader.load(template_id)

    @pytest.mark.asyncio
    async def test_missing_file(self, loader):
        with pytest.raises(FileNotFoundError):
            await loader.load("does_not_exist")

    @pytest.mark.asyncio
    async def test_non_mapping_rejected(self, tmp_path):
        (tmp_path / "listy.yaml").write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ValueError, match="must be a mapping"):
            await YamlTemplateLoader(tmp_path).load("listy")

    @pytest.mark.asyncio
    async def test_invalid_question_rejected(self, tmp_path):
        (tmp_path / "bad.yaml").write_text(
            "pages:\n"
            "  - id: p1\n"
            "    page_number: 1\n"
            "    title: P\n"
            "    questions:\n"
            "      - id: q\n"
            "        question_type: hologram\n"
            "        question_text: Q\n",
            encoding="utf-8",
        )
        with pytest.raises(ValidationError):
            await YamlTemplateLoader(tmp_path).load("bad")

    @pytest.mark.asyncio
    async def test_engine_wraps_loader_failures(self, tmp_path):
        engine = QuestionnaireEngine(YamlTemplateLoader(tmp_path), RecordingPersistence())
        with pytest.raises(TemplateLoadError) as excinfo:
            await engine.load_template("nowhere")
        assert excinfo.value.template_id == "nowhere"

    @pytest.mark.asyncio
    async def test_unknown_references_logged(self, tmp_path, caplog):
        (tmp_path / "refs.yaml").write_text(
            "pages:\n"
            "  - id: p1\n"
            "    page_number: 1\n"
            "    title: P\n"
            "    questions:\n"
            "      - id: q\n"
            "        question_type: text\n"
            "        question_text: Q\n"
            "        conditional_logic:\n"
            "          show_if:\n"
            "            - {question_id: ghost, operator: is_empty}\n",
            encoding="utf-8",
        )
        with caplog.at_level(logging.WARNING):
            template = await YamlTemplateLoader(tmp_path).load("refs")
        assert template.id == "refs"
        assert "ghost" in caplog.text

    @pytest.mark.asyncio
    async def test_unknown_operator_loads_and_is_logged(self, tmp_path, caplog):
        (tmp_path / "ops.yaml").write_text(
            "pages:\n"
            "  - id: p1\n"
            "    page_number: 1\n"
            "    title: P\n"
            "    questions:\n"
            "      - id: a\n"
            "        question_type: text\n"
            "        question_text: A\n"
            "      - id: b\n"
            "        question_type: text\n"
            "        question_text: B\n"
            "        conditional_logic:\n"
            "          show_if:\n"
            "            - {question_id: a, operator: starts_with, value: x}\n",
            encoding="utf-8",
        )
        with caplog.at_level(logging.WARNING):
            template = await YamlTemplateLoader(tmp_path).load("ops")
        assert template.find_question("b").conditional_logic.show_if[0].operator == "starts_with"
        assert 'Unknown operator "starts_with"' in caplog.text


def test_load_yaml_missing(tmp_path):
    with pytest.raises(FileNotFoundError, match="Missing YAML file"):
        load_yaml(tmp_path / "nope.yaml")
