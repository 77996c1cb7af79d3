"""YamlTemplateLoader — reads questionnaire templates from ``templates/``.

Each template lives in its own file, ``<template_dir>/<template_id>.yaml``::

    id: dental_consultation
    name: Dental Consultation
    pages:
      - id: p1
        page_number: 1
        title: About you
        questions:
          - id: full_name
            question_type: text
            question_text: Full name
            required: true

Usage::

    loader = YamlTemplateLoader()             # defaults to templates/ at repo root
    template = await loader.load("dental_consultation")
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Optional

import yaml

from questionnaire_engine.interfaces import TemplateLoader
from questionnaire_engine.models import Template

logger = logging.getLogger(__name__)

_TEMPLATE_ID = re.compile(r"^[A-Za-z0-9_\-]+$")


# ---------------------------------------------------------------------------
# Utility helpers
# ---------------------------------------------------------------------------

def find_repo_root(start: Optional[Path] = None) -> Path:
    """Walk upwards from *start* to the directory holding pyproject.toml or .git.

    Falls back to cwd if no marker is found.
    """
    p = (start or Path(__file__).resolve()).parent
    for parent in [p, *p.parents]:
        if (parent / "pyproject.toml").exists() or (parent / ".git").exists():
            return parent
    return Path.cwd()


def load_yaml(path: Path | str) -> Any:
    """Load a single YAML file and return the parsed contents."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing YAML file: {path}")
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

class YamlTemplateLoader(TemplateLoader):
    """Loads and validates templates from a directory of YAML files.

    Args:
        template_dir: directory with ``*.yaml`` templates; defaults to
            ``templates/`` at the repository root
    """

    def __init__(self, template_dir: str | Path | None = None) -> None:
        self._dir = Path(template_dir) if template_dir else find_repo_root() / "templates"

    @property
    def template_dir(self) -> Path:
        return self._dir

    def available(self) -> list[str]:
        """Template ids found in the directory, sorted."""
        if not self._dir.is_dir():
            return []
        return sorted(p.stem for p in self._dir.glob("*.yaml"))

    async def load(self, template_id: str) -> Template:
        """Parse ``<template_id>.yaml`` into a :class:`Template`.

        Raises FileNotFoundError for a missing file, ValueError for an
        invalid id, malformed YAML content or a failed model validation.
        """
        if not _TEMPLATE_ID.match(template_id):
            raise ValueError(f"Invalid template id: {template_id!r}")

        raw = load_yaml(self._dir / f"{template_id}.yaml")
        if not isinstance(raw, dict):
            raise ValueError(f"Template {template_id} must be a mapping, got {type(raw).__name__}")
        raw.setdefault("id", template_id)

        template = Template.model_validate(raw)
        for problem in template.logic_problems():
            logger.warning("Template %s: %s", template_id, problem)

        logger.info(
            "Loaded template %s: %d pages, %d questions",
            template.id, template.total_pages, len(template.all_questions()),
        )
        return template
