"""Console runner — fill out a YAML questionnaire in the terminal.

Implements every collaborator with rich (renderer, router, confirmation
prompt, announcer) and stores drafts as JSON files, so a template can be
exercised end to end without a host application.  With ``--database`` the
drafts go to PostgreSQL through ``questionnaire_db`` instead.

Usage::

    questionnaire-run dental_consultation
    questionnaire-run dental_consultation --resume sub_1700000000000_abc123
    questionnaire-run dental_consultation --database
    questionnaire-run --list

Commands on each page: a question number to answer it, ``n`` next,
``p`` previous, ``s`` save draft, ``e`` exit.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import mimetypes
import os
from pathlib import Path
from typing import Any, Callable, Literal, Optional

from rich.console import Console
from rich.prompt import Confirm, Prompt
from rich.table import Table
from sqlalchemy.exc import SQLAlchemyError

from questionnaire_db import DatabasePersistence, create_schema, dispose_engine, get_session_factory
from questionnaire_engine.config import configure_logging, load_settings
from questionnaire_engine.engine import QuestionnaireEngine
from questionnaire_engine.errors import PersistenceError, TemplateLoadError
from questionnaire_engine.interfaces import (
    Announcer,
    ConfirmationPrompt,
    PersistenceBackend,
    Renderer,
    Router,
)
from questionnaire_engine.loader import YamlTemplateLoader, find_repo_root
from questionnaire_engine.models import (
    ChoiceQuestion,
    NavigationOutcome,
    NavigationTarget,
    NumberQuestion,
    PageView,
    Question,
    SaveResult,
    SubmissionPayload,
    UploadQuestion,
)
from questionnaire_engine.models.question import is_other_token

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Persistence: one JSON file per submission token
# ---------------------------------------------------------------------------

class JsonFilePersistence(PersistenceBackend):
    """Writes ``<data_dir>/<submission_token>.json``.

    Files are replaced atomically, so saving the same payload twice leaves
    the same file behind.
    """

    def __init__(self, data_dir: str | Path) -> None:
        self._dir = Path(data_dir)

    def path_for(self, submission_token: str) -> Path:
        return self._dir / f"{submission_token}.json"

    async def save(self, payload: SubmissionPayload) -> SaveResult:
        current = self.load(payload.submission_token)
        if current is not None and current.get("is_complete"):
            return SaveResult.failure("Submission is already complete")
        self._write(payload)
        return SaveResult.success()

    async def complete(self, payload: SubmissionPayload) -> SaveResult:
        current = self.load(payload.submission_token)
        if current is not None and current.get("is_complete"):
            # Completing twice keeps the first submission
            return SaveResult.success()
        self._write(payload)
        return SaveResult.success()

    def load(self, submission_token: str) -> Optional[dict]:
        path = self.path_for(submission_token)
        if not path.exists():
            return None
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)

    async def load_draft(self, submission_token: str) -> Optional[dict]:
        """Resume data for an unfinished draft; None if unknown or complete."""
        data = self.load(submission_token)
        if data is None or data.get("is_complete"):
            return None
        return data

    def _write(self, payload: SubmissionPayload) -> None:
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            path = self.path_for(payload.submission_token)
            tmp = path.with_suffix(".json.tmp")
            with tmp.open("w", encoding="utf-8") as f:
                json.dump(payload.model_dump(mode="json"), f, ensure_ascii=False, indent=2)
            os.replace(tmp, path)
        except OSError as exc:
            raise PersistenceError(f"Cannot write draft: {exc}") from exc


# ---------------------------------------------------------------------------
# Console collaborators
# ---------------------------------------------------------------------------

class ConsoleRouter(Router):
    """Remembers the last route; the run loop reads it."""

    def __init__(self, console: Console) -> None:
        self.console = console
        self.current: Optional[NavigationTarget] = None

    async def navigate(self, target: NavigationTarget) -> None:
        self.current = target
        self.console.print(f"[dim]→ {target.path}[/]")


class ConsoleConfirm(ConfirmationPrompt):
    def __init__(self, console: Console) -> None:
        self.console = console

    async def confirm(self, message: str) -> bool:
        return Confirm.ask(f"[yellow]{message}[/]", console=self.console, default=False)


class ConsoleAnnouncer(Announcer):
    def __init__(self, console: Console) -> None:
        self.console = console

    def announce(self, message: str, priority: Literal["polite", "assertive"] = "polite") -> None:
        style = "bold red" if priority == "assertive" else "cyan"
        self.console.print(f"[{style}]» {message}[/]")


class ConsoleRenderer(Renderer):
    """Prints a page as a table and keeps the edit callbacks for the run loop."""

    def __init__(self, console: Console) -> None:
        self.console = console
        self.rows: list[tuple[Question, Callable[[Any], None]]] = []
        self._table: Optional[Table] = None

    def begin(self, view: PageView) -> None:
        self.rows = []
        self._table = Table(title=f"{view.page.title}  ({view.page_index}/{view.total_pages})", show_lines=True)
        self._table.add_column("#", style="dim", width=3)
        self._table.add_column("Question", min_width=30)
        self._table.add_column("Answer", min_width=20)
        self._table.add_column("Error", style="red")

    def render(self, question: Question, value: Any, on_change: Callable[[Any], None], error: Optional[str]) -> None:
        self.rows.append((question, on_change))
        label = question.question_text + (" *" if question.is_required else "")
        if question.help_text:
            label += f"\n[dim]{question.help_text}[/]"
        if isinstance(question, ChoiceQuestion):
            options = ", ".join(f"{i}={o.label}" for i, o in enumerate(question.options, start=1))
            label += f"\n[dim]{options}[/]"
        self._table.add_row(str(len(self.rows)), label, _format_value(value), error or "")

    def finish(self) -> None:
        if self._table is not None:
            self.console.print(self._table)


def _format_value(value: Any) -> str:
    if value is None or value == "" or value == []:
        return "[dim]-[/]"
    if isinstance(value, dict):
        return f"{value.get('value')}: {value.get('otherText', '')}" if "value" in value else value.get("name", "")
    if isinstance(value, list):
        return ", ".join(_format_value(v) for v in value)
    return str(value)


# ---------------------------------------------------------------------------
# Input parsing
# ---------------------------------------------------------------------------

def parse_input(question: Question, text: str) -> Any:
    """Turn typed text into the raw answer shape for *question*.

    Choice questions take option numbers or values, comma-separated for
    multi-select; ``other: <text>`` picks the Other option.  Upload
    questions take comma-separated file paths.
    """
    text = text.strip()
    if isinstance(question, NumberQuestion):
        for cast in (int, float):
            try:
                return cast(text)
            except ValueError:
                continue
        return text

    if isinstance(question, ChoiceQuestion):
        tokens = [t.strip() for t in text.split(",")] if question.allows_multiple else [text]
        selected: list[Any] = [_pick_option(question, t) for t in tokens if t]
        if not question.allows_multiple:
            return selected[0] if selected else ""
        return selected

    if isinstance(question, UploadQuestion):
        return [_describe_file(Path(p.strip())) for p in text.split(",") if p.strip()]

    return text


def _pick_option(question: ChoiceQuestion, token: str) -> Any:
    head, _, rest = token.partition(":")
    if is_other_token(head):
        return {"value": "Other", "otherText": rest.strip()}
    if token.isdigit() and 1 <= int(token) <= len(question.options):
        value = question.options[int(token) - 1].value
        return {"value": value, "otherText": ""} if is_other_token(value) else value
    for opt in question.options:
        if token.lower() in (str(opt.value).lower(), opt.label.lower()):
            return opt.value
    return token


def _describe_file(path: Path) -> dict[str, Any]:
    content_type, _ = mimetypes.guess_type(path.name)
    size = path.stat().st_size if path.exists() else 0
    return {"name": path.name, "size": size, "type": content_type or "application/octet-stream"}


# ---------------------------------------------------------------------------
# Run loop
# ---------------------------------------------------------------------------

async def run(
    template_id: str,
    template_dir: str | None,
    data_dir: str,
    resume: str | None,
    use_database: bool = False,
) -> int:
    """Fill out *template_id*; drafts go to JSON files or, with *use_database*, PostgreSQL."""
    console = Console()
    if not use_database:
        return await _fill(console, template_id, template_dir, JsonFilePersistence(data_dir), resume)

    try:
        try:
            await create_schema()
        except (SQLAlchemyError, OSError) as exc:
            console.print(f"[red]Cannot prepare database: {exc}[/]")
            return 1
        persistence = DatabasePersistence(get_session_factory())
        return await _fill(console, template_id, template_dir, persistence, resume)
    finally:
        await dispose_engine()


async def _fill(
    console: Console,
    template_id: str,
    template_dir: str | None,
    persistence: JsonFilePersistence | DatabasePersistence,
    resume: str | None,
) -> int:
    settings = load_settings()
    engine = QuestionnaireEngine(YamlTemplateLoader(template_dir or settings.template_dir), persistence, settings)

    resume_data = None
    if resume:
        resume_data = await persistence.load_draft(resume)
        if resume_data is None:
            console.print(f"[red]No unfinished draft {resume}[/]")
            return 1

    router = ConsoleRouter(console)
    try:
        controller = await engine.open(
            template_id,
            router=router,
            confirmer=ConsoleConfirm(console),
            announcer=ConsoleAnnouncer(console),
            resume_data=resume_data,
        )
    except TemplateLoadError as exc:
        console.print(f"[red]{exc}[/]")
        return 1

    session = controller.session
    console.rule(f"[bold]{session.template.name or session.template.id}")
    console.print(f"[dim]Draft token: {session.submission_token}[/]")
    renderer = ConsoleRenderer(console)

    try:
        while session.is_active:
            view = controller.page_view()
            renderer.begin(view)
            controller.render(renderer)
            renderer.finish()
            console.print(
                f"[dim]{view.completion_percentage:.0f}% complete · "
                f"{view.time_spent_minutes} min spent"
                f"{' · unsaved changes' if view.is_dirty else ''}[/]"
            )

            command = Prompt.ask("Question #, [n]ext, [p]revious, [s]ave, [e]xit", console=console).strip().lower()
            if command.isdigit() and 1 <= int(command) <= len(renderer.rows):
                question, on_change = renderer.rows[int(command) - 1]
                text = Prompt.ask(question.question_text, console=console, default="")
                before = session.revision
                on_change(parse_input(question, text))
                if session.revision == before:
                    console.print("[yellow]Answer not accepted (too long)[/]")
            elif command == "n":
                try:
                    await controller.next()
                except PersistenceError as exc:
                    console.print(f"[red]{exc}[/]")
            elif command == "p":
                if await controller.previous() == NavigationOutcome.BLOCKED:
                    console.print("[yellow]Going back is not allowed on this page[/]")
            elif command == "s":
                await controller.save_draft()
            elif command == "e":
                await controller.exit()
    finally:
        controller.close()

    if router.current is not None and router.current.kind == "complete":
        console.print("[green]Thank you, your answers were submitted.[/]")
    else:
        console.print(f"[dim]Resume later with --resume {session.submission_token}[/]")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Fill out a questionnaire template in the terminal")
    parser.add_argument("template_id", nargs="?", help="Template id (file name without .yaml)")
    parser.add_argument("--template-dir", default=None, help="Directory with template YAML files")
    parser.add_argument(
        "--data-dir",
        default=str(find_repo_root() / ".drafts"),
        help="Directory for draft JSON files (default: .drafts/)",
    )
    parser.add_argument("--resume", default=None, help="Submission token of a saved draft")
    parser.add_argument("--database", action="store_true", help="Store drafts in PostgreSQL (DATABASE_URL or PG_*)")
    parser.add_argument("--list", action="store_true", help="List available templates and exit")
    args = parser.parse_args()

    configure_logging(load_settings().log_level)

    if args.list or not args.template_id:
        loader = YamlTemplateLoader(args.template_dir)
        for name in loader.available():
            print(name)
        return

    raise SystemExit(asyncio.run(
        run(args.template_id, args.template_dir, args.data_dir, args.resume, use_database=args.database)
    ))


if __name__ == "__main__":
    main()
