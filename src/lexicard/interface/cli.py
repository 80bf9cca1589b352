"""lexicard CLI: import, session, study, stats, config and serve commands."""

import json
import logging
import sys
import time
from pathlib import Path
from typing import Annotated

import typer

from lexicard.application.config import resolve_config
from lexicard.domain.errors import LexicardError
from lexicard.domain.models import Grade, QuizMode, SessionItem
from lexicard.interface._common import _resolve_with_overrides, to_json

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="lexicard: spaced-repetition vocabulary trainer.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(help="Manage lexicard configuration.")
app.add_typer(config_app, name="config")

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

_GRADE_KEYS = {
    "1": Grade.AGAIN,
    "2": Grade.HARD,
    "3": Grade.GOOD,
    "4": Grade.EASY,
    **{g.value: g for g in Grade},
}


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 0,
):
    """Global settings for lexicard."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    if verbose >= 1:
        logging.getLogger("lexicard").setLevel(logging.DEBUG)


def _fail(e: LexicardError) -> None:
    typer.secho(f"Error: {e}", fg="red", err=True)
    raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command("import")
def import_cmd(
    path: Annotated[Path, typer.Argument(help="YAML/JSON file with a list of rows.")],
    label: Annotated[
        str | None, typer.Option(help="Batch label. Defaults to the file name.")
    ] = None,
    backend: Annotated[str | None, typer.Option(help="Storage backend: sqlite, memory.")] = None,
    db_path: Annotated[Path | None, typer.Option(help="SQLite database file.")] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output report as JSON.")] = False,
):
    """[bold green]Import[/bold green] a vocabulary batch, merging duplicates."""
    from lexicard.application.factory import get_content_hasher, get_repository
    from lexicard.application.importer import ImportService
    from lexicard.infrastructure.row_file import load_rows

    config = _resolve_with_overrides(backend=backend, db_path=db_path)
    try:
        rows, content = load_rows(path)
    except (OSError, ValueError) as e:
        typer.secho(f"Could not read {path}: {e}", fg="red", err=True)
        raise typer.Exit(1)

    repo = get_repository(config)
    service = ImportService(
        repo, hasher=get_content_hasher(), preview_limit=config.preview_limit
    )
    try:
        report = service.import_rows(rows, label or path.name, content=content)
    except LexicardError as e:
        _fail(e)

    if json_output:
        typer.echo(to_json(report))
        return

    typer.echo(f"Batch: {report.batch_label}")
    typer.echo(
        f"New: {report.new_count}  Updated: {report.updated_count}  "
        f"Conflicts: {report.conflict_count}  Skipped: {report.skipped_count}"
    )
    for warning in report.warnings:
        typer.secho(f"Warning: {warning}", fg="yellow")


@app.command("session")
def session_cmd(
    size: Annotated[int | None, typer.Option(help="Maximum number of items.")] = None,
    seed: Annotated[int | None, typer.Option(help="Seed for reproducible ordering.")] = None,
    mode: Annotated[QuizMode | None, typer.Option(help="Preferred quiz mode.")] = None,
    db_path: Annotated[Path | None, typer.Option(help="SQLite database file.")] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Compose a practice queue and print it without grading."""
    items = _compose(size=size, seed=seed, mode=mode, db_path=db_path)[1]

    if json_output:
        typer.echo(
            json.dumps(
                [
                    {
                        "card_id": i.card.card_id,
                        "term": i.card.term,
                        "translation": i.card.translation,
                        "mode": i.mode.value,
                        "next_review": i.state.next_review.isoformat(),
                        "reps": i.state.reps,
                    }
                    for i in items
                ],
                indent=2,
                ensure_ascii=False,
            )
        )
        return

    if not items:
        typer.secho("Nothing to study right now.", fg="yellow")
        return
    for n, item in enumerate(items, start=1):
        typer.echo(f"{n:>3}. [{item.mode.value}] {item.card.term}")


@app.command("study")
def study_cmd(
    size: Annotated[int | None, typer.Option(help="Maximum number of items.")] = None,
    seed: Annotated[int | None, typer.Option(help="Seed for reproducible ordering.")] = None,
    mode: Annotated[QuizMode | None, typer.Option(help="Preferred quiz mode.")] = None,
    db_path: Annotated[Path | None, typer.Option(help="SQLite database file.")] = None,
    speak: Annotated[
        bool | None, typer.Option("--speak/--no-speak", help="Read terms aloud in listening mode.")
    ] = None,
):
    """Run an interactive study session: reveal, then grade each item."""
    from lexicard.application.factory import get_speech_player
    from lexicard.application.session import StudySession

    config, items, repo = _compose(size=size, seed=seed, mode=mode, db_path=db_path, speak=speak)
    if not items:
        typer.secho("Nothing to study right now.", fg="yellow")
        return

    session = StudySession(
        repo,
        items,
        speaker=get_speech_player(config),
        reinsert_offset=config.reinsert_offset,
    )
    while (item := session.current()) is not None:
        typer.echo("")
        typer.secho(_prompt_text(item), bold=True)
        started = time.monotonic()
        answer = typer.prompt("Your answer (Enter to reveal, q to quit)", default="", show_default=False)
        if answer.strip().lower() == "q":
            break
        latency = time.monotonic() - started
        session.reveal()
        typer.echo(_answer_text(item, answer))

        grade = None
        while grade is None:
            key = typer.prompt("Grade [1] again [2] hard [3] good [4] easy").strip().lower()
            grade = _GRADE_KEYS.get(key)
        try:
            session.grade(grade, latency)
        except LexicardError as e:
            _fail(e)

    summary = session.summary()
    typer.echo("")
    typer.echo(
        f"Attempted {summary.attempted}, correct {summary.correct} "
        f"({summary.accuracy}%), remaining {summary.remaining}"
    )
    if session.mistakes:
        typer.secho(f"Mistakes ({len(session.mistakes)}):", fg="yellow")
        for card in session.mistakes:
            typer.echo(f"  {card.term} -> {card.translation or ''} {card.phonetic or ''}".rstrip())


@app.command("stats")
def stats_cmd(
    db_path: Annotated[Path | None, typer.Option(help="SQLite database file.")] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Show attempt rollups (7/30/90 days) and the 7-day trend."""
    from lexicard.application.factory import get_repository
    from lexicard.application.stats import StatsAggregator

    config = _resolve_with_overrides(db_path=db_path)
    overview = StatsAggregator(get_repository(config)).overview()

    if json_output:
        typer.echo(to_json(overview))
        return

    for w in overview.windows:
        typer.echo(
            f"{w.days:>3}d  attempts {w.attempts:>5}  correct {w.correct:>5}  "
            f"accuracy {w.accuracy:>3}%  time {w.seconds:.0f}s"
        )
    typer.echo("")
    for point in overview.trend:
        typer.echo(
            f"{point.day.isoformat()}  attempts {point.attempts:>4}  "
            f"correct {point.correct:>4}  due {point.due:>4}"
        )


@app.command("serve")
def serve(
    port: Annotated[int, typer.Option(help="Port to bind the server to.")] = 8778,
    host: Annotated[str, typer.Option(help="Host to bind the server to.")] = "127.0.0.1",
    reload: Annotated[bool, typer.Option(help="Enable auto-reload.")] = False,
):
    """Start the HTTP API."""
    import uvicorn

    uvicorn.run("lexicard.server:app", host=host, port=port, reload=reload)


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show():
    """Display final resolved configuration."""
    config = resolve_config()
    typer.echo(json.dumps(config.model_dump(mode="json"), indent=2))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _compose(**overrides):
    from lexicard.application.factory import get_repository, get_rng
    from lexicard.application.session import compose_session
    from lexicard.domain.ports import utc_now

    seed = overrides.pop("seed", None)
    mode = overrides.pop("mode", None)
    config = _resolve_with_overrides(
        session_size=overrides.pop("size", None), **overrides
    )
    repo = get_repository(config)
    items = compose_session(
        repo,
        config.session_size,
        utc_now(),
        rng=get_rng(config, seed),
        preferred_mode=mode or config.preferred_mode,
        due_ratio=config.due_ratio,
        learning_ratio=config.learning_ratio,
    )
    return config, items, repo


def _prompt_text(item: SessionItem) -> str:
    card = item.card
    if item.mode is QuizMode.TRANSLATION_TO_ENG:
        return f"Spell the English for: {card.translation}"
    if item.mode is QuizMode.PHONETIC:
        return f"Pronunciation of: {card.term}"
    if item.mode is QuizMode.LISTENING:
        return f"Listen and give the meaning: {card.term}"
    return f"Meaning of: {card.term}"


def _answer_text(item: SessionItem, answer: str) -> str:
    card = item.card
    lines = [f"{card.term} -> {card.translation or '(no translation)'}"]
    if card.phonetic:
        lines.append(f"IPA: {card.phonetic}")
    if item.mode is QuizMode.TRANSLATION_TO_ENG and answer.strip():
        ok = answer.strip().lower() == card.term.strip().lower()
        lines.append("Spelling correct." if ok else f"You typed: {answer.strip()}")
    return "\n".join(lines)
