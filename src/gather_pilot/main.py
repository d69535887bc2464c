"""CLI entrypoint for gather-pilot."""

import logging
from collections.abc import Callable
from pathlib import Path

import rich_click as click

from gather_pilot import __version__
from gather_pilot.controllers import (
    GatherCliController,
    GatherPlanCommand,
    GatherRunCommand,
    HistoryInspectCommand,
    HistoryListCommand,
)

click.rich_click.USE_MARKDOWN = True
CONTROLLER = GatherCliController()


@click.group()
@click.version_option(version=__version__, prog_name="gather-pilot")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Root logger level.",
)
def gather_pilot(log_level: str) -> None:
    """Gathering orchestrator CLI."""

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@gather_pilot.command("plan")
@click.option(
    "--plan-file",
    type=click.Path(path_type=Path, exists=True, dir_okay=False),
    required=True,
    help="Gathering plan JSON.",
)
@click.option(
    "--buffer",
    type=click.IntRange(min=0),
    default=None,
    help="Extra items per task on top of what is missing.",
)
def plan(plan_file: Path, buffer: int | None) -> None:
    """Show the ordered task queue, skipped tasks and zone route for a plan."""

    _emit_lines(
        _invoke(
            lambda: CONTROLLER.plan(GatherPlanCommand(plan_file=plan_file, buffer=buffer)),
        ),
    )


@gather_pilot.command("run")
@click.option(
    "--plan-file",
    type=click.Path(path_type=Path, exists=True, dir_okay=False),
    required=True,
    help="Gathering plan JSON.",
)
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option(
    "--max-ticks",
    type=click.IntRange(min=1),
    default=3600,
    show_default=True,
    help="Upper bound on simulated orchestrator ticks.",
)
@click.option(
    "--buffer",
    type=click.IntRange(min=0),
    default=None,
    help="Extra items per task on top of what is missing.",
)
@click.option(
    "--save-history/--no-save-history",
    default=True,
    show_default=True,
    help="Persist the finished session.",
)
def run(
    plan_file: Path,
    db_path: Path | None,
    max_ticks: int,
    buffer: int | None,
    save_history: bool,
) -> None:
    """Run a plan against the simulated engine and print the outcome."""

    _emit_lines(
        _invoke(
            lambda: CONTROLLER.run(
                GatherRunCommand(
                    plan_file=plan_file,
                    db_path=db_path,
                    max_ticks=max_ticks,
                    buffer=buffer,
                    save_history=save_history,
                ),
            ),
        ),
    )


@gather_pilot.group()
def history() -> None:
    """Session history commands."""


@history.command("list")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option(
    "--limit",
    type=click.IntRange(min=1, max=500),
    default=20,
    show_default=True,
    help="Max sessions to list.",
)
def history_list(db_path: Path | None, limit: int) -> None:
    """List recent gathering sessions."""

    _emit_lines(
        _invoke(lambda: CONTROLLER.list_sessions(HistoryListCommand(db_path=db_path, limit=limit))),
    )


@history.command("inspect")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--session-id", required=True, help="Session id.")
def history_inspect(db_path: Path | None, session_id: str) -> None:
    """Inspect one session with its tasks and event stream."""

    _emit_lines(
        _invoke(
            lambda: CONTROLLER.inspect_session(
                HistoryInspectCommand(db_path=db_path, session_id=session_id),
            ),
        ),
    )


def _invoke(action: Callable[[], list[str]]) -> list[str]:
    try:
        return action()
    except (TypeError, ValueError) as error:
        raise click.ClickException(str(error)) from error


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    gather_pilot()
