"""
Root Typer application for the exitguard CLI.

``exitguard check`` runs the fatal foreach scenario under the harness and
exits 1 if the engine tried to terminate the process, or 2 if the
configuration is invalid and the scenario never ran.
"""

from __future__ import annotations

import json
from typing import Any

import typer
from pydantic import ValidationError
from rich.console import Console

from exitguard.core.errors import ConfigError
from exitguard.core.logging import configure_logging
from exitguard.core.settings import ExitGuardSettings, get_settings
from exitguard.engine.conf import parse_master
from exitguard.harness import ExitInterceptionHarness, HarnessOutcome
from exitguard.scenarios import DEFAULT_ITEMS, Fault, build_conf, local_mode_fatal_foreach

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="exitguard",
    help="exitguard — verify a local engine contains fatal task errors without exiting.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("exitguard")
        except PackageNotFoundError:
            v = "0.1.0"
        typer.echo(f"exitguard {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """exitguard CLI — run exit-interception scenarios."""


def _print_outcome(outcome: HarnessOutcome, *, as_json: bool) -> None:
    data: dict[str, Any] = outcome.to_dict()
    if as_json:
        console.print_json(json.dumps(data, default=str))
        return
    console.print("[bold]Outcome[/bold]")
    for key, value in data.items():
        console.print(f"  [cyan]{key}[/cyan]: {value}")


@app.command("check")
def check(
    master: str | None = typer.Option(None, "--master", "-m", help="Engine master, e.g. local[2]."),
    fault: Fault = typer.Option(Fault.LINKAGE, "--fault", "-f", help="Fault injected by the task."),
    target: str | None = typer.Option(None, "--target", "-t", help="Only fail on this item."),
    exit_on_fatal: bool | None = typer.Option(
        None,
        "--exit-on-fatal/--no-exit-on-fatal",
        help="Let the engine's uncaught handler try to exit on fatal errors.",
    ),
    patch_exits: bool | None = typer.Option(
        None,
        "--patch-exits/--no-patch-exits",
        help="Route sys.exit and os._exit through the guard.",
    ),
    log_level: str | None = typer.Option(None, "--log-level"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Run the fatal foreach scenario over One, Two, Three and check nothing tried to exit."""
    overrides: dict[str, Any] = {}
    if master is not None:
        overrides["master"] = master
    if exit_on_fatal is not None:
        overrides["exit_on_fatal_error"] = exit_on_fatal
    if patch_exits is not None:
        overrides["patch_interpreter_exits"] = patch_exits
    if log_level is not None:
        overrides["log_level"] = log_level

    # a scenario that cannot start must not be reported as a pass
    try:
        settings = ExitGuardSettings.model_validate({**get_settings().model_dump(), **overrides})
        conf = build_conf(settings)
        parse_master(settings.master)
    except (ValidationError, ConfigError) as e:
        err_console.print(f"[bold red]Configuration Error:[/bold red] {e}")
        raise typer.Exit(code=2) from e

    configure_logging(level=settings.log_level, json_format=settings.json_logs)

    harness = ExitInterceptionHarness(settings)
    outcome = harness.run(lambda: local_mode_fatal_foreach(conf, fault, DEFAULT_ITEMS, target))
    _print_outcome(outcome, as_json=json_out)

    if not outcome.passed:
        err_console.print("[bold red]FAIL[/bold red]: the engine attempted to exit the process")
        raise typer.Exit(code=1)
    console.print("[bold green]PASS[/bold green]: no process exit attempted")


if __name__ == "__main__":
    app()
