"""CLI for checking rule sheets and dry-running the matcher."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import httpx
import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from .engine import StubEngine
from .errors import MalformedPatternError
from .logging_utils import configure_logging
from .output_config import get_log_format, get_log_level
from .sheets import RuleSheet, load_sheet

app = typer.Typer(help="Inspect httpstub rule sheets.")

LOG_FORMAT_OPTION = typer.Option(None, "--log-format", help="Log format: console, plain or json.")
LOG_LEVEL_OPTION = typer.Option(None, "--log-level", help="Log level (default WARNING).")


def _load_engine(sheet_path: Path) -> tuple[RuleSheet, StubEngine]:
    try:
        sheet = load_sheet(sheet_path)
    except (ValidationError, ValueError) as exc:
        raise typer.BadParameter(f"Rule sheet {sheet_path} is invalid: {exc}") from exc
    engine = StubEngine()
    try:
        sheet.apply(engine)
    except MalformedPatternError as exc:
        raise typer.BadParameter(str(exc)) from exc
    return sheet, engine


@app.command()
def check(
    sheet: Path = typer.Argument(..., exists=True, readable=True, help="Rule sheet (YAML or JSON)."),
    log_format: Optional[str] = LOG_FORMAT_OPTION,
    log_level: Optional[str] = LOG_LEVEL_OPTION,
) -> None:
    """Validate a rule sheet and list its rules in match order."""

    configure_logging(get_log_level(log_level), get_log_format(log_format))
    _, engine = _load_engine(sheet)

    table = Table(title=str(sheet))
    table.add_column("#", justify="right")
    table.add_column("pattern")
    table.add_column("response")
    for index, rule in enumerate(engine.rules.rules, start=1):
        label = rule.pattern.describe()
        if rule.name:
            label = f"{rule.name} {label}"
        table.add_row(str(index), label, rule.response.summary())
    Console().print(table)
    typer.secho(f"{len(engine.rules)} rule(s) OK", fg=typer.colors.GREEN)


@app.command()
def match(
    sheet: Path = typer.Argument(..., exists=True, readable=True, help="Rule sheet (YAML or JSON)."),
    url: str = typer.Argument(..., help="Absolute request URL."),
    method: str = typer.Option("GET", "--method", "-X", help="Request method."),
    log_format: Optional[str] = LOG_FORMAT_OPTION,
    log_level: Optional[str] = LOG_LEVEL_OPTION,
) -> None:
    """Show which rule of a sheet would answer a request."""

    configure_logging(get_log_level(log_level), get_log_format(log_format))
    _, engine = _load_engine(sheet)

    try:
        request = httpx.Request(method.upper(), url)
    except httpx.InvalidURL as exc:
        raise typer.BadParameter(f"Invalid URL {url!r}: {exc}") from exc
    rule, response = engine.rules.find(request)
    if response is None or rule is None:
        typer.secho(f"No rule matches {method.upper()} {url}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo(f"{rule.describe()} -> {response.summary()}")


def run() -> None:
    """Console_scripts hook."""

    app()


if __name__ == "__main__":  # pragma: no cover
    run()
