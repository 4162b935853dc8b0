"""Command-line front end: validate catalogs, list open decisions and print schedules."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from subjectplan.catalog import build_registry, load_catalog, validate_catalog
from subjectplan.core.config import PlannerConfig, load_planner_config
from subjectplan.core.errors import CatalogError, PlanInvariantError
from subjectplan.core.provenance import AnalysisLogger
from subjectplan.engine.decider import Decider
from subjectplan.engine.describe import instruction, list_contents, reason_description
from subjectplan.engine.options import Subject
from subjectplan.engine.plan import Plan
from subjectplan.engine.time import Time

CONFIG_ENV_VAR = "SUBJECTPLAN_CONFIG"

app = typer.Typer(help="Work out the remaining requisite decisions of a study plan.")
console = Console()

CATALOG_ARGUMENT = typer.Argument(..., exists=True, dir_okay=False, help="Catalog YAML file.")
SELECT_OPTION = typer.Option(
    None, "--select", "-s", help="Subject or course code to select. Repeat for more than one."
)
FORCE_OPTION = typer.Option(
    None, "--force", "-f", help="Pin a subject to a time, e.g. COMP2010=2:S1. Repeatable."
)
CONFIG_OPTION = typer.Option(
    None,
    "--config",
    show_default=False,
    help=f"Planner config YAML (defaults to ${CONFIG_ENV_VAR} when set).",
)
LOG_LEVEL_OPTION = typer.Option(None, "--log-level", help="Override the configured log level.")
JSON_OPTION = typer.Option(False, "--json", help="Emit JSON instead of a table.")


def _resolve_config(path: Optional[Path]) -> PlannerConfig:
    if path is None:
        override = os.environ.get(CONFIG_ENV_VAR)
        if not override:
            return PlannerConfig()
        path = Path(override)
    if not path.expanduser().exists():
        raise typer.BadParameter(f"Planner config not found at {path}")
    try:
        return load_planner_config(path)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _configure_logging(config: PlannerConfig, override: Optional[str]) -> None:
    level = (override or config.log_level).upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format="%(levelname)s %(name)s: %(message)s")


def _parse_force(value: str) -> tuple[str, Time]:
    code, separator, when = value.partition("=")
    if not separator:
        raise typer.BadParameter(f"Expected CODE=YEAR:SESSION, got {value!r}")
    try:
        return code.strip(), Time.parse(when)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


def build_decider(
    catalog_path: Path,
    select: Optional[List[str]] = None,
    force: Optional[List[str]] = None,
    config: Optional[PlannerConfig] = None,
) -> Decider:
    """Load a catalog, apply selections and forced times and run the analysis."""
    config = config or PlannerConfig()
    registry = build_registry(load_catalog(catalog_path))
    provenance = AnalysisLogger(config.provenance_path) if config.provenance_path else None
    decider = Decider(Plan(registry, config), provenance=provenance)

    contents = []
    for code in select or []:
        content = registry.lookup(code)
        if content is None:
            raise typer.BadParameter(f"Unknown subject or course: {code}")
        contents.append(content)
    decider.add_contents(contents)

    for item in force or []:
        code, when = _parse_force(item)
        subject = registry.lookup(code)
        if not isinstance(subject, Subject):
            raise typer.BadParameter(f"Only selected subjects can be forced: {code}")
        decider.force_subject(subject, when)
    return decider


def _run(
    catalog: Path,
    select: Optional[List[str]],
    force: Optional[List[str]],
    config_path: Optional[Path],
    log_level: Optional[str],
) -> Decider:
    config = _resolve_config(config_path)
    _configure_logging(config, log_level)
    try:
        return build_decider(catalog, select, force, config)
    except CatalogError as exc:
        console.print(f"[bold red]Catalog error:[/bold red] {exc}")
        raise typer.Exit(code=1) from exc
    except PlanInvariantError as exc:
        console.print(f"[bold red]Planning failed:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc


def decision_rows(decider: Decider) -> List[Dict[str, Any]]:
    plan = decider.plan
    return [
        {
            "instruction": instruction(decision),
            "decision": str(decision),
            "reason": reason_description(decision),
            "elective": decision.elective,
            "options": [str(option) for option in decision.options],
            "available": [str(option) for option in decision.options if decider.is_available(option)],
            "due": str(decision.required_completion_time(plan)),
        }
        for decision in plan.decisions
    ]


@app.command()
def validate(
    catalog: Path = CATALOG_ARGUMENT,
    fail_on_warning: bool = typer.Option(
        False, "--fail-on-warning", help="Exit non-zero when warnings are present."
    ),
) -> None:
    """Lint a catalog for unknown codes, bad sessions and unreachable targets."""
    try:
        errors, warnings = validate_catalog(load_catalog(catalog))
    except CatalogError as exc:
        console.print(f"[bold red]Catalog error:[/bold red] {exc}")
        raise typer.Exit(code=1) from exc
    table = Table(title="Catalog Validation", show_header=True)
    table.add_column("Severity", justify="center")
    table.add_column("Message")
    for issue in errors:
        table.add_row("error", issue, style="bold red")
    for issue in warnings:
        table.add_row("warning", issue, style="yellow")
    console.print(table)

    if errors or (fail_on_warning and warnings):
        raise typer.Exit(code=1)

    console.print("[green]Catalog looks good![/green]")


@app.command()
def decisions(
    catalog: Path = CATALOG_ARGUMENT,
    select: Optional[List[str]] = SELECT_OPTION,
    force: Optional[List[str]] = FORCE_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    log_level: Optional[str] = LOG_LEVEL_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """List the decisions that are still open for the selected content."""
    decider = _run(catalog, select, force, config, log_level)
    rows = decision_rows(decider)
    if as_json:
        typer.echo(json.dumps(rows, indent=2, ensure_ascii=False))
        return
    if not rows:
        console.print("[green]Nothing left to decide.[/green]")
        return
    table = Table("#", "Instruction", "Decision", "Reason", title="Open Decisions")
    for index, row in enumerate(rows, start=1):
        table.add_row(str(index), row["instruction"], row["decision"], row["reason"])
    console.print(table)


@app.command()
def schedule(
    catalog: Path = CATALOG_ARGUMENT,
    select: Optional[List[str]] = SELECT_OPTION,
    force: Optional[List[str]] = FORCE_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    log_level: Optional[str] = LOG_LEVEL_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Print the semester-by-semester placement of every selected subject."""
    decider = _run(catalog, select, force, config, log_level)
    plan = decider.plan
    if as_json:
        typer.echo(json.dumps(plan.to_dict(), indent=2, ensure_ascii=False))
        return
    table = Table("Time", "Subjects", "Credit points", title="Schedule")
    for when, subjects in plan.subjects_in_order.items():
        used = sum(subject.credit_points() for subject in subjects)
        table.add_row(
            str(when),
            list_contents(subjects) or "-",
            f"{used}/{plan.get_max_credit_points(when)}",
        )
    console.print(table)
    remaining = plan.remaining_credit_points()
    if plan.selected_courses:
        console.print(f"[dim]{max(remaining, 0)} credit points still to plan[/dim]")


@app.command()
def banned(
    catalog: Path = CATALOG_ARGUMENT,
    select: Optional[List[str]] = SELECT_OPTION,
    force: Optional[List[str]] = FORCE_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    log_level: Optional[str] = LOG_LEVEL_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Show content that can no longer be taken and what rules it out."""
    decider = _run(catalog, select, force, config, log_level)
    payload = decider.plan.to_dict()["banned"]
    if as_json:
        typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))
        return
    table = Table("Content", "Banned by", title="Banned Content")
    for code, reasons in sorted(payload.items()):
        table.add_row(code, ", ".join(reasons))
    console.print(table)


if __name__ == "__main__":
    app()
