"""Command-line interface for diyplan."""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path
from typing import Annotated

import typer

from .exceptions import DiyPlanError
from .loader import Plan, load_plan
from .logger import setup_logger
from .report import (
    build_agendas,
    export_schedule_csv,
    format_agenda,
    format_schedule,
    format_sensitivity,
)
from .scheduler import (
    SchedulingEngine,
    SchedulingResult,
    SensitivityEstimator,
    read_snapshot,
    write_snapshot,
)
from .scheduler.availability import localize
from .scheduler.validator import SchedulerInputValidator

app = typer.Typer(
    name="diyplan",
    help="Schedule DIY project tasks onto workers around real calendars",
    add_completion=False,
)

PlanArgument = Annotated[Path, typer.Argument(help="Path to the plan YAML file")]
NowOption = Annotated[
    str | None,
    typer.Option(
        "--now",
        help="Schedule as of this time (ISO date or datetime). Defaults to the plan's "
        "start_time, then the current time",
    ),
]
ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", "-c", help="Standalone scheduler config file"),
]


@app.callback()
def main_callback(
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose",
            "-v",
            help="Verbosity level: 0=silent (default), 1=placements, 2=candidates, 3=debug",
            min=0,
            max=3,
        ),
    ] = 0,
) -> None:
    """Global options for diyplan commands."""
    setup_logger(verbose)


def _parse_now(value: str | None) -> datetime | None:
    """Parse the --now option."""
    if value is None:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        typer.echo(
            f"Error: Invalid --now value '{value}'. Expected ISO format (YYYY-MM-DD[THH:MM])",
            err=True,
        )
        raise typer.Exit(1) from None


def _load(file: Path, config: Path | None) -> Plan:
    try:
        return load_plan(file, config)
    except DiyPlanError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None


def _anchor(plan: Plan, now: datetime | None) -> datetime:
    """Resolve "now" in the plan's timezone, the way the engine does."""
    tz = SchedulerInputValidator(plan.config).parse_timezone(plan.inputs.timezone)
    return localize(plan.inputs.start_time or now or datetime.now(tz), tz)


def _run(plan: Plan, anchor: datetime) -> SchedulingResult:
    try:
        return SchedulingEngine(plan.config).compute_schedule(plan.inputs, anchor)
    except DiyPlanError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None


def _echo_warnings(result: SchedulingResult) -> None:
    if result.warnings:
        typer.echo("\nWarnings:", err=True)
        for warning in result.warnings:
            typer.echo(f"  - {warning}", err=True)


@app.command()
def schedule(  # noqa: PLR0913 - CLI command needs multiple options
    file: PlanArgument = Path("plan.yaml"),
    now: NowOption = None,
    config: ConfigOption = None,
    output_csv: Annotated[
        Path | None,
        typer.Option("--output-csv", help="Export the schedule to a CSV file"),
    ] = None,
    snapshot: Annotated[
        Path | None,
        typer.Option("--snapshot", help="Also write the schedule to a snapshot file"),
    ] = None,
) -> None:
    """Compute a schedule and display it."""
    plan = _load(file, config)
    anchor = _anchor(plan, _parse_now(now))
    result = _run(plan, anchor)

    if output_csv:
        export_schedule_csv(result, output_csv)
        typer.echo(f"Schedule exported to {output_csv}")
    else:
        typer.echo(format_schedule(result, plan.inputs.tasks, anchor.date()))

    if snapshot:
        write_snapshot(snapshot, result, anchor)
        typer.echo(f"Snapshot written to {snapshot}")

    _echo_warnings(result)


@app.command()
def check(
    file: PlanArgument = Path("plan.yaml"),
    now: NowOption = None,
    config: ConfigOption = None,
) -> None:
    """Validate a plan and report whether every task fits before the drop-dead date.

    Exits 1 when the plan is invalid or the schedule is incomplete.
    """
    plan = _load(file, config)
    anchor = _anchor(plan, _parse_now(now))
    result = _run(plan, anchor)

    task_count = len(plan.inputs.tasks)
    if result.is_complete:
        if result.target_completion_date is None:
            typer.echo("OK: nothing to schedule")
        else:
            typer.echo(
                f"OK: {task_count} tasks scheduled, projected completion "
                f"{result.target_completion_date:%Y-%m-%d %H:%M}"
            )
        return

    typer.echo(
        f"Problems: {len(result.unscheduled_tasks)} unscheduled, "
        f"{len(result.deadline_violations)} deadline violation(s)"
    )
    for warning in result.warnings:
        typer.echo(f"  - {warning}")
    raise typer.Exit(1)


@app.command()
def sensitivity(
    file: PlanArgument = Path("plan.yaml"),
    now: NowOption = None,
    config: ConfigOption = None,
) -> None:
    """Show how planning decisions and task estimates move the completion date."""
    plan = _load(file, config)
    anchor = _anchor(plan, _parse_now(now))
    try:
        estimator = SensitivityEstimator(
            plan.inputs, plan.config, risk_tolerance=plan.risk_tolerance, now=anchor
        )
        base = estimator.run()
        decisions = estimator.decision_sensitivity(base)
        tasks = estimator.task_sensitivity()
    except DiyPlanError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None

    typer.echo(format_sensitivity(decisions, tasks))


@app.command()
def agenda(  # noqa: PLR0913 - CLI command needs multiple options
    file: PlanArgument = Path("plan.yaml"),
    now: NowOption = None,
    config: ConfigOption = None,
    days: Annotated[int, typer.Option("--days", "-d", help="Days ahead to show", min=1)] = 7,
    worker: Annotated[
        str | None, typer.Option("--worker", "-w", help="Only show this worker's agenda")
    ] = None,
    snapshot: Annotated[
        Path | None,
        typer.Option(
            "--snapshot",
            help="Reuse this snapshot while it is fresh; regenerate it when stale",
        ),
    ] = None,
) -> None:
    """Show each worker's upcoming work blocks."""
    plan = _load(file, config)
    anchor = _anchor(plan, _parse_now(now))

    result: SchedulingResult | None = None
    if snapshot is not None and snapshot.exists():
        try:
            saved = read_snapshot(snapshot)
        except DiyPlanError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1) from None
        if not saved.is_stale(anchor, plan.config.freshness_hours):
            result = saved.to_result()
        else:
            typer.echo(f"Snapshot {snapshot} is stale, regenerating", err=True)

    if result is None:
        result = _run(plan, anchor)
        if snapshot is not None:
            write_snapshot(snapshot, result, anchor)

    workers = plan.inputs.workers or SchedulerInputValidator(plan.config).default_roster(anchor)
    if worker is not None:
        workers = [w for w in workers if w.id == worker]
        if not workers:
            typer.echo(f"Error: Unknown worker '{worker}'", err=True)
            raise typer.Exit(1)

    agendas = build_agendas(result, plan.inputs.tasks, anchor, anchor + timedelta(days=days))
    for i, member in enumerate(workers):
        if i:
            typer.echo("")
        typer.echo(format_agenda(member, agendas.get(member.id, [])))


def main() -> int:
    """Main entry point."""
    # Typer handles sys.exit() internally
    app()
    return 0


if __name__ == "__main__":
    main()
