from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from rpa_planner.common.logging_config import configure_logging
from rpa_planner.common.time_utils import parse_iso_date, today_in
from rpa_planner.config import PlannerConfig
from rpa_planner.domain.models import ActivityStatus, Project
from rpa_planner.progress.calculator import ProgressReport, compute_progress
from rpa_planner.scheduling.editing import update_activity_progress
from rpa_planner.scheduling.holidays import holidays_for_years
from rpa_planner.scheduling.planner import build_project, project_holidays
from rpa_planner.scheduling.template import PhaseDurations
from rpa_planner.scheduling.working_days import count_working_days


app = typer.Typer(add_completion=False)
console = Console()

_EXAMPLE_CONFIG = Path(__file__).resolve().parent / "planner_config.example.toml"


def _load_config(config: Optional[str]) -> PlannerConfig:
    if config is None:
        cfg = PlannerConfig()
    else:
        path = Path(config).expanduser()
        if not path.exists():
            raise typer.BadParameter(f"Config file not found: {path}")
        cfg = PlannerConfig.load(path)
    configure_logging(cfg.logging.level, cfg.logging.log_dir)
    return cfg


def _parse_date(value: str, option: str) -> date:
    try:
        return parse_iso_date(value)
    except ValueError as exc:
        raise typer.BadParameter(f"{option} must be YYYY-MM-DD, got {value!r}") from exc


def _durations(
    cfg: PlannerConfig,
    prepare: Optional[int],
    connect: Optional[int],
    realize: Optional[int],
    run: Optional[int],
) -> PhaseDurations | None:
    given = (prepare, connect, realize, run)
    if all(v is None for v in given):
        return cfg.template.phase_durations
    if any(v is None for v in given):
        raise typer.BadParameter("--prepare, --connect, --realize and --run go together")
    return PhaseDurations(prepare=prepare, connect=connect, realize=realize, run=run)


def _plan(cfg: PlannerConfig, start: date, durations: PhaseDurations | None) -> Project:
    extra = cfg.calendar.holidays()
    holidays = project_holidays(start, extra) if cfg.calendar.include_peru_holidays else extra
    return build_project(
        project_id="cli",
        name="RPA",
        start_date=start,
        holidays=holidays,
        phase_durations=durations,
    )


def _fmt_date(d: date | None) -> str:
    return d.strftime("%d/%m/%Y") if d is not None else "-"


def _plan_table(project: Project) -> Table:
    table = Table(title=f"Plan {_fmt_date(project.start_date)} -> {_fmt_date(project.end_date)}")
    table.add_column("Fase", no_wrap=True)
    table.add_column("Código", no_wrap=True)
    table.add_column("Actividad")
    table.add_column("Días", justify="right", no_wrap=True)
    table.add_column("Inicio", no_wrap=True)
    table.add_column("Fin", no_wrap=True)
    table.add_column("Estado", no_wrap=True)
    for phase in project.phases:
        for a in phase.activities:
            table.add_row(
                phase.name,
                a.code,
                a.name,
                str(a.duration_days),
                _fmt_date(a.start_date),
                _fmt_date(a.end_date),
                a.status.value,
            )
    return table


def _progress_table(report: ProgressReport) -> Table:
    table = Table(title=f"Avance al {_fmt_date(report.as_of)}", show_header=False)
    table.add_column("Indicador", no_wrap=True)
    table.add_column("Valor")
    table.add_row("Avance real", f"{report.actual:g}%")
    table.add_row("Avance estimado", f"{report.estimated:g}%")
    table.add_row("Actividades atrasadas", str(report.delayed_activities))
    table.add_row("Actividades en alcance", str(report.in_scope_activities))
    table.add_row("Estado", f"{report.variance.label} ({report.variance.status.value})")
    table.add_row("Detalle", report.variance.description)
    return table


@app.command()
def plan(
    start: str = typer.Option(..., help="Kickoff date, YYYY-MM-DD"),
    prepare: Optional[int] = typer.Option(None, min=1, help="Working days for PREPARE"),
    connect: Optional[int] = typer.Option(None, min=1, help="Working days for CONNECT"),
    realize: Optional[int] = typer.Option(None, min=1, help="Working days for REALIZE"),
    run: Optional[int] = typer.Option(None, min=1, help="Working days for RUN"),
    config: Optional[str] = typer.Option(None, help="Path to planner_config.toml"),
) -> None:
    """Generate the SAM plan for a project starting on START."""
    cfg = _load_config(config)
    project = _plan(cfg, _parse_date(start, "--start"), _durations(cfg, prepare, connect, realize, run))
    console.print(_plan_table(project))


@app.command()
def progress(
    start: str = typer.Option(..., help="Kickoff date, YYYY-MM-DD"),
    today: Optional[str] = typer.Option(None, help="Evaluation date; defaults to today in the configured zone"),
    done: str = typer.Option("", help="Comma-separated activity codes to mark as completed"),
    config: Optional[str] = typer.Option(None, help="Path to planner_config.toml"),
) -> None:
    """Plan a project and report estimated against actual progress."""
    cfg = _load_config(config)
    project = _plan(cfg, _parse_date(start, "--start"), cfg.template.phase_durations)

    for code in (c.strip() for c in done.split(",")):
        if not code:
            continue
        phase = next((p for p in project.phases if p.find(code) is not None), None)
        if phase is None:
            raise typer.BadParameter(f"Unknown activity code: {code}")
        update_activity_progress(phase, code, 100, ActivityStatus.COMPLETADO)

    as_of = _parse_date(today, "--today") if today else today_in(cfg.calendar.timezone)
    report = compute_progress(project, as_of, cfg.progress.variance_threshold)
    console.print(_progress_table(report))


@app.command("working-days")
def working_days(
    start: str = typer.Argument(..., help="First day, YYYY-MM-DD"),
    end: str = typer.Argument(..., help="Last day, YYYY-MM-DD"),
    config: Optional[str] = typer.Option(None, help="Path to planner_config.toml"),
) -> None:
    """Count working days between START and END, both included."""
    cfg = _load_config(config)
    first, last = _parse_date(start, "START"), _parse_date(end, "END")
    extra = cfg.calendar.holidays()
    holidays = extra
    if cfg.calendar.include_peru_holidays:
        holidays = holidays_for_years(range(first.year, last.year + 1), extra=extra)
    typer.echo(str(count_working_days(first, last, holidays)))


@app.command()
def init_config(
    path: str = typer.Argument(
        "planner_config.toml",
        help="Where to write the planner configuration TOML",
    ),
) -> None:
    """Write an example planner_config.toml."""
    if not _EXAMPLE_CONFIG.exists():
        raise RuntimeError(f"Missing template file: {_EXAMPLE_CONFIG}")

    out = Path(path).expanduser()
    if out.exists():
        raise typer.BadParameter(f"Refusing to overwrite existing file: {out}")

    out.write_text(_EXAMPLE_CONFIG.read_text(encoding="utf-8"), encoding="utf-8")
    typer.echo(f"Wrote {out} (edit it, then run: rpa-planner plan --start YYYY-MM-DD --config {out})")


if __name__ == "__main__":
    app()
