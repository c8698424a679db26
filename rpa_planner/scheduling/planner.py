from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Iterable, Sequence

from rpa_planner.domain.models import (
    Activity,
    ActivityStatus,
    Holiday,
    Phase,
    PhaseType,
    Project,
    ProjectStatus,
    Schedule,
)
from rpa_planner.scheduling.hierarchy import roll_up_phase
from rpa_planner.scheduling.holidays import holidays_for_years
from rpa_planner.scheduling.template import (
    SAM_TEMPLATE,
    ActivityTemplate,
    PhaseDurations,
    PhaseTemplate,
    default_phase_durations,
    generate_scaled_template,
)
from rpa_planner.scheduling.working_days import (
    HolidayLike,
    calculate_end_date,
    calculate_start_date,
    holiday_dates,
)


logger = logging.getLogger(__name__)

_ONE_DAY = timedelta(days=1)


def project_holidays(start_date: date, extra: Iterable[Holiday] = ()) -> list[Holiday]:
    """Holidays a new plan is computed against: Peru's for the year before, of and after the start."""
    return holidays_for_years(
        (start_date.year - 1, start_date.year, start_date.year + 1),
        extra=extra,
    )


def _activity(tpl: ActivityTemplate, order: int, start: date | None, end: date | None) -> Activity:
    return Activity(
        code=tpl.code,
        name=tpl.name,
        schedule=Schedule(start=start, end=end, duration_days=tpl.default_duration),
        status=ActivityStatus.PENDIENTE,
        progress=0,
        order=order,
        participation_type=tpl.participation_type.value,
    )


def schedule_prepare_phase(phase: PhaseTemplate, project_start: date, holidays: frozenset[date]) -> Phase:
    """Lay out PREPARE backwards so its last activity ends the day before kickoff."""
    current_end = project_start - _ONE_DAY
    dates: dict[str, tuple[date, date]] = {}
    for tpl in reversed([a for a in phase.activities if a.default_duration > 0]):
        start = calculate_start_date(current_end, tpl.default_duration, holidays)
        dates[tpl.code] = (start, current_end)
        current_end = start - _ONE_DAY

    activities = []
    for i, tpl in enumerate(phase.activities):
        start, end = dates.get(tpl.code, (None, None))
        activities.append(_activity(tpl, i + 1, start, end))
    return Phase(name=phase.name, type=phase.type, order=phase.order, activities=activities)


def schedule_forward_phase(
    phase: PhaseTemplate,
    current_start: date,
    holidays: frozenset[date],
) -> tuple[Phase, date]:
    """Chain the phase's activities from ``current_start``.

    Returns the phase and the date the next activity would start on.
    """
    activities = []
    for i, tpl in enumerate(phase.activities):
        start = end = None
        if tpl.default_duration > 0:
            start = current_start
            end = calculate_end_date(start, tpl.default_duration, holidays)
            current_start = end + _ONE_DAY
        activities.append(_activity(tpl, i + 1, start, end))
    return Phase(name=phase.name, type=phase.type, order=phase.order, activities=activities), current_start


def materialize_template(
    template: Sequence[PhaseTemplate],
    start_date: date,
    holidays: Iterable[HolidayLike],
) -> list[Phase]:
    """Date every template row, then set each subdivided Item to the span of its SubItems."""
    hs = holiday_dates(holidays)
    phases: list[Phase] = []
    current_start = start_date
    for phase_tpl in template:
        if phase_tpl.type == PhaseType.PREPARE:
            phases.append(schedule_prepare_phase(phase_tpl, start_date, hs))
            continue
        phase, current_start = schedule_forward_phase(phase_tpl, current_start, hs)
        phases.append(phase)
    for phase in phases:
        roll_up_phase(phase.activities)
    return sorted(phases, key=lambda p: p.order)


def planned_end_date(phases: Iterable[Phase]) -> date | None:
    ends = [
        a.end_date
        for p in phases
        if p.type != PhaseType.PREPARE
        for a in p.activities
        if a.end_date is not None
    ]
    return max(ends) if ends else None


def build_project(
    project_id: str,
    name: str,
    start_date: date,
    holidays: Iterable[HolidayLike] | None = None,
    phase_durations: PhaseDurations | None = None,
    template: Sequence[PhaseTemplate] = SAM_TEMPLATE,
) -> Project:
    """Create a dated plan for a new project.

    ``start_date`` is the kickoff: CONNECT begins on it and PREPARE finishes
    the day before. Durations are scaled per phase when ``phase_durations``
    is given, otherwise the template defaults are used.
    """
    if holidays is None:
        holidays = project_holidays(start_date)
    durations = phase_durations or default_phase_durations(template)
    scaled = generate_scaled_template(durations, template)
    phases = materialize_template(scaled, start_date, holidays)

    project = Project(
        id=project_id,
        name=name,
        start_date=start_date,
        end_date=planned_end_date(phases),
        status=ProjectStatus.PLANIFICACION,
        phases=phases,
    )
    logger.info(
        "Planned project %s: %d phases, %d activities, %s -> %s",
        project_id,
        len(phases),
        sum(len(p.activities) for p in phases),
        project.start_date,
        project.end_date,
    )
    return project
