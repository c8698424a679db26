"""Disruptive events: schedule shifts on resolution and the pause state machine.

Resolving an event is split in two steps. :func:`resolve` is a pure function
that returns what must change (the updated event plus the list of activity
shifts); :func:`apply_resolution` applies that plan to the project as a unit.
The triggering event's ``impact_days`` is the guard: it is reset to 0 when
the plan is applied, and a zero impact never produces a shift, so replaying a
resolution is harmless.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from rpa_planner.domain.errors import (
    DuplicateEventError,
    InvalidTransitionError,
    StaleScheduleError,
    require_non_negative,
)
from rpa_planner.domain.models import (
    CLOSED_EVENT_STATUSES,
    SHIFTABLE_STATUSES,
    DisruptiveEvent,
    EventCategory,
    EventStatus,
    PhaseType,
    Priority,
    Project,
    ProjectStatus,
    Schedule,
)
from rpa_planner.scheduling.hierarchy import roll_up_phase


logger = logging.getLogger(__name__)

# Statuses the pause state machine is allowed to flip between.
_MANAGED_PROJECT_STATUSES = frozenset(
    {ProjectStatus.PLANIFICACION, ProjectStatus.EN_PROGRESO, ProjectStatus.PAUSADO}
)


@dataclass(frozen=True)
class ActivityShift:
    phase_type: PhaseType
    code: str
    old: Schedule
    new: Schedule


@dataclass(frozen=True)
class StatusTransition:
    project_id: str
    old: ProjectStatus
    new: ProjectStatus


@dataclass(frozen=True)
class Resolution:
    """Everything resolving one event changes, not yet applied."""

    event: DisruptiveEvent
    shift_days: int
    shifts: tuple[ActivityShift, ...] = ()
    old_project_end: date | None = None
    new_project_end: date | None = None
    consumed_event_ids: tuple[str, ...] = ()

    @property
    def moves_schedule(self) -> bool:
        return self.shift_days > 0


@dataclass(frozen=True)
class ResolutionResult:
    event: DisruptiveEvent
    shifted_activities: int
    shift_days: int
    status_transition: StatusTransition | None = None


# --- Pause state machine ------------------------------------------------------


def pauses_project(event: DisruptiveEvent) -> bool:
    """Critical blockers and pauses hold the project while they are open."""
    if not event.is_open:
        return False
    if event.category == EventCategory.PAUSE:
        return True
    return event.category == EventCategory.BLOCKER and event.priority == Priority.CRITICO


def open_pausing_events(project: Project) -> list[DisruptiveEvent]:
    return [e for e in project.events if pauses_project(e)]


def sync_project_status(project: Project) -> StatusTransition | None:
    """PAUSADO while any pausing event is open; back to EN_PROGRESO once none is."""
    if project.status not in _MANAGED_PROJECT_STATUSES:
        return None

    old = project.status
    if open_pausing_events(project):
        new = ProjectStatus.PAUSADO
    elif old == ProjectStatus.PAUSADO:
        new = ProjectStatus.EN_PROGRESO
    else:
        return None

    if new == old:
        return None
    project.status = new
    logger.info("Project %s: status %s -> %s", project.id, old.value, new.value)
    return StatusTransition(project_id=project.id, old=old, new=new)


def report_event(project: Project, event: DisruptiveEvent) -> StatusTransition | None:
    """Attach a new event to the project and re-evaluate the pause state.

    An id the project already holds raises :class:`DuplicateEventError`;
    recorded events change only through the lifecycle helpers.
    """
    if event.project_id != project.id:
        raise ValueError(f"Event {event.id} belongs to project {event.project_id}, not {project.id}")
    if project.find_event(event.id) is not None:
        raise DuplicateEventError(event.id, project.id)
    project.events.append(event)
    return sync_project_status(project)


def start_event(event: DisruptiveEvent) -> DisruptiveEvent:
    if event.status == EventStatus.EN_PROGRESO:
        return event
    if event.status != EventStatus.ABIERTO:
        raise InvalidTransitionError(event.id, event.status.value, EventStatus.EN_PROGRESO.value)
    return event.with_status(EventStatus.EN_PROGRESO)


def close_event(event: DisruptiveEvent, closed_at: datetime | None = None) -> DisruptiveEvent:
    if event.status == EventStatus.CERRADO:
        return event
    if event.status != EventStatus.RESUELTO:
        raise InvalidTransitionError(event.id, event.status.value, EventStatus.CERRADO.value)
    return event.with_status(EventStatus.CERRADO, resolved_at=event.resolved_at or closed_at)


# --- Shifting -----------------------------------------------------------------


def _shift(d: date | None, days: int) -> date | None:
    return d + timedelta(days=days) if d is not None else None


def plan_shift(project: Project, days: int) -> tuple[ActivityShift, ...]:
    """Shifts moving every pending or in-progress activity ``days`` calendar days later."""
    require_non_negative("impact_days", days)
    if days == 0:
        return ()
    shifts: list[ActivityShift] = []
    for phase in project.phases:
        for a in phase.activities:
            if a.status not in SHIFTABLE_STATUSES:
                continue
            new = Schedule(
                start=_shift(a.start_date, days),
                end=_shift(a.end_date, days),
                duration_days=a.duration_days,
            )
            shifts.append(ActivityShift(phase_type=phase.type, code=a.code, old=a.schedule, new=new))
    return tuple(shifts)


def _consumable_events(project: Project, resolved: DisruptiveEvent) -> list[DisruptiveEvent]:
    events = [resolved if e.id == resolved.id else e for e in project.events]
    if project.find_event(resolved.id) is None:
        events.append(resolved)
    return [
        e
        for e in events
        if e.is_schedule_affecting and e.status in CLOSED_EVENT_STATUSES and e.pending_impact > 0
    ]


def resolve(event: DisruptiveEvent, project: Project, resolved_at: datetime) -> Resolution:
    """Compute the resolution of ``event`` without touching ``project``.

    An event already resolved or closed resolves to itself with no shifts.
    """
    if event.status in CLOSED_EVENT_STATUSES:
        return Resolution(event=event, shift_days=0)

    resolved = event.with_status(EventStatus.RESUELTO, resolved_at=resolved_at)
    days = event.pending_impact if event.is_schedule_affecting else 0
    if days == 0:
        return Resolution(event=resolved, shift_days=0)

    consumed = _consumable_events(project, resolved)
    return Resolution(
        event=resolved.with_status(EventStatus.RESUELTO, impact_days=0),
        shift_days=days,
        shifts=plan_shift(project, days),
        old_project_end=project.end_date,
        new_project_end=_shift(project.end_date, days),
        consumed_event_ids=tuple(e.id for e in consumed),
    )


def _already_applied(project: Project, resolution: Resolution) -> bool:
    current = project.find_event(resolution.event.id)
    return (
        current is not None
        and current.status in CLOSED_EVENT_STATUSES
        and current.pending_impact == 0
    )


def _apply_shifts(
    project: Project,
    shifts: tuple[ActivityShift, ...],
    old_end: date | None,
    new_end: date | None,
) -> int:
    # Check every target first so a stale plan writes nothing.
    targets = []
    for shift in shifts:
        phase = project.phase(shift.phase_type)
        activity = phase.find(shift.code) if phase is not None else None
        if activity is None or activity.schedule != shift.old:
            raise StaleScheduleError(
                f"Project {project.id}: activity {shift.code} changed since the shift was planned"
            )
        targets.append((activity, shift.new))
    if project.end_date != old_end:
        raise StaleScheduleError(f"Project {project.id}: end date changed since the shift was planned")

    for activity, new in targets:
        activity.schedule = new
    for phase in project.phases:
        roll_up_phase(phase.activities)
    project.end_date = new_end
    return len(targets)


def apply_resolution(project: Project, resolution: Resolution) -> ResolutionResult:
    """Apply a :class:`Resolution` to ``project`` as a single unit.

    All targets are checked against the schedule the plan was computed from
    before anything is written; a mismatch raises
    :class:`~rpa_planner.domain.errors.StaleScheduleError` and leaves the
    project untouched.
    """
    if resolution.moves_schedule and _already_applied(project, resolution):
        logger.info(
            "Project %s: event %s already applied, skipping %+d day shift",
            project.id,
            resolution.event.id,
            resolution.shift_days,
        )
        current = project.find_event(resolution.event.id) or resolution.event
        return ResolutionResult(event=current, shifted_activities=0, shift_days=0)

    shifted = 0
    if resolution.moves_schedule:
        shifted = _apply_shifts(
            project,
            resolution.shifts,
            resolution.old_project_end,
            resolution.new_project_end,
        )

    project.replace_event(resolution.event)
    for event_id in resolution.consumed_event_ids:
        e = project.find_event(event_id)
        if e is not None and e.pending_impact > 0:
            project.replace_event(e.with_status(e.status, impact_days=0))

    transition = sync_project_status(project)

    if resolution.moves_schedule:
        logger.info(
            "Project %s: event %s resolved, shifted %d activities by %d day(s)",
            project.id,
            resolution.event.id,
            shifted,
            resolution.shift_days,
        )
    return ResolutionResult(
        event=resolution.event,
        shifted_activities=shifted,
        shift_days=resolution.shift_days,
        status_transition=transition,
    )


def shift_project(project: Project, days: int) -> int:
    """Shift open work and the project end by ``days`` outside any event flow."""
    shifts = plan_shift(project, days)
    if days == 0:
        return 0
    return _apply_shifts(project, shifts, project.end_date, _shift(project.end_date, days))
