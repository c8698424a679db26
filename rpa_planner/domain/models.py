from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Iterator

from rpa_planner.domain.errors import require_non_negative


class ActivityStatus(str, Enum):
    PENDIENTE = "PENDIENTE"
    EN_PROGRESO = "EN_PROGRESO"
    COMPLETADO = "COMPLETADO"
    BLOQUEADO = "BLOQUEADO"


class PhaseType(str, Enum):
    PREPARE = "PREPARE"
    CONNECT = "CONNECT"
    REALIZE = "REALIZE"
    RUN = "RUN"


class ProjectStatus(str, Enum):
    PLANIFICACION = "PLANIFICACION"
    EN_PROGRESO = "EN_PROGRESO"
    PAUSADO = "PAUSADO"
    COMPLETADO = "COMPLETADO"
    CANCELADO = "CANCELADO"


class EventCategory(str, Enum):
    BLOCKER = "BLOCKER"
    RISK = "RISK"
    PAUSE = "PAUSE"
    CHANGE = "CHANGE"
    ISSUE = "ISSUE"
    ABSENCE = "ABSENCE"
    MILESTONE = "MILESTONE"


class Priority(str, Enum):
    CRITICO = "CRITICO"
    ALTO = "ALTO"
    MEDIO = "MEDIO"
    BAJO = "BAJO"


class EventStatus(str, Enum):
    ABIERTO = "ABIERTO"
    EN_PROGRESO = "EN_PROGRESO"
    RESUELTO = "RESUELTO"
    CERRADO = "CERRADO"


# Only these categories move dates when resolved.
SCHEDULE_AFFECTING_CATEGORIES: frozenset[EventCategory] = frozenset(
    {EventCategory.BLOCKER, EventCategory.PAUSE}
)
OPEN_EVENT_STATUSES: frozenset[EventStatus] = frozenset({EventStatus.ABIERTO, EventStatus.EN_PROGRESO})
CLOSED_EVENT_STATUSES: frozenset[EventStatus] = frozenset({EventStatus.RESUELTO, EventStatus.CERRADO})
SHIFTABLE_STATUSES: frozenset[ActivityStatus] = frozenset(
    {ActivityStatus.PENDIENTE, ActivityStatus.EN_PROGRESO}
)


@dataclass(frozen=True)
class Holiday:
    """A non-working calendar day."""

    day: date
    name: str
    recurring: bool = False

    @property
    def year(self) -> int:
        return self.day.year


@dataclass(frozen=True)
class Schedule:
    """The current, editable plan of an activity."""

    start: date | None = None
    end: date | None = None
    duration_days: int = 0

    def __post_init__(self) -> None:
        require_non_negative("duration_days", self.duration_days)


@dataclass(frozen=True)
class Baseline:
    """Write-once snapshot of a schedule; replaced only by a re-baseline."""

    start: date | None
    end: date | None
    duration: int
    locked: bool = True


@dataclass
class Activity:
    code: str
    name: str
    schedule: Schedule = field(default_factory=Schedule)
    status: ActivityStatus = ActivityStatus.PENDIENTE
    progress: int = 0
    baseline: Baseline | None = None
    order: int = 0
    participation_type: str | None = None

    def __post_init__(self) -> None:
        if not 0 <= self.progress <= 100:
            raise ValueError(f"progress must be within 0..100, got {self.progress}")

    @property
    def start_date(self) -> date | None:
        return self.schedule.start

    @property
    def end_date(self) -> date | None:
        return self.schedule.end

    @property
    def duration_days(self) -> int:
        return self.schedule.duration_days

    @property
    def is_locked(self) -> bool:
        return self.baseline is not None and self.baseline.locked

    @property
    def baseline_start_date(self) -> date | None:
        return self.baseline.start if self.baseline is not None else None

    @property
    def baseline_end_date(self) -> date | None:
        return self.baseline.end if self.baseline is not None else None

    @property
    def baseline_duration(self) -> int | None:
        return self.baseline.duration if self.baseline is not None else None

    @property
    def is_completed(self) -> bool:
        return self.status == ActivityStatus.COMPLETADO

    def reschedule(
        self,
        start: date | None,
        end: date | None,
        duration_days: int | None = None,
    ) -> Schedule:
        """Replace the current schedule. The baseline is left alone."""
        self.schedule = Schedule(
            start=start,
            end=end,
            duration_days=self.schedule.duration_days if duration_days is None else duration_days,
        )
        return self.schedule


@dataclass
class Phase:
    name: str
    type: PhaseType
    order: int
    activities: list[Activity] = field(default_factory=list)

    def find(self, code: str) -> Activity | None:
        for a in self.activities:
            if a.code == code:
                return a
        return None


@dataclass(frozen=True)
class ProjectBaseline:
    start: date
    end: date
    total_days: int


@dataclass(frozen=True)
class DisruptiveEvent:
    """A logged incident ("blocker") that may slip the schedule."""

    id: str
    project_id: str
    category: EventCategory
    title: str = ""
    priority: Priority | None = None
    status: EventStatus = EventStatus.ABIERTO
    impact_days: int | None = None
    impact_cost: float | None = None
    type: str = ""
    resolved_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.impact_days is not None:
            require_non_negative("impact_days", self.impact_days)

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_EVENT_STATUSES

    @property
    def is_schedule_affecting(self) -> bool:
        return self.category in SCHEDULE_AFFECTING_CATEGORIES

    @property
    def pending_impact(self) -> int:
        return self.impact_days or 0

    def with_status(self, status: EventStatus, **changes: object) -> "DisruptiveEvent":
        return replace(self, status=status, **changes)


@dataclass
class Project:
    id: str
    name: str
    start_date: date | None = None
    end_date: date | None = None
    status: ProjectStatus = ProjectStatus.PLANIFICACION
    phases: list[Phase] = field(default_factory=list)
    events: list[DisruptiveEvent] = field(default_factory=list)
    baseline: ProjectBaseline | None = None

    @property
    def baseline_start_date(self) -> date | None:
        return self.baseline.start if self.baseline is not None else None

    @property
    def baseline_end_date(self) -> date | None:
        return self.baseline.end if self.baseline is not None else None

    @property
    def baseline_total_days(self) -> int | None:
        return self.baseline.total_days if self.baseline is not None else None

    def iter_activities(self) -> Iterator[Activity]:
        for phase in self.phases:
            yield from phase.activities

    def phase(self, phase_type: PhaseType) -> Phase | None:
        for p in self.phases:
            if p.type == phase_type:
                return p
        return None

    def find_event(self, event_id: str) -> DisruptiveEvent | None:
        for e in self.events:
            if e.id == event_id:
                return e
        return None

    def replace_event(self, event: DisruptiveEvent) -> None:
        for i, e in enumerate(self.events):
            if e.id == event.id:
                self.events[i] = event
                return
        self.events.append(event)
