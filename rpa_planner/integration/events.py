from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime


@dataclass(frozen=True)
class DomainEvent:
    """Base type for facts emitted by the planner for other systems to act on."""

    occurred_at: datetime
    project_id: str


# --- Planning -----------------------------------------------------------------


@dataclass(frozen=True)
class ProjectPlanned(DomainEvent):
    start_date: date
    end_date: date | None
    activity_count: int


@dataclass(frozen=True)
class BaselineSet(DomainEvent):
    baseline_end: date | None
    baselined_activities: int
    skipped_activities: tuple[str, ...] = ()


# --- Disruptions ----------------------------------------------------------------


@dataclass(frozen=True)
class ProjectPaused(DomainEvent):
    event_id: str


@dataclass(frozen=True)
class ProjectResumed(DomainEvent):
    event_id: str


@dataclass(frozen=True)
class BlockerRescheduled(DomainEvent):
    event_id: str
    affected_activities: int
    day_delta: int
    new_end_date: date | None = None


# --- Reporting ----------------------------------------------------------------


@dataclass(frozen=True)
class ProgressComputed(DomainEvent):
    as_of: date
    actual: float
    estimated: float
    delayed_activities: int
    status: str
