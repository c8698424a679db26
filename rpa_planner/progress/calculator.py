"""Actual vs. estimated progress of a project.

Both percentages are averages over every activity outside PREPARE, which is
pre-kickoff overhead and never counts as delivered work. ``today`` is always
passed in by the caller (see ``rpa_planner.common.time_utils.today_in``).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Iterable, Sequence

from rpa_planner.common.rounding import round_half_up
from rpa_planner.domain.models import Activity, Phase, PhaseType, Project
from rpa_planner.scheduling.working_days import inclusive_day_count


logger = logging.getLogger(__name__)

DEFAULT_VARIANCE_THRESHOLD = 5.0


class ProgressStatus(str, Enum):
    AHEAD = "ahead"
    ON_TRACK = "on_track"
    BEHIND = "behind"


@dataclass(frozen=True)
class ProgressVariance:
    variance: float
    status: ProgressStatus
    label: str
    description: str


@dataclass(frozen=True)
class ProgressReport:
    project_id: str
    as_of: date
    actual: float
    estimated: float
    delayed_activities: int
    in_scope_activities: int
    variance: ProgressVariance


def in_scope_activities(phases: Iterable[Phase]) -> list[Activity]:
    return [a for p in phases if p.type != PhaseType.PREPARE for a in p.activities]


def actual_progress(phases: Iterable[Phase]) -> float:
    activities = in_scope_activities(phases)
    if not activities:
        return 0.0
    total = sum(100 if a.is_completed else a.progress for a in activities)
    return round_half_up(total / len(activities), 2)


def activity_expected_progress(activity: Activity, today: date) -> float:
    """Where the activity should be today, judged from its date window alone."""
    if activity.is_completed:
        return 100.0
    end = activity.end_date
    if end is None:
        return 0.0
    if end <= today:
        return 100.0
    start = activity.start_date
    if start is None:
        # Future end without a start: no window to interpolate, contributes 0.
        return 0.0
    if today < start:
        return 0.0
    elapsed = inclusive_day_count(start, today)
    total = inclusive_day_count(start, end)
    return min(100.0, elapsed / total * 100)


def estimated_progress(phases: Iterable[Phase], today: date) -> float:
    activities = in_scope_activities(phases)
    if not activities:
        return 0.0
    total = sum(activity_expected_progress(a, today) for a in activities)
    return round_half_up(total / len(activities), 2)


def delayed_activities(phases: Iterable[Phase], today: date) -> int:
    """Activities whose window has elapsed but that are not completed."""
    return sum(
        1
        for a in in_scope_activities(phases)
        if a.end_date is not None and a.end_date <= today and not a.is_completed
    )


def _fmt(value: float) -> str:
    # 12.0 -> "12", 12.5 -> "12.5"
    value = round_half_up(value, 2)
    return str(int(value)) if float(value).is_integer() else f"{value:g}"


def progress_variance(
    estimated: float,
    actual: float,
    delayed: int = 0,
    threshold: float = DEFAULT_VARIANCE_THRESHOLD,
) -> ProgressVariance:
    """Classify actual against estimated progress.

    Any delayed activity makes the project ``behind`` whatever the averages
    say; otherwise the difference is compared with ``threshold`` points.
    """
    variance = round_half_up(actual - estimated, 2)

    if delayed > 0:
        noun = "actividad atrasada" if delayed == 1 else "actividades atrasadas"
        return ProgressVariance(
            variance=variance,
            status=ProgressStatus.BEHIND,
            label=f"{delayed} {noun}",
            description=f"Hay {delayed} {noun} con fecha de fin vencida",
        )

    if variance > threshold:
        return ProgressVariance(
            variance=variance,
            status=ProgressStatus.AHEAD,
            label=f"Adelantado {_fmt(variance)}%",
            description=f"El proyecto está {_fmt(variance)}% por encima de lo estimado",
        )

    if variance < -threshold:
        return ProgressVariance(
            variance=variance,
            status=ProgressStatus.BEHIND,
            label=f"Atrasado {_fmt(abs(variance))}%",
            description=f"El proyecto está {_fmt(abs(variance))}% por debajo de lo estimado",
        )

    return ProgressVariance(
        variance=variance,
        status=ProgressStatus.ON_TRACK,
        label="En linea",
        description="El proyecto avanza segun lo planificado",
    )


def compute_progress(
    project: Project,
    today: date,
    threshold: float = DEFAULT_VARIANCE_THRESHOLD,
) -> ProgressReport:
    actual = actual_progress(project.phases)
    estimated = estimated_progress(project.phases, today)
    delayed = delayed_activities(project.phases, today)
    report = ProgressReport(
        project_id=project.id,
        as_of=today,
        actual=actual,
        estimated=estimated,
        delayed_activities=delayed,
        in_scope_activities=len(in_scope_activities(project.phases)),
        variance=progress_variance(estimated, actual, delayed, threshold),
    )
    logger.debug(
        "Progress %s as of %s: actual=%.2f estimated=%.2f delayed=%d",
        project.id,
        today,
        actual,
        estimated,
        delayed,
    )
    return report


# --- Coarser project-level indicators ----------------------------------------


def completion_ratio_progress(phases: Sequence[Phase]) -> int:
    """Share of in-scope activities marked COMPLETADO, as a whole percentage."""
    activities = in_scope_activities(phases)
    if not activities:
        return 0
    done = sum(1 for a in activities if a.is_completed)
    return int(round_half_up(done / len(activities) * 100))


def average_recorded_progress(phases: Sequence[Phase]) -> int:
    """Mean of the recorded progress values, ignoring status."""
    activities = in_scope_activities(phases)
    if not activities:
        return 0
    return int(round_half_up(sum(a.progress for a in activities) / len(activities)))


def timeline_progress(start: date | None, end: date | None, today: date) -> int:
    """Elapsed share of the project window ``[start, end]`` as of ``today``."""
    if start is None or end is None:
        return 0
    if today < start:
        return 0
    if today > end:
        return 100
    total = (end - start).days
    if total <= 0:
        return 0
    elapsed = (today - start).days
    return max(0, min(100, int(round_half_up(elapsed / total * 100))))


def project_end_date(phases: Sequence[Phase], fallback: date) -> date:
    """Latest in-scope activity end, never earlier than ``fallback``."""
    latest = fallback
    for a in in_scope_activities(phases):
        if a.end_date is not None and a.end_date > latest:
            latest = a.end_date
    return latest
