from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from rpa_planner.domain.models import Activity, Baseline, Project, ProjectBaseline
from rpa_planner.scheduling.hierarchy import ActivityLevel, level, subitem_ranges
from rpa_planner.scheduling.working_days import inclusive_day_count


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BaselineReport:
    """Outcome of a baseline pass; skipped entries are not errors."""

    project_id: str
    baselined: tuple[str, ...]
    skipped: tuple[str, ...]
    project_baseline: ProjectBaseline | None
    project_skipped_reason: str | None = None

    @property
    def is_partial(self) -> bool:
        return bool(self.skipped) or self.project_baseline is None


def _baseline_for(activity: Activity, start: date | None, end: date | None) -> Baseline:
    if start is not None and end is not None:
        duration = inclusive_day_count(start, end)
    else:
        duration = activity.duration_days
    return Baseline(start=start, end=end, duration=duration, locked=True)


def set_baseline(project: Project) -> BaselineReport:
    """Snapshot the current schedule of every activity and of the project.

    Subdivided Items take the span of their SubItems; everything else keeps
    its own dates. Activities without any date are left unbaselined and
    listed in the report. Calling this again is a re-baseline: previous
    values are overwritten, and a skipped activity loses its old snapshot.
    """
    baselined: list[str] = []
    skipped: list[str] = []
    latest_end: date | None = None

    for phase in project.phases:
        ranges = subitem_ranges(phase.activities)

        for activity in phase.activities:
            start, end = activity.start_date, activity.end_date

            if level(activity.code) == ActivityLevel.ITEM and activity.code in ranges:
                rng = ranges[activity.code]
                if rng.min_start is not None:
                    start = rng.min_start
                if rng.max_end is not None:
                    end = rng.max_end

            if start is None and end is None:
                activity.baseline = None
                skipped.append(activity.code)
                continue

            activity.baseline = _baseline_for(activity, start, end)
            baselined.append(activity.code)

            if end is not None and (latest_end is None or end > latest_end):
                latest_end = end

    project_baseline: ProjectBaseline | None = None
    reason: str | None = None
    if project.start_date is None:
        reason = "project has no start date"
    elif latest_end is None:
        reason = "no activity has an end date"
    else:
        project_baseline = ProjectBaseline(
            start=project.start_date,
            end=latest_end,
            total_days=inclusive_day_count(project.start_date, latest_end),
        )
        project.baseline = project_baseline

    if reason is not None:
        logger.warning("Project %s: baseline not set (%s)", project.id, reason)
    if skipped:
        logger.warning(
            "Project %s: %d undated activities left unbaselined: %s",
            project.id,
            len(skipped),
            ", ".join(skipped),
        )
    logger.info("Project %s: baselined %d activities", project.id, len(baselined))

    return BaselineReport(
        project_id=project.id,
        baselined=tuple(baselined),
        skipped=tuple(skipped),
        project_baseline=project_baseline,
        project_skipped_reason=reason,
    )


def baseline_variance_days(activity: Activity) -> int | None:
    """Calendar days the current end has slipped past the baseline end."""
    if activity.end_date is None or activity.baseline_end_date is None:
        return None
    return (activity.end_date - activity.baseline_end_date).days
