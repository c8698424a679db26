from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, timedelta

from rpa_planner.domain.errors import (
    InvalidActivityCodeError,
    ScheduleBoundsError,
    UnknownActivityError,
)
from rpa_planner.domain.models import Activity, ActivityStatus, Phase
from rpa_planner.scheduling.hierarchy import (
    ActivityIndex,
    ActivityLevel,
    is_item,
    is_subitem,
    level,
    parent_code,
    roll_up_phase,
)


logger = logging.getLogger(__name__)


def _get(phase: Phase, code: str) -> Activity:
    activity = phase.find(code)
    if activity is None:
        raise UnknownActivityError(code)
    return activity


def _complete(activity: Activity) -> None:
    activity.progress = 100
    activity.status = ActivityStatus.COMPLETADO


def update_activity_progress(
    phase: Phase,
    code: str,
    progress: int,
    status: ActivityStatus | None = None,
) -> list[str]:
    """Record progress and propagate completion through the Item/SubItem pair.

    An Item reaching 100 completes all of its SubItems. A SubItem reaching
    100 completes its Item once every sibling is at 100 too. Returns the codes
    of all activities that were modified.
    """
    if not 0 <= progress <= 100:
        raise ValueError(f"progress must be within 0..100, got {progress}")

    activity = _get(phase, code)
    activity.progress = progress
    if status is not None:
        activity.status = status
    touched = [code]

    if progress != 100:
        return touched

    index = ActivityIndex.build(phase.activities)
    lvl = level(code)
    if lvl == ActivityLevel.ITEM:
        for sub in index.subitems(code):
            _complete(sub)
            touched.append(sub.code)
    elif lvl == ActivityLevel.SUBITEM:
        parent = index.parent_of(code)
        if parent is not None and all(s.progress == 100 for s in index.siblings(code)):
            _complete(parent)
            touched.append(parent.code)
    return touched


def update_activity_dates(phase: Phase, code: str, start: date, end: date) -> Activity:
    """Edit an activity's current dates, keeping SubItems inside their Item.

    The Item's baseline window is the limit when it has one, its current
    window otherwise. Editing a SubItem re-fits its Item to the SubItems'
    span. Baselines are never modified here.
    """
    if end < start:
        raise ScheduleBoundsError(f"Activity {code}: end {end} is before start {start}")

    activity = _get(phase, code)
    parent = parent_code(code)
    if parent is not None:
        item = phase.find(parent)
        if item is not None:
            lo = item.baseline_start_date or item.start_date
            hi = item.baseline_end_date or item.end_date
            if lo is not None and hi is not None:
                if start < lo:
                    raise ScheduleBoundsError(
                        f"El SubItem no puede iniciar antes que su Item padre ({lo:%d/%m/%Y})"
                    )
                if end > hi:
                    raise ScheduleBoundsError(
                        f"El SubItem no puede terminar después que su Item padre ({hi:%d/%m/%Y})"
                    )

    activity.reschedule(start, end)
    if is_subitem(code):
        roll_up_phase(phase.activities)
    return activity


def move_item_with_subitems(phase: Phase, item_code: str, days_offset: int) -> int:
    """Move an Item and its SubItems by ``days_offset`` calendar days (may be negative).

    Only fully dated activities move. The Item's baseline moves along with it
    so the SubItem bounds follow the new window. Returns how many moved.
    """
    if not is_item(item_code):
        raise InvalidActivityCodeError(item_code, "only Items can be moved with their SubItems")

    item = _get(phase, item_code)
    delta = timedelta(days=days_offset)
    family = [item, *ActivityIndex.build(phase.activities).subitems(item_code)]

    moved = 0
    for a in family:
        if a.start_date is not None and a.end_date is not None:
            a.reschedule(a.start_date + delta, a.end_date + delta)
            moved += 1
    roll_up_phase(phase.activities)

    if item.baseline is not None and item.baseline.start is not None and item.baseline.end is not None:
        item.baseline = replace(item.baseline, start=item.baseline.start + delta, end=item.baseline.end + delta)

    logger.info("Moved item %s and %d subitem(s) by %+d day(s)", item_code, len(family) - 1, days_offset)
    return moved
