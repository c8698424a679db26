from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Union

from rpa_planner.common.time_utils import as_date
from rpa_planner.domain.errors import require_non_negative
from rpa_planner.domain.models import Holiday
from rpa_planner.scheduling.holidays import peru_holidays


HolidayLike = Union[Holiday, date, datetime]

_ONE_DAY = timedelta(days=1)


def holiday_dates(holidays: Iterable[HolidayLike]) -> frozenset[date]:
    """Reduce holidays to the set of calendar dates they fall on."""
    out: set[date] = set()
    for h in holidays:
        out.add(h.day if isinstance(h, Holiday) else as_date(h))
    return frozenset(out)


def _dates(holidays: Iterable[HolidayLike]) -> frozenset[date]:
    if isinstance(holidays, frozenset) and all(type(h) is date for h in holidays):
        return holidays
    return holiday_dates(holidays)


def is_weekend(day: date | datetime) -> bool:
    return as_date(day).weekday() >= 5


def is_holiday(day: date | datetime, holidays: Iterable[HolidayLike]) -> bool:
    return as_date(day) in _dates(holidays)


def is_working_day(day: date | datetime, holidays: Iterable[HolidayLike]) -> bool:
    d = as_date(day)
    return d.weekday() < 5 and d not in _dates(holidays)


def next_working_day(day: date | datetime, holidays: Iterable[HolidayLike]) -> date:
    """First working day strictly after ``day``."""
    hs = _dates(holidays)
    current = as_date(day) + _ONE_DAY
    while not is_working_day(current, hs):
        current += _ONE_DAY
    return current


def add_working_days(start: date | datetime, n: int, holidays: Iterable[HolidayLike]) -> date:
    """Return the n-th working day after ``start``.

    A non-working ``start`` is first moved forward to the next working day,
    which then acts as day zero. With ``n == 0`` that adjusted day is returned.
    """
    require_non_negative("working days", n)
    hs = _dates(holidays)
    current = as_date(start)
    while not is_working_day(current, hs):
        current += _ONE_DAY

    added = 0
    while added < n:
        current += _ONE_DAY
        if is_working_day(current, hs):
            added += 1
    return current


def subtract_working_days(end: date | datetime, n: int, holidays: Iterable[HolidayLike]) -> date:
    """Backward mirror of :func:`add_working_days`."""
    require_non_negative("working days", n)
    hs = _dates(holidays)
    current = as_date(end)
    while not is_working_day(current, hs):
        current -= _ONE_DAY

    subtracted = 0
    while subtracted < n:
        current -= _ONE_DAY
        if is_working_day(current, hs):
            subtracted += 1
    return current


def calculate_end_date(start: date | datetime, duration_days: int, holidays: Iterable[HolidayLike]) -> date:
    """End date of an activity lasting ``duration_days`` working days.

    Zero-duration rows (section headers) do not advance the calendar and the
    start is returned as is. A one-day activity ends on the day it starts.
    """
    require_non_negative("duration_days", duration_days)
    if duration_days == 0:
        return as_date(start)
    return add_working_days(start, duration_days - 1, holidays)


def calculate_start_date(end: date | datetime, duration_days: int, holidays: Iterable[HolidayLike]) -> date:
    require_non_negative("duration_days", duration_days)
    if duration_days == 0:
        return as_date(end)
    return subtract_working_days(end, duration_days - 1, holidays)


def count_working_days(start: date | datetime, end: date | datetime, holidays: Iterable[HolidayLike]) -> int:
    """Working days in ``[start, end]``, both ends included. Inverted ranges count 0."""
    hs = _dates(holidays)
    current, last = as_date(start), as_date(end)
    count = 0
    while current <= last:
        if is_working_day(current, hs):
            count += 1
        current += _ONE_DAY
    return count


def inclusive_day_count(start: date | datetime, end: date | datetime) -> int:
    """Calendar days in ``[start, end]``."""
    return (as_date(end) - as_date(start)).days + 1


@dataclass(frozen=True)
class CalendarDay:
    day: date
    is_working: bool
    is_weekend: bool
    is_holiday: bool
    holiday_name: str | None = None


def days_in_range(
    start: date | datetime,
    end: date | datetime,
    holidays: Iterable[HolidayLike],
) -> list[CalendarDay]:
    """Classify every calendar day in ``[start, end]``."""
    names: dict[date, str] = {}
    for h in holidays:
        if isinstance(h, Holiday):
            names.setdefault(h.day, h.name)
        else:
            names.setdefault(as_date(h), "")

    out: list[CalendarDay] = []
    current, last = as_date(start), as_date(end)
    while current <= last:
        weekend = current.weekday() >= 5
        holiday = current in names
        out.append(
            CalendarDay(
                day=current,
                is_working=not weekend and not holiday,
                is_weekend=weekend,
                is_holiday=holiday,
                holiday_name=names.get(current) or None,
            )
        )
        current += _ONE_DAY
    return out


def calculate_project_end_date(
    start: date | datetime,
    total_working_days: int,
    holidays: Iterable[HolidayLike] = (),
) -> date:
    """Project end date, always honouring Peru holidays of the start year and the next."""
    require_non_negative("total_working_days", total_working_days)
    start_day = as_date(start)
    if total_working_days == 0:
        return start_day
    all_holidays = holiday_dates(
        [*holidays, *peru_holidays(start_day.year), *peru_holidays(start_day.year + 1)]
    )
    return add_working_days(start_day, total_working_days - 1, all_holidays)
