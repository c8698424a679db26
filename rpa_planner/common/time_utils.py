from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Final
from zoneinfo import ZoneInfo


# Projects are run from Lima; "today" is the civil date there, not the host's.
DEFAULT_TIMEZONE: Final[str] = "America/Lima"


def today_in(tz_name: str = DEFAULT_TIMEZONE, now: datetime | None = None) -> date:
    """Return the civil date in ``tz_name``.

    ``now`` may be passed to pin the instant; naive values are taken as UTC.
    """
    instant = now if now is not None else datetime.now(tz=timezone.utc)
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(ZoneInfo(tz_name)).date()


def as_date(value: date | datetime) -> date:
    # datetime is a subclass of date, so check it first
    if isinstance(value, datetime):
        return value.date()
    return value


def parse_iso_date(value: str) -> date:
    # Accepts '2025-03-01' as well as full timestamps like '2025-03-01T12:00:00Z'
    value = value.strip()
    if len(value) == 10:
        return date.fromisoformat(value)
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value).date()
