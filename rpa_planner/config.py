from __future__ import annotations

import datetime as dt
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator

from rpa_planner.common.time_utils import DEFAULT_TIMEZONE
from rpa_planner.domain.models import Holiday
from rpa_planner.progress.calculator import DEFAULT_VARIANCE_THRESHOLD
from rpa_planner.scheduling.template import PhaseDurations


def _read_toml(path: Path) -> dict[str, Any]:
    """Read TOML into a dict, supporting Python 3.10+.

    Uses tomllib when available, falls back to tomli.
    """
    data = path.read_bytes()
    try:
        import tomllib  # type: ignore[attr-defined]

        return tomllib.loads(data.decode("utf-8"))
    except ModuleNotFoundError:
        import tomli  # type: ignore[import-not-found]

        return tomli.loads(data.decode("utf-8"))


class HolidayEntry(BaseModel):
    date: dt.date
    name: str = Field(default="Feriado")

    def to_holiday(self) -> Holiday:
        return Holiday(day=self.date, name=self.name)


class CalendarConfig(BaseModel):
    """Working calendar: civil timezone plus the holidays to skip."""

    timezone: str = Field(default=DEFAULT_TIMEZONE, description="IANA zone used for 'today'.")
    include_peru_holidays: bool = Field(default=True)
    extra_holidays: list[HolidayEntry] = Field(
        default_factory=list,
        description="Company-specific non-working days, e.g. bridge holidays.",
    )

    @field_validator("timezone")
    @classmethod
    def _known_zone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    def holidays(self) -> list[Holiday]:
        return [h.to_holiday() for h in self.extra_holidays]


class ProgressConfig(BaseModel):
    variance_threshold: float = Field(
        default=DEFAULT_VARIANCE_THRESHOLD,
        ge=0,
        description="Percentage points within which a project counts as on track.",
    )


class TemplateConfig(BaseModel):
    phase_durations: PhaseDurations | None = Field(
        default=None,
        description="Target working days per phase; template defaults when omitted.",
    )


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    log_dir: str | None = Field(default=None)


class PlannerConfig(BaseModel):
    calendar: CalendarConfig = Field(default_factory=CalendarConfig)
    progress: ProgressConfig = Field(default_factory=ProgressConfig)
    template: TemplateConfig = Field(default_factory=TemplateConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, path: Path) -> "PlannerConfig":
        raw = _read_toml(path)
        return cls.model_validate(raw)
