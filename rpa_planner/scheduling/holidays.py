from __future__ import annotations

from datetime import date
from typing import Iterable

from rpa_planner.domain.models import Holiday


# (month, day, name) of the fixed public holidays observed in Peru.
_PERU_FIXED_HOLIDAYS: tuple[tuple[int, int, str], ...] = (
    (1, 1, "Año Nuevo"),
    (5, 1, "Día del Trabajo"),
    (6, 29, "San Pedro y San Pablo"),
    (7, 28, "Fiestas Patrias"),
    (7, 29, "Fiestas Patrias"),
    (8, 30, "Santa Rosa de Lima"),
    (10, 8, "Combate de Angamos"),
    (11, 1, "Día de Todos los Santos"),
    (12, 8, "Inmaculada Concepción"),
    (12, 9, "Batalla de Ayacucho"),
    (12, 25, "Navidad"),
)


def peru_holidays(year: int) -> list[Holiday]:
    """The eleven fixed Peru public holidays of ``year``."""
    return [
        Holiday(day=date(year, month, day), name=name, recurring=True)
        for month, day, name in _PERU_FIXED_HOLIDAYS
    ]


def merge_holidays(existing: Iterable[Holiday], new: Iterable[Holiday]) -> list[Holiday]:
    """Append entries of ``new`` whose date is not already present.

    Existing entries win on a date clash, so re-importing a year is harmless.
    """
    out = list(existing)
    seen = {h.day for h in out}
    for h in new:
        if h.day in seen:
            continue
        seen.add(h.day)
        out.append(h)
    return sorted(out, key=lambda h: h.day)


def holidays_for_years(years: Iterable[int], extra: Iterable[Holiday] = ()) -> list[Holiday]:
    base: list[Holiday] = list(extra)
    for year in sorted(set(years)):
        base = merge_holidays(base, peru_holidays(year))
    return sorted(base, key=lambda h: h.day)
