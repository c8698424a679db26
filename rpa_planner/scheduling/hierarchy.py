"""Hierarchy of activities derived from their dotted codes.

The code is the only source of truth for structure: ``"3"`` is a section
header, ``"3.2"`` an Item and ``"3.2.1"`` (or deeper) a SubItem of ``"3.2"``.
Relationships are recomputed on demand, so renumbering never leaves a stale
parent pointer behind.
"""
from __future__ import annotations

import logging
import re
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from enum import IntEnum
from typing import Iterable, Protocol, Sequence

from rpa_planner.domain.errors import InvalidActivityCodeError
from rpa_planner.domain.models import Activity
from rpa_planner.scheduling.working_days import inclusive_day_count


logger = logging.getLogger(__name__)

_CODE_RE = re.compile(r"\d+(\.\d+)*")


class Dated(Protocol):
    code: str

    @property
    def start_date(self) -> date | None:
        ...

    @property
    def end_date(self) -> date | None:
        ...


class ActivityLevel(IntEnum):
    SECTION = 0
    ITEM = 1
    SUBITEM = 2


def validate_code(code: str) -> list[str]:
    """Split ``code`` into segments, failing fast on malformed input."""
    if not isinstance(code, str):
        raise InvalidActivityCodeError(code, "code must be a string")
    if not _CODE_RE.fullmatch(code):
        raise InvalidActivityCodeError(code)
    return code.split(".")


def level(code: str) -> ActivityLevel:
    parts = validate_code(code)
    if len(parts) == 1:
        return ActivityLevel.SECTION
    if len(parts) == 2:
        return ActivityLevel.ITEM
    return ActivityLevel.SUBITEM


def is_item(code: str) -> bool:
    return level(code) == ActivityLevel.ITEM


def is_subitem(code: str) -> bool:
    return level(code) == ActivityLevel.SUBITEM


def parent_code(code: str) -> str | None:
    """Item code owning a SubItem; ``None`` for sections and Items."""
    parts = validate_code(code)
    if len(parts) <= 2:
        return None
    return ".".join(parts[:2])


def subitems_of(item_code: str, activities: Iterable[Dated]) -> list[Dated]:
    return [a for a in activities if parent_code(a.code) == item_code]


def has_subitems(item_code: str, activities: Iterable[Dated]) -> bool:
    return any(parent_code(a.code) == item_code for a in activities)


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date

    @property
    def total_days(self) -> int:
        return inclusive_day_count(self.start, self.end)


@dataclass
class PartialRange:
    """Running min start / max end; either bound may still be unknown."""

    min_start: date | None = None
    max_end: date | None = None

    def include(self, start: date | None, end: date | None) -> None:
        if start is not None and (self.min_start is None or start < self.min_start):
            self.min_start = start
        if end is not None and (self.max_end is None or end > self.max_end):
            self.max_end = end

    def complete(self) -> DateRange | None:
        if self.min_start is None or self.max_end is None:
            return None
        return DateRange(start=self.min_start, end=self.max_end)


def _span(activities: Iterable[Dated]) -> DateRange | None:
    acc = PartialRange()
    for a in activities:
        acc.include(a.start_date, a.end_date)
    return acc.complete()


def roll_up_item_range(item_code: str, activities: Sequence[Dated]) -> DateRange | None:
    """Earliest start and latest end across an Item and its SubItems."""
    related = [a for a in activities if a.code == item_code or parent_code(a.code) == item_code]
    return _span(related)


def phase_date_summary(activities: Iterable[Dated]) -> DateRange | None:
    return _span(activities)


def subitem_ranges(activities: Iterable[Dated]) -> dict[str, PartialRange]:
    """Per Item code, the union of its SubItems' dates (the Item's own dates excluded)."""
    ranges: dict[str, PartialRange] = {}
    for a in activities:
        parent = parent_code(a.code)
        if parent is None:
            continue
        ranges.setdefault(parent, PartialRange()).include(a.start_date, a.end_date)
    return ranges


@dataclass
class ActivityIndex:
    """Lookup tables built once per pass over a flat activity list."""

    by_code: dict[str, Activity] = field(default_factory=dict)
    children: dict[str, list[Activity]] = field(default_factory=dict)

    @classmethod
    def build(cls, activities: Iterable[Activity]) -> "ActivityIndex":
        by_code: dict[str, Activity] = {}
        children: defaultdict[str, list[Activity]] = defaultdict(list)
        for a in activities:
            parent = parent_code(a.code)
            if a.code in by_code:
                logger.warning("Duplicate activity code %s; keeping the first", a.code)
            else:
                by_code[a.code] = a
            if parent is not None:
                children[parent].append(a)
        return cls(by_code=by_code, children=dict(children))

    def parent_of(self, code: str) -> Activity | None:
        parent = parent_code(code)
        return self.by_code.get(parent) if parent is not None else None

    def subitems(self, item_code: str) -> list[Activity]:
        return list(self.children.get(item_code, ()))

    def siblings(self, code: str) -> list[Activity]:
        parent = parent_code(code)
        if parent is None:
            return []
        return self.subitems(parent)


def roll_up_phase(activities: Sequence[Activity]) -> list[str]:
    """Rewrite each subdivided Item's current dates to the union of its SubItems.

    Works on :class:`~rpa_planner.domain.models.Activity` records. A bound the
    SubItems do not provide keeps the Item's own value. Returns the codes of
    the Items that changed.
    """
    ranges = subitem_ranges(activities)
    changed: list[str] = []
    for a in activities:
        if level(a.code) != ActivityLevel.ITEM or a.code not in ranges:
            continue
        rng = ranges[a.code]
        start = rng.min_start if rng.min_start is not None else a.start_date
        end = rng.max_end if rng.max_end is not None else a.end_date
        if (start, end) != (a.start_date, a.end_date):
            a.reschedule(start, end)
            changed.append(a.code)
    return changed
