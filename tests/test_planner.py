from __future__ import annotations

from datetime import date, timedelta

from rpa_planner.domain.models import ActivityStatus, PhaseType, ProjectStatus
from rpa_planner.scheduling.editing import update_activity_dates
from rpa_planner.scheduling.hierarchy import is_item, subitems_of
from rpa_planner.scheduling.planner import build_project, planned_end_date, project_holidays
from rpa_planner.scheduling.template import PhaseDurations
from rpa_planner.scheduling.working_days import count_working_days


START = date(2025, 3, 3)


def test_prepare_ends_the_day_before_kickoff() -> None:
    project = build_project("P-1", "Conciliaciones", START)
    prepare = project.phase(PhaseType.PREPARE)

    ends = [a.end_date for a in prepare.activities if a.end_date is not None]
    assert max(ends) == START - timedelta(days=1)
    assert all(a.start_date is not None for a in prepare.activities)
    # Item 1.1 is a header over its SubItems once they are dated.
    item = prepare.find("1.1")
    assert (item.start_date, item.end_date) == (prepare.find("1.1.1").start_date, START - timedelta(days=1))


def test_connect_chains_from_kickoff() -> None:
    project = build_project("P-1", "Conciliaciones", START)
    connect = project.phase(PhaseType.CONNECT)

    header = connect.find("2.1")
    assert (header.start_date, header.end_date) == (date(2025, 3, 3), date(2025, 3, 6))
    first = connect.find("2.1.1")
    assert (first.start_date, first.end_date) == (date(2025, 3, 3), date(2025, 3, 4))
    second = connect.find("2.1.2")
    assert second.start_date == date(2025, 3, 5)


def test_plan_spans_exactly_the_delivery_working_days() -> None:
    project = build_project("P-1", "Conciliaciones", START)

    assert project.status == ProjectStatus.PLANIFICACION
    assert project.end_date == planned_end_date(project.phases)
    assert count_working_days(START, project.end_date, project_holidays(START)) == 14 + 20 + 15
    assert all(a.status == ActivityStatus.PENDIENTE for a in project.iter_activities())
    assert all(a.baseline is None for a in project.iter_activities())


def test_custom_phase_durations_stretch_the_plan() -> None:
    default = build_project("P-1", "Conciliaciones", START)
    longer = build_project(
        "P-2",
        "Conciliaciones",
        START,
        phase_durations=PhaseDurations(prepare=6, connect=14, realize=40, run=15),
    )

    assert longer.end_date > default.end_date
    assert count_working_days(START, longer.end_date, project_holidays(START)) == 14 + 40 + 15


def test_holiday_inside_plan_pushes_dates() -> None:
    without = build_project("P-1", "X", START, holidays=[])
    with_holiday = build_project("P-1", "X", START, holidays=[date(2025, 3, 4)])

    first = with_holiday.phase(PhaseType.CONNECT).find("2.1.1")
    assert first.end_date == date(2025, 3, 5)
    assert with_holiday.end_date > without.end_date


def test_every_subdivided_item_spans_exactly_its_subitems() -> None:
    project = build_project("P-1", "Conciliaciones", START)

    for phase in project.phases:
        for item in phase.activities:
            if not is_item(item.code):
                continue
            subs = subitems_of(item.code, phase.activities)
            if not subs:
                continue
            assert item.start_date == min(s.start_date for s in subs), item.code
            assert item.end_date == max(s.end_date for s in subs), item.code


def test_subitem_can_be_saved_with_its_own_generated_dates() -> None:
    project = build_project("P-1", "Conciliaciones", START)
    prepare = project.phase(PhaseType.PREPARE)
    sub = prepare.find("1.1.1")

    update_activity_dates(prepare, "1.1.1", sub.start_date, sub.end_date)

    assert prepare.find("1.1").start_date == sub.start_date
