from __future__ import annotations

from datetime import date

from rpa_planner.baseline.manager import baseline_variance_days, set_baseline
from rpa_planner.domain.models import Activity, Phase, PhaseType, Project, Schedule
from rpa_planner.scheduling.editing import update_activity_dates
from rpa_planner.scheduling.planner import build_project


def _act(code: str, start: date | None, end: date | None, duration: int = 1) -> Activity:
    return Activity(code=code, name=code, schedule=Schedule(start=start, end=end, duration_days=duration))


def _project(activities: list[Activity], start: date | None = date(2026, 1, 5)) -> Project:
    phase = Phase(name="Realize", type=PhaseType.REALIZE, order=3, activities=activities)
    return Project(id="P-1", name="Demo", start_date=start, phases=[phase])


def test_item_baseline_spans_its_subitems() -> None:
    project = _project(
        [
            _act("3.1", date(2026, 1, 5), date(2026, 1, 7)),
            _act("3.1.1", date(2026, 1, 6), date(2026, 1, 10)),
            _act("3.1.2", date(2026, 1, 4), date(2026, 1, 8)),
        ]
    )

    set_baseline(project)
    item = project.phases[0].find("3.1")

    assert (item.baseline_start_date, item.baseline_end_date) == (date(2026, 1, 4), date(2026, 1, 10))
    assert item.baseline_duration == 7
    assert item.is_locked
    # Current dates are not touched by a baseline pass.
    assert (item.start_date, item.end_date) == (date(2026, 1, 5), date(2026, 1, 7))


def test_project_baseline_uses_latest_end() -> None:
    project = _project(
        [
            _act("3.1", date(2026, 1, 5), date(2026, 1, 7)),
            _act("3.2", date(2026, 1, 8), date(2026, 1, 20)),
        ]
    )

    report = set_baseline(project)

    assert project.baseline_start_date == date(2026, 1, 5)
    assert project.baseline_end_date == date(2026, 1, 20)
    assert project.baseline_total_days == 16
    assert not report.is_partial


def test_undated_activities_are_skipped_and_reported() -> None:
    project = _project(
        [
            _act("3", None, None, duration=0),
            _act("3.1", date(2026, 1, 5), date(2026, 1, 7)),
            _act("3.2", None, None, duration=4),
        ]
    )

    report = set_baseline(project)

    assert report.baselined == ("3.1",)
    assert report.skipped == ("3", "3.2")
    assert report.is_partial
    assert project.phases[0].find("3.2").baseline is None


def test_partially_dated_activity_keeps_its_duration() -> None:
    project = _project([_act("3.1", date(2026, 1, 5), None, duration=4)])

    set_baseline(project)
    activity = project.phases[0].find("3.1")

    assert activity.baseline_start_date == date(2026, 1, 5)
    assert activity.baseline_end_date is None
    assert activity.baseline_duration == 4
    assert project.baseline is None


def test_project_without_start_gets_no_project_baseline() -> None:
    project = _project([_act("3.1", date(2026, 1, 5), date(2026, 1, 7))], start=None)

    report = set_baseline(project)

    assert report.project_baseline is None
    assert report.project_skipped_reason == "project has no start date"
    assert project.phases[0].find("3.1").baseline is not None


def test_editing_dates_leaves_baseline_alone() -> None:
    project = _project([_act("3.1", date(2026, 1, 5), date(2026, 1, 7))])
    set_baseline(project)
    phase = project.phases[0]

    update_activity_dates(phase, "3.1", date(2026, 1, 12), date(2026, 1, 14))
    activity = phase.find("3.1")

    assert activity.start_date == date(2026, 1, 12)
    assert activity.baseline_start_date == date(2026, 1, 5)
    assert baseline_variance_days(activity) == 7


def test_rebaseline_overwrites_previous_snapshot() -> None:
    project = _project([_act("3.1", date(2026, 1, 5), date(2026, 1, 7))])
    set_baseline(project)
    update_activity_dates(project.phases[0], "3.1", date(2026, 1, 12), date(2026, 1, 14))

    set_baseline(project)

    assert project.phases[0].find("3.1").baseline_start_date == date(2026, 1, 12)
    assert project.baseline_end_date == date(2026, 1, 14)


def test_rebaseline_drops_snapshot_of_activity_that_lost_its_dates() -> None:
    project = _project(
        [
            _act("3.1", date(2026, 1, 5), date(2026, 1, 7)),
            _act("3.2", date(2026, 1, 8), date(2026, 1, 9)),
        ]
    )
    set_baseline(project)
    project.phases[0].find("3.2").reschedule(None, None)

    report = set_baseline(project)
    cleared = project.phases[0].find("3.2")

    assert report.skipped == ("3.2",)
    assert cleared.baseline is None
    assert not cleared.is_locked


def test_generated_plan_baselines_header_items_from_their_subitems() -> None:
    project = build_project("P-1", "Conciliaciones", date(2025, 3, 3))

    report = set_baseline(project)
    header = project.phase(PhaseType.CONNECT).find("2.1")

    # "3" is a section row with no SubItems of its own, so it stays undated.
    assert report.skipped == ("3",)
    assert (header.start_date, header.end_date) == (date(2025, 3, 3), date(2025, 3, 6))
    assert (header.baseline_start_date, header.baseline_end_date) == (date(2025, 3, 3), date(2025, 3, 6))
    assert project.baseline_end_date == project.end_date
