from __future__ import annotations

import threading
from datetime import date, datetime, timedelta, timezone

import pytest

from rpa_planner.config import PlannerConfig
from rpa_planner.domain.errors import DuplicateEventError, UnknownProjectError
from rpa_planner.domain.models import (
    ActivityStatus,
    DisruptiveEvent,
    EventCategory,
    EventStatus,
    Holiday,
    PhaseType,
    Priority,
    ProjectStatus,
)
from rpa_planner.integration.event_bus import InMemoryEventBus
from rpa_planner.integration.events import (
    BaselineSet,
    BlockerRescheduled,
    ProgressComputed,
    ProjectPaused,
    ProjectPlanned,
    ProjectResumed,
)
from rpa_planner.progress.calculator import ProgressStatus
from rpa_planner.services.project_service import ProjectService
from rpa_planner.services.repository import InMemoryProjectRepository


START = date(2025, 3, 3)


def _clock() -> datetime:
    # 03:00 UTC is still the previous day in Lima.
    return datetime(2025, 3, 11, 3, 0, tzinfo=timezone.utc)


def _service() -> tuple[ProjectService, InMemoryEventBus]:
    bus = InMemoryEventBus()
    service = ProjectService(repository=InMemoryProjectRepository(), bus=bus, clock=_clock)
    return service, bus


def _blocker(impact_days: int, priority: Priority = Priority.CRITICO) -> DisruptiveEvent:
    return DisruptiveEvent(
        id="E-1",
        project_id="P-1",
        category=EventCategory.BLOCKER,
        title="Ambiente caído",
        priority=priority,
        impact_days=impact_days,
    )


def test_create_project_saves_and_publishes() -> None:
    service, bus = _service()

    project = service.create_project("P-1", "Conciliaciones", START)

    assert service.repository.get("P-1").end_date == project.end_date
    planned = [e for e in bus.published if isinstance(e, ProjectPlanned)]
    assert len(planned) == 1
    assert planned[0].end_date == project.end_date


def test_repository_hands_out_copies() -> None:
    service, _ = _service()
    service.create_project("P-1", "Conciliaciones", START)

    loaded = service.repository.get("P-1")
    loaded.status = ProjectStatus.CANCELADO

    assert service.repository.get("P-1").status == ProjectStatus.PLANIFICACION


def test_unknown_project_raises() -> None:
    service, _ = _service()
    with pytest.raises(UnknownProjectError):
        service.set_baseline("nope")
    with pytest.raises(KeyError):
        service.compute_progress("nope")


def test_blocker_lifecycle_through_service() -> None:
    service, bus = _service()
    service.create_project("P-1", "Conciliaciones", START)
    service.start_project("P-1")
    service.set_baseline("P-1")
    before = service.repository.get("P-1")

    service.report_event(_blocker(impact_days=2))
    assert service.repository.get("P-1").status == ProjectStatus.PAUSADO

    result = service.resolve_event("P-1", "E-1")
    after = service.repository.get("P-1")

    assert result.shift_days == 2
    assert after.status == ProjectStatus.EN_PROGRESO
    assert after.end_date == before.end_date + timedelta(days=2)
    # Baselines survive the reschedule.
    assert after.baseline_end_date == before.baseline_end_date

    kinds = [type(e) for e in bus.published]
    assert kinds == [ProjectPlanned, BaselineSet, ProjectPaused, BlockerRescheduled, ProjectResumed]
    rescheduled = next(e for e in bus.published if isinstance(e, BlockerRescheduled))
    assert rescheduled.day_delta == 2
    assert rescheduled.affected_activities == result.shifted_activities

    again = service.resolve_event("P-1", "E-1")
    assert again.shifted_activities == 0
    assert service.repository.get("P-1").end_date == after.end_date

    closed = service.close_event("P-1", "E-1")
    assert closed.status == EventStatus.CERRADO


def test_compute_progress_uses_lima_today() -> None:
    service, bus = _service()
    service.create_project("P-1", "Conciliaciones", START)

    report = service.compute_progress("P-1")

    assert report.as_of == date(2025, 3, 10)
    assert isinstance(bus.published[-1], ProgressComputed)
    # 2.1.1 and 2.1.2 ran Mar 3-6 and were never closed.
    assert report.delayed_activities >= 2
    assert report.variance.status == ProgressStatus.BEHIND


def test_record_progress_propagates() -> None:
    service, _ = _service()
    service.create_project("P-1", "Conciliaciones", START)

    touched = service.record_progress("P-1", PhaseType.CONNECT, "2.1", 100, ActivityStatus.COMPLETADO)

    assert touched == ["2.1", "2.1.1", "2.1.2"]
    connect = service.repository.get("P-1").phase(PhaseType.CONNECT)
    assert connect.find("2.1.2").status == ActivityStatus.COMPLETADO


def test_concurrent_resolutions_shift_once() -> None:
    service, _ = _service()
    service.create_project("P-1", "Conciliaciones", START)
    service.report_event(_blocker(impact_days=3, priority=Priority.ALTO))
    before = service.repository.get("P-1").end_date

    results = []
    threads = [
        threading.Thread(target=lambda: results.append(service.resolve_event("P-1", "E-1")))
        for _ in range(4)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(r.shift_days for r in results) == [0, 0, 0, 3]
    assert (service.repository.get("P-1").end_date - before).days == 3


def test_duplicate_report_is_rejected_and_store_unchanged() -> None:
    service, _ = _service()
    service.create_project("P-1", "Conciliaciones", START)
    service.report_event(_blocker(impact_days=3, priority=Priority.ALTO))
    service.resolve_event("P-1", "E-1")
    end = service.repository.get("P-1").end_date

    with pytest.raises(DuplicateEventError):
        service.report_event(_blocker(impact_days=3, priority=Priority.ALTO))

    assert service.resolve_event("P-1", "E-1").shift_days == 0
    assert service.repository.get("P-1").end_date == end


def test_date_edits_and_moves_are_saved() -> None:
    service, _ = _service()
    service.create_project("P-1", "Conciliaciones", START)

    service.update_activity_dates("P-1", PhaseType.CONNECT, "2.1.2", date(2025, 3, 5), date(2025, 3, 5))
    moved = service.move_item_with_subitems("P-1", PhaseType.CONNECT, "2.2", 2)

    connect = service.repository.get("P-1").phase(PhaseType.CONNECT)
    assert connect.find("2.1.2").end_date == date(2025, 3, 5)
    assert connect.find("2.1").end_date == date(2025, 3, 5)
    assert moved == 5
    assert connect.find("2.2").start_date == connect.find("2.2.1").start_date


def test_from_config_wires_calendar_and_threshold() -> None:
    cfg = PlannerConfig.model_validate(
        {
            "calendar": {
                "timezone": "UTC",
                "extra_holidays": [{"date": "2025-03-04", "name": "Feriado local"}],
            },
            "progress": {"variance_threshold": 1.0},
        }
    )
    service = ProjectService.from_config(cfg, InMemoryEventBus())

    project = service.create_project("P-1", "Conciliaciones", START)
    first = project.phase(PhaseType.CONNECT).find("2.1.1")

    assert first.end_date == date(2025, 3, 5)
    assert service.variance_threshold == 1.0
    assert service.today() == service.clock().date()


def test_from_config_applies_template_phase_durations() -> None:
    cfg = PlannerConfig.model_validate(
        {"template": {"phase_durations": {"prepare": 6, "connect": 14, "realize": 40, "run": 15}}}
    )
    configured = ProjectService.from_config(cfg, InMemoryEventBus())
    default, _ = _service()

    longer = configured.create_project("P-1", "Conciliaciones", START)
    plain = default.create_project("P-1", "Conciliaciones", START)

    assert configured.phase_durations == cfg.template.phase_durations
    assert longer.end_date > plain.end_date


def test_repository_custom_holidays_are_merged_per_year() -> None:
    repo = InMemoryProjectRepository()
    repo.add_holidays([Holiday(day=date(2025, 3, 4), name="Feriado local")])
    repo.add_holidays([Holiday(day=date(2025, 3, 4), name="Duplicado")])
    service = ProjectService(repository=repo, bus=InMemoryEventBus(), clock=_clock)

    service.create_project("P-1", "Conciliaciones", START)
    service.create_project("P-2", "Facturas", START)

    assert repo.project_ids() == ["P-1", "P-2"]
    assert [h.name for h in repo.holidays] == ["Feriado local"]
    assert len(repo.holidays_for([2025])) == 12
    assert len(repo.holidays_for([2026])) == 11
