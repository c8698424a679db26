from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Callable, Iterator

from rpa_planner.baseline.manager import BaselineReport, set_baseline
from rpa_planner.common.time_utils import DEFAULT_TIMEZONE, today_in
from rpa_planner.config import PlannerConfig
from rpa_planner.domain.models import (
    Activity,
    ActivityStatus,
    DisruptiveEvent,
    Phase,
    PhaseType,
    Project,
    ProjectStatus,
)
from rpa_planner.events import rescheduler
from rpa_planner.events.rescheduler import ResolutionResult, StatusTransition
from rpa_planner.integration.event_bus import EventBus
from rpa_planner.integration.events import (
    BaselineSet,
    BlockerRescheduled,
    ProgressComputed,
    ProjectPaused,
    ProjectPlanned,
    ProjectResumed,
)
from rpa_planner.progress.calculator import DEFAULT_VARIANCE_THRESHOLD, ProgressReport, compute_progress
from rpa_planner.scheduling import editing
from rpa_planner.scheduling.planner import build_project
from rpa_planner.scheduling.template import PhaseDurations
from rpa_planner.services.repository import InMemoryProjectRepository, ProjectRepository


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


@dataclass
class ProjectService:
    """Runs the core operations against a repository, one project at a time.

    Every mutation of a project (baseline, events, reschedules, progress
    entry, date edits and Item moves) holds that project's lock for the whole load-compute-save cycle,
    so two resolutions of the same project can never interleave. Different
    projects proceed independently.
    """

    repository: ProjectRepository
    bus: EventBus
    timezone_name: str = DEFAULT_TIMEZONE
    variance_threshold: float = DEFAULT_VARIANCE_THRESHOLD
    clock: Callable[[], datetime] = _utcnow
    phase_durations: PhaseDurations | None = None

    _locks: dict[str, threading.Lock] = field(default_factory=dict, init=False, repr=False)
    _locks_guard: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    @contextmanager
    def project_lock(self, project_id: str) -> Iterator[None]:
        with self._locks_guard:
            lock = self._locks.setdefault(project_id, threading.Lock())
        with lock:
            yield

    @classmethod
    def from_config(cls, config: PlannerConfig, bus: EventBus) -> "ProjectService":
        repository = InMemoryProjectRepository(
            holidays=config.calendar.holidays(),
            include_peru_holidays=config.calendar.include_peru_holidays,
        )
        return cls(
            repository=repository,
            bus=bus,
            timezone_name=config.calendar.timezone,
            variance_threshold=config.progress.variance_threshold,
            phase_durations=config.template.phase_durations,
        )

    def today(self) -> date:
        return today_in(self.timezone_name, now=self.clock())

    # --- Planning -----------------------------------------------------------

    def create_project(
        self,
        project_id: str,
        name: str,
        start_date: date,
        phase_durations: PhaseDurations | None = None,
    ) -> Project:
        with self.project_lock(project_id):
            holidays = self.repository.holidays_for(
                (start_date.year - 1, start_date.year, start_date.year + 1)
            )
            project = build_project(
                project_id=project_id,
                name=name,
                start_date=start_date,
                holidays=holidays,
                phase_durations=phase_durations if phase_durations is not None else self.phase_durations,
            )
            self.repository.save(project)

        self.bus.publish(
            ProjectPlanned(
                occurred_at=self.clock(),
                project_id=project.id,
                start_date=start_date,
                end_date=project.end_date,
                activity_count=sum(len(p.activities) for p in project.phases),
            )
        )
        return project

    def set_baseline(self, project_id: str) -> BaselineReport:
        with self.project_lock(project_id):
            project = self.repository.get(project_id)
            report = set_baseline(project)
            self.repository.save(project)

        self.bus.publish(
            BaselineSet(
                occurred_at=self.clock(),
                project_id=project_id,
                baseline_end=report.project_baseline.end if report.project_baseline else None,
                baselined_activities=len(report.baselined),
                skipped_activities=report.skipped,
            )
        )
        return report

    def start_project(self, project_id: str) -> Project:
        with self.project_lock(project_id):
            project = self.repository.get(project_id)
            if project.status == ProjectStatus.PLANIFICACION:
                project.status = ProjectStatus.EN_PROGRESO
                self.repository.save(project)
        return project

    @staticmethod
    def _phase(project: Project, phase_type: PhaseType) -> Phase:
        phase = project.phase(phase_type)
        if phase is None:
            raise KeyError(f"Project {project.id} has no {phase_type.value} phase")
        return phase

    def record_progress(
        self,
        project_id: str,
        phase_type: PhaseType,
        code: str,
        progress: int,
        status: ActivityStatus | None = None,
    ) -> list[str]:
        with self.project_lock(project_id):
            project = self.repository.get(project_id)
            touched = editing.update_activity_progress(self._phase(project, phase_type), code, progress, status)
            self.repository.save(project)
        return touched

    def update_activity_dates(
        self,
        project_id: str,
        phase_type: PhaseType,
        code: str,
        start: date,
        end: date,
    ) -> Activity:
        with self.project_lock(project_id):
            project = self.repository.get(project_id)
            activity = editing.update_activity_dates(self._phase(project, phase_type), code, start, end)
            self.repository.save(project)
        return activity

    def move_item_with_subitems(self, project_id: str, phase_type: PhaseType, item_code: str, days_offset: int) -> int:
        with self.project_lock(project_id):
            project = self.repository.get(project_id)
            moved = editing.move_item_with_subitems(self._phase(project, phase_type), item_code, days_offset)
            self.repository.save(project)
        return moved

    # --- Disruptive events ----------------------------------------------------

    def _publish_transition(self, transition: StatusTransition | None, event_id: str) -> None:
        if transition is None:
            return
        if transition.new == ProjectStatus.PAUSADO:
            self.bus.publish(ProjectPaused(occurred_at=self.clock(), project_id=transition.project_id, event_id=event_id))
        elif transition.old == ProjectStatus.PAUSADO:
            self.bus.publish(ProjectResumed(occurred_at=self.clock(), project_id=transition.project_id, event_id=event_id))

    def report_event(self, event: DisruptiveEvent) -> StatusTransition | None:
        with self.project_lock(event.project_id):
            project = self.repository.get(event.project_id)
            transition = rescheduler.report_event(project, event)
            self.repository.save(project)
        self._publish_transition(transition, event.id)
        return transition

    def start_event(self, project_id: str, event_id: str) -> DisruptiveEvent:
        with self.project_lock(project_id):
            project = self.repository.get(project_id)
            event = self._event(project, event_id)
            updated = rescheduler.start_event(event)
            project.replace_event(updated)
            self.repository.save(project)
        return updated

    def resolve_event(self, project_id: str, event_id: str) -> ResolutionResult:
        """Resolve an event and, when it carries an impact, shift the open work.

        Safe to call again for an event that is already resolved: nothing moves.
        """
        with self.project_lock(project_id):
            project = self.repository.get(project_id)
            event = self._event(project, event_id)
            resolution = rescheduler.resolve(event, project, resolved_at=self.clock())
            result = rescheduler.apply_resolution(project, resolution)
            self.repository.save(project)

        if result.shift_days > 0:
            self.bus.publish(
                BlockerRescheduled(
                    occurred_at=self.clock(),
                    project_id=project_id,
                    event_id=event_id,
                    affected_activities=result.shifted_activities,
                    day_delta=result.shift_days,
                    new_end_date=project.end_date,
                )
            )
        self._publish_transition(result.status_transition, event_id)
        return result

    def close_event(self, project_id: str, event_id: str) -> DisruptiveEvent:
        with self.project_lock(project_id):
            project = self.repository.get(project_id)
            event = self._event(project, event_id)
            closed = rescheduler.close_event(event, closed_at=self.clock())
            project.replace_event(closed)
            self.repository.save(project)
        return closed

    @staticmethod
    def _event(project: Project, event_id: str) -> DisruptiveEvent:
        event = project.find_event(event_id)
        if event is None:
            raise KeyError(f"Unknown event {event_id} in project {project.id}")
        return event

    # --- Reporting ------------------------------------------------------------

    def compute_progress(self, project_id: str, today: date | None = None) -> ProgressReport:
        project = self.repository.get(project_id)
        as_of = today if today is not None else self.today()
        report = compute_progress(project, as_of, self.variance_threshold)
        self.bus.publish(
            ProgressComputed(
                occurred_at=self.clock(),
                project_id=project_id,
                as_of=as_of,
                actual=report.actual,
                estimated=report.estimated,
                delayed_activities=report.delayed_activities,
                status=report.variance.status.value,
            )
        )
        return report
