from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Iterable, Protocol

from rpa_planner.domain.errors import UnknownProjectError
from rpa_planner.domain.models import Holiday, Project
from rpa_planner.scheduling.holidays import holidays_for_years, merge_holidays


class ProjectRepository(Protocol):
    """Persistence boundary. Loads happen before and saves after the pure computations."""

    def get(self, project_id: str) -> Project:
        ...

    def save(self, project: Project) -> None:
        ...

    def holidays_for(self, years: Iterable[int]) -> list[Holiday]:
        ...


@dataclass
class InMemoryProjectRepository:
    """Dictionary-backed repository that hands out copies, like a real store would."""

    holidays: list[Holiday] = field(default_factory=list)
    include_peru_holidays: bool = True
    _projects: dict[str, Project] = field(default_factory=dict)

    def get(self, project_id: str) -> Project:
        project = self._projects.get(project_id)
        if project is None:
            raise UnknownProjectError(project_id)
        return copy.deepcopy(project)

    def save(self, project: Project) -> None:
        self._projects[project.id] = copy.deepcopy(project)

    def exists(self, project_id: str) -> bool:
        return project_id in self._projects

    def project_ids(self) -> list[str]:
        return sorted(self._projects)

    def add_holidays(self, holidays: Iterable[Holiday]) -> None:
        self.holidays = merge_holidays(self.holidays, holidays)

    def holidays_for(self, years: Iterable[int]) -> list[Holiday]:
        wanted = set(years)
        custom = [h for h in self.holidays if h.year in wanted]
        if not self.include_peru_holidays:
            return sorted(custom, key=lambda h: h.day)
        return holidays_for_years(wanted, extra=custom)
