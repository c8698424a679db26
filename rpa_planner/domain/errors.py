from __future__ import annotations


class PlannerError(Exception):
    """Base type for errors raised by the scheduling core."""


class InvalidActivityCodeError(PlannerError, ValueError):
    """An activity code is not a dotted string of integer segments."""

    def __init__(self, code: object, reason: str = "malformed code") -> None:
        self.code = code
        self.reason = reason
        super().__init__(f"Invalid activity code {code!r}: {reason}")


class NegativeDurationError(PlannerError, ValueError):
    """A day count that must be non-negative was negative."""

    def __init__(self, name: str, value: int) -> None:
        self.name = name
        self.value = value
        super().__init__(f"{name} must be >= 0, got {value}")


class ScheduleBoundsError(PlannerError, ValueError):
    """A SubItem edit would fall outside its parent Item's window."""


class InvalidTransitionError(PlannerError):
    """A disruptive event cannot move between the requested states."""

    def __init__(self, event_id: str, current: str, target: str) -> None:
        self.event_id = event_id
        self.current = current
        self.target = target
        super().__init__(f"Event {event_id}: cannot go from {current} to {target}")


class DuplicateEventError(PlannerError, ValueError):
    """An event id is already recorded on the project."""

    def __init__(self, event_id: str, project_id: str) -> None:
        self.event_id = event_id
        self.project_id = project_id
        super().__init__(f"Event {event_id} is already recorded on project {project_id}")


class UnknownProjectError(PlannerError, KeyError):
    def __init__(self, project_id: str) -> None:
        self.project_id = project_id
        super().__init__(f"Unknown project: {project_id}")


class UnknownActivityError(PlannerError, KeyError):
    def __init__(self, code: str) -> None:
        self.code = code
        super().__init__(f"Unknown activity: {code}")


def require_non_negative(name: str, value: int) -> int:
    if value < 0:
        raise NegativeDurationError(name, value)
    return value


class StaleScheduleError(PlannerError):
    """A shift plan no longer matches the schedule it was computed from."""
