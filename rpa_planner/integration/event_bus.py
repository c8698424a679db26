from __future__ import annotations

import logging
from collections import defaultdict, deque
from typing import Callable, DefaultDict, Deque, Protocol, Type, TypeVar

from rpa_planner.integration.events import DomainEvent


logger = logging.getLogger(__name__)

E = TypeVar("E", bound=DomainEvent)
Handler = Callable[[DomainEvent], None]


class EventBus(Protocol):
    """Where the planner announces facts (pauses, reschedules, baselines)."""

    def publish(self, event: DomainEvent) -> None:
        ...

    def subscribe(self, event_type: Type[E], handler: Callable[[E], None]) -> None:
        ...


class InMemoryEventBus:
    """Synchronous in-process bus that also keeps the latest facts.

    A failing handler is logged and does not stop delivery to the others, nor
    does it undo the change that produced the fact. ``drain()`` hands the
    retained facts to a notification collaborator in publish order.
    """

    def __init__(self, keep_last: int = 1000) -> None:
        self._handlers: DefaultDict[Type[DomainEvent], list[Handler]] = defaultdict(list)
        self._published: Deque[DomainEvent] = deque(maxlen=keep_last)

    def publish(self, event: DomainEvent) -> None:
        self._published.append(event)
        for event_type, handlers in list(self._handlers.items()):
            if not isinstance(event, event_type):
                continue
            for handler in handlers:
                try:
                    handler(event)
                except Exception:
                    logger.exception("Event handler %s failed for %s", handler, event)

    def subscribe(self, event_type: Type[E], handler: Callable[[E], None]) -> None:
        self._handlers[event_type].append(handler)  # type: ignore[arg-type]

    def unsubscribe(self, event_type: Type[E], handler: Callable[[E], None]) -> None:
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)  # type: ignore[arg-type]

    @property
    def published(self) -> list[DomainEvent]:
        return list(self._published)

    def drain(self) -> list[DomainEvent]:
        out = list(self._published)
        self._published.clear()
        return out
