from __future__ import annotations

from collections import defaultdict, deque
from typing import Any, Callable


EventHandler = Callable[[dict[str, Any]], None]

WILDCARD = "*"


class InMemoryEventBus:
    def __init__(self, max_published: int | None = None) -> None:
        self._subscribers: dict[str, list[EventHandler]] = defaultdict(list)
        # Oldest envelopes drop off once max_published is reached.
        self.published: deque[dict[str, Any]] = deque(maxlen=max_published)

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        self._subscribers[event_type].append(handler)

    def publish(self, event_type: str, envelope: dict[str, Any]) -> None:
        self.published.append(envelope)

        for handler in self._subscribers.get(event_type, []):
            handler(envelope)

        if event_type != WILDCARD:
            for handler in self._subscribers.get(WILDCARD, []):
                handler(envelope)

    def events_of(self, event_type: str) -> list[dict[str, Any]]:
        return [e for e in self.published if e.get("event_type") == event_type]
