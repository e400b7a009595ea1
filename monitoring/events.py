"""
monitoring/events.py - Observer event stream.

Best-effort: a failing subscriber is logged and skipped, and never affects
the cycle that published the event. Timestamps are strictly increasing
within a publisher.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, List, Optional

from core.constants import EventType
from core.logging import get_logger
from core.time import MonotonicClock

logger = get_logger(__name__)

Subscriber = Callable[["AgentEvent"], None]


@dataclass(frozen=True)
class AgentEvent:
    """One observable event."""
    type: EventType
    timestamp_ms: int
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "timestamp_ms": self.timestamp_ms,
            "payload": self.payload,
        }


class EventPublisher:
    """
    Fan-out of agent events to subscribers, plus a bounded buffer of
    recent events for inspection.
    """

    def __init__(self, max_recent: int = 200, clock: Optional[MonotonicClock] = None):
        self._clock = clock or MonotonicClock()
        self._subscribers: List[Subscriber] = []
        self._recent: Deque[AgentEvent] = deque(maxlen=max_recent)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback; returns a function that unregisters it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, event_type: EventType, payload: Optional[Dict[str, Any]] = None) -> AgentEvent:
        event = AgentEvent(
            type=event_type,
            timestamp_ms=self._clock.next_ms(),
            payload=payload or {},
        )
        self._recent.append(event)

        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception as e:
                logger.warning(
                    f"Event subscriber failed: {e}",
                    extra={"context": {
                        "event_type": event_type.value,
                        "subscriber": getattr(callback, "__name__", repr(callback)),
                        "error_type": type(e).__name__,
                    }},
                )
        return event

    def recent(self, event_type: Optional[EventType] = None) -> List[AgentEvent]:
        if event_type is None:
            return list(self._recent)
        return [e for e in self._recent if e.type == event_type]
