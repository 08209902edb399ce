"""Domain events.

Components append to a shared EventLog instead of calling back into each
other; the snapshot job drains it into the amm_events table.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from src.amm_common.enums import EventType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DomainEvent:
    event_type: EventType
    payload: dict[str, Any]
    emitted_at: int  # unix seconds
    sequence: int


@dataclass
class EventLog:
    events: list[DomainEvent] = field(default_factory=list)
    _next_sequence: int = 1

    def emit(self, event_type: EventType, emitted_at: int, **payload: Any) -> DomainEvent:
        event = DomainEvent(
            event_type=event_type,
            payload=payload,
            emitted_at=emitted_at,
            sequence=self._next_sequence,
        )
        self._next_sequence += 1
        self.events.append(event)
        logger.debug("event %s #%d %s", event_type.value, event.sequence, payload)
        return event

    def of_type(self, event_type: EventType) -> list[DomainEvent]:
        return [e for e in self.events if e.event_type == event_type]

    def since(self, sequence: int) -> list[DomainEvent]:
        """Events with sequence > the given one (for incremental persistence)."""
        return [e for e in self.events if e.sequence > sequence]
