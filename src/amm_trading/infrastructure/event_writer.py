"""DB helper for amm_events.

Append-only; the sequence number from the in-memory EventLog is the
primary key, so re-writing an already persisted event is a no-op.
"""
import json
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.amm_common.events import DomainEvent

_INSERT_EVENT_SQL = text("""
    INSERT INTO amm_events (sequence, event_type, payload, emitted_at)
    VALUES (:sequence, :event_type, :payload, :emitted_at)
    ON CONFLICT (sequence) DO NOTHING
""")


def _encode(value: Any) -> Any:
    # wei amounts overflow JSON numbers in most consumers
    if isinstance(value, bool) or not isinstance(value, int):
        return value
    return str(value)


async def write_event(event: DomainEvent, db: AsyncSession) -> None:
    """Insert one row into amm_events within the caller's transaction."""
    await db.execute(
        _INSERT_EVENT_SQL,
        {
            "sequence": event.sequence,
            "event_type": event.event_type.value,
            "payload": json.dumps({k: _encode(v) for k, v in event.payload.items()}),
            "emitted_at": event.emitted_at,
        },
    )
