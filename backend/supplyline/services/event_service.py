# Overview: Service-layer operations for the lifecycle event log.

"""
Lifecycle Event Log Invariants (authoritative)

- Append-only: no updates or deletes of existing events.
- Events are written inside the same DB transaction as the change they record.
- Newly appended events are parked on the session (session.info) until the
  orchestrator commits; only then are they handed to notification dispatch.
  A rollback discards them together with the rows.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..extensions import db
from ..models import LifecycleEvent
from ..permissions import Actor
from supplyline.time_utils import utcnow

_PENDING_KEY = "supplyline.pending_events"


def append_event(
    *,
    event_type: str,
    order_id: int | None = None,
    delivery_id: int | None = None,
    actor: Actor | None = None,
    occurred_at: Optional[datetime] = None,
    payload: Optional[dict] = None,
) -> LifecycleEvent:
    ev = LifecycleEvent(
        event_type=event_type,
        order_id=order_id,
        delivery_id=delivery_id,
        actor_id=actor.id if actor else None,
        actor_role=actor.role if actor else None,
        occurred_at=occurred_at or utcnow(),
        payload=payload or {},
    )
    db.session.add(ev)
    db.session.flush()  # ensures ev.id is assigned without committing
    db.session.info.setdefault(_PENDING_KEY, []).append(ev.id)
    return ev


def take_pending_events() -> list[LifecycleEvent]:
    """Pop the ids parked by append_event and load the committed rows."""
    ids = db.session.info.pop(_PENDING_KEY, [])
    if not ids:
        return []
    return (
        db.session.query(LifecycleEvent)
        .filter(LifecycleEvent.id.in_(ids))
        .order_by(LifecycleEvent.id.asc())
        .all()
    )


def discard_pending_events() -> None:
    db.session.info.pop(_PENDING_KEY, None)
