# Overview: Service-layer operations for ledger; encapsulates business logic and database work.

"""
flexpos Ledger Invariants (authoritative)

- Append-only audit log for cross-cutting domain events.
- No domain/business logic in the ledger itself.
- Events are written inside the same DB transaction as the domain event they record,
  except reconciliation events, which describe a transaction that was rolled back.
- occurred_at is business time; created_at is system time (DB default).
"""

from __future__ import annotations

from typing import Optional
from datetime import datetime

from ..extensions import db
from ..models import LedgerEvent
from .concurrency import run_read

MAX_LEDGER_PAGE = 500


def append_ledger_event(
    *,
    org_id: int,
    event_type: str,
    event_category: str,
    entity_type: str,
    entity_id: int | None = None,
    actor_id: str | None = None,
    occurred_at: Optional[datetime] = None,
    note: Optional[str] = None,
    payload: Optional[dict] = None,
) -> LedgerEvent:
    """
    Append-only ledger event.

    - No domain logic here.
    - No deletes/updates of existing events.
    - occurred_at is business time; created_at is system time (db default).
    """
    ev = LedgerEvent(
        org_id=org_id,
        event_type=event_type,
        event_category=event_category,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_id=actor_id,
        occurred_at=occurred_at,  # if None, db default applies
        note=note[:255] if note else note,
        payload=payload,
    )
    db.session.add(ev)
    db.session.flush()  # ensures ev.id is assigned without committing
    return ev


def list_ledger_events(ctx, *, category: str | None = None, limit: int = 100) -> list[dict]:
    """Newest-first ledger events for the tenant, optionally filtered by category."""
    limit = max(1, min(limit or 100, MAX_LEDGER_PAGE))

    def _op():
        q = db.session.query(LedgerEvent).filter(LedgerEvent.org_id == ctx.org_id)
        if category:
            q = q.filter(LedgerEvent.event_category == category)
        rows = q.order_by(LedgerEvent.id.desc()).limit(limit).all()
        return [ev.to_dict() for ev in rows]

    return run_read(_op)
