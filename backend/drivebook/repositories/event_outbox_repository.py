# backend/drivebook/repositories/event_outbox_repository.py
"""
Repository for event outbox operations.

Implements the transactional enqueue used when an external calendar side
effect has to be deferred to the reconciliation worker.
"""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any, List, Optional, cast

from sqlalchemy import insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.orm import Session
import ulid

from drivebook.database.session_utils import get_dialect_name
from drivebook.models.event_outbox import EventOutbox, EventOutboxStatus

logger = logging.getLogger(__name__)


def _now_utc() -> datetime:
    """Return timezone-aware utcnow suitable for DB comparisons."""
    return datetime.now(timezone.utc)


class EventOutboxRepository:
    """Data access helpers for event outbox rows."""

    def __init__(self, db: Session):
        self.db = db
        self._dialect = get_dialect_name(db, default="postgresql").lower()

    def enqueue(
        self,
        event_type: str,
        aggregate_id: str,
        payload: Optional[dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> EventOutbox:
        """
        Insert a new outbox row if one does not already exist for the idempotency key.

        Returns the persisted row (existing or newly created).
        """
        payload = payload or {}
        next_attempt = _now_utc()
        key = idempotency_key or f"{event_type}:{aggregate_id}"

        event_id = str(ulid.ULID())
        values = dict(
            event_type=event_type,
            aggregate_id=aggregate_id,
            payload=payload,
            idempotency_key=key,
            status=EventOutboxStatus.PENDING.value,
            attempt_count=0,
            next_attempt_at=next_attempt,
            id=event_id,
        )

        inserted_id: Optional[str] = None

        if self._dialect == "postgresql":
            pg_stmt = (
                pg_insert(EventOutbox)
                .values(**values)
                .on_conflict_do_nothing(index_elements=["idempotency_key"])
                .returning(EventOutbox.id)
            )
            inserted_value = self.db.execute(pg_stmt).scalar_one_or_none()
            if inserted_value is not None:
                inserted_id = cast(str, inserted_value)
        else:
            stmt = insert(EventOutbox).values(**values)
            if self._dialect == "sqlite":
                stmt = stmt.prefix_with("OR IGNORE")
            result = self.db.execute(stmt)
            if getattr(result, "rowcount", 0):
                inserted_id = event_id

        if inserted_id:
            self.db.flush()
            row = cast(Optional[EventOutbox], self.db.get(EventOutbox, inserted_id))
            if row is None:
                raise RuntimeError("Inserted outbox row could not be reloaded")
            logger.info(
                "event_outbox_enqueued",
                extra={"event_type": event_type, "aggregate_id": aggregate_id},
            )
            return row

        # Existing row - fetch and return without mutating attempt counters
        existing = cast(
            Optional[EventOutbox],
            self.db.execute(
                select(EventOutbox).where(EventOutbox.idempotency_key == key)
            ).scalar_one_or_none(),
        )
        if existing is None:
            raise RuntimeError("Outbox row not found after enqueue conflict")
        return existing

    def list_pending(self, aggregate_id: Optional[str] = None) -> List[EventOutbox]:
        stmt = select(EventOutbox).where(EventOutbox.status == EventOutboxStatus.PENDING.value)
        if aggregate_id is not None:
            stmt = stmt.where(EventOutbox.aggregate_id == aggregate_id)
        stmt = stmt.order_by(EventOutbox.next_attempt_at.asc(), EventOutbox.id.asc())
        return list(self.db.execute(stmt).scalars().all())

    def supersede_pending(self, aggregate_id: str, event_type: str, reason: str) -> int:
        """Retire PENDING rows that a later change made pointless; returns rows touched."""
        now = _now_utc()
        result = self.db.execute(
            update(EventOutbox)
            .where(
                EventOutbox.aggregate_id == aggregate_id,
                EventOutbox.event_type == event_type,
                EventOutbox.status == EventOutboxStatus.PENDING.value,
            )
            .values(
                status=EventOutboxStatus.SUPERSEDED.value,
                last_error=reason,
                updated_at=now,
            )
        )
        self.db.flush()
        touched = int(getattr(result, "rowcount", 0) or 0)
        if touched:
            logger.info(
                "event_outbox_superseded",
                extra={"event_type": event_type, "aggregate_id": aggregate_id, "rows": touched},
            )
        return touched
