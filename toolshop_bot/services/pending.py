"""
Pending Authorization Store
===========================

A pending authorization records that an order's quote was sent to a phone and
that the shop is waiting for the client's answer. The table holds at most one
row per phone (unique key): sending a new quote to the same phone overwrites
the row, silently abandoning the older conversation.

Lifecycle:
----------
1. ``upsert_pending``: quote sent -> row in ``awaiting_choice``
2. ``advance_to_selection``: client answered "3" -> ``awaiting_equipment_selection``
   with the ordered entry ids that were shown to the client
3. ``delete_pending``: terminal answer processed

Expiry:
-------
With PENDING_AUTHORIZATION_TTL_HOURS > 0, ``get_active_pending`` deletes rows
older than the TTL and reports no conversation. With 0 (default) rows never
expire.

None of these functions commit except the expiry cleanup; callers own the
transaction.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from .. import config
from ..models import (
    AWAITING_CHOICE,
    AWAITING_EQUIPMENT_SELECTION,
    PendingAuthorization,
    utc_now,
)


logger = logging.getLogger(__name__)


def _upsert_statement(dialect_name: str, values: dict):
    """INSERT ... ON CONFLICT/DUPLICATE KEY for the dialects we run on, else None."""
    table = PendingAuthorization.__table__
    overwrite = ("order_id", "state", "equipment_ids", "created_at")

    if dialect_name in ("mysql", "mariadb"):
        from sqlalchemy.dialects.mysql import insert

        stmt = insert(table).values(**values)
        return stmt.on_duplicate_key_update(**{col: stmt.inserted[col] for col in overwrite})

    if dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    elif dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    else:
        return None

    stmt = insert(table).values(**values)
    return stmt.on_conflict_do_update(
        index_elements=["phone"],
        set_={col: stmt.excluded[col] for col in overwrite},
    )


def upsert_pending(db: Session, phone: str, order_id: int) -> None:
    """Create or overwrite the pending authorization for ``phone``."""
    values = {
        "phone": phone,
        "order_id": order_id,
        "state": AWAITING_CHOICE,
        "equipment_ids": None,
        "created_at": utc_now(),
    }
    stmt = _upsert_statement(db.get_bind().dialect.name, values)
    if stmt is not None:
        db.execute(stmt)
    else:
        existing = get_pending(db, phone, for_update=True)
        if existing is None:
            db.add(PendingAuthorization(**values))
        else:
            for key, value in values.items():
                setattr(existing, key, value)
    db.flush()
    logger.info("Pending authorization for order %s set on phone ...%s", order_id, phone[-4:])


def get_pending(db: Session, phone: str, for_update: bool = False) -> Optional[PendingAuthorization]:
    query = (
        db.query(PendingAuthorization)
        .filter(PendingAuthorization.phone == phone)
        .execution_options(populate_existing=True)
    )
    if for_update:
        query = query.with_for_update()
    return query.first()


def is_expired(pending: PendingAuthorization, ttl_hours: float, now: Optional[datetime] = None) -> bool:
    if not ttl_hours or ttl_hours <= 0:
        return False
    created = pending.created_at
    if created is None:
        return False
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return now - created > timedelta(hours=ttl_hours)


def get_active_pending(
    db: Session,
    phone: str,
    ttl_hours: Optional[float] = None,
) -> Optional[PendingAuthorization]:
    """
    Lock and return the live pending authorization for ``phone``.

    An expired row is deleted (and committed) and None is returned.
    """
    if ttl_hours is None:
        ttl_hours = config.PENDING_AUTHORIZATION_TTL_HOURS

    pending = get_pending(db, phone, for_update=True)
    if pending is None:
        return None

    if is_expired(pending, ttl_hours):
        logger.info(
            "Pending authorization for order %s on phone ...%s expired after %sh",
            pending.order_id, phone[-4:], ttl_hours,
        )
        db.delete(pending)
        db.commit()
        return None

    return pending


def advance_to_selection(db: Session, pending: PendingAuthorization, equipment_ids: Sequence[int]) -> None:
    pending.state = AWAITING_EQUIPMENT_SELECTION
    pending.equipment_ids = list(equipment_ids)
    db.flush()


def delete_pending(db: Session, pending: PendingAuthorization) -> None:
    db.delete(pending)
    db.flush()


def list_pending_for_order(db: Session, order_id: int) -> List[PendingAuthorization]:
    return (
        db.query(PendingAuthorization)
        .filter(PendingAuthorization.order_id == order_id)
        .order_by(PendingAuthorization.created_at.desc())
        .all()
    )
