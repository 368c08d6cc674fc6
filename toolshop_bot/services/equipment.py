"""
Equipment Status Service
========================

Every status change of an equipment entry goes through ``set_equipment_status``,
which updates the entry and appends an EquipmentStatusLog row in the same
session. The history is never updated or deleted, so the newest log row always
carries the entry's current status.

``set_equipment_status`` only flushes; the caller owns the transaction. The
authorization state machine relies on this to commit status changes and the
pending-authorization deletion together.

Entry Ordering:
---------------
``list_order_entries`` orders by entry id. The numbered list a client sees
during partial authorization is built from this order, so it must stay stable.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session, joinedload

from ..exceptions import EquipmentEntryNotFoundError, InvalidStatusError, OrderNotFoundError
from ..models import EQUIPMENT_STATUSES, EquipmentEntry, EquipmentStatusLog, Order


logger = logging.getLogger(__name__)


def get_order(db: Session, order_id: int) -> Order:
    order = db.get(Order, order_id)
    if order is None:
        raise OrderNotFoundError(order_id)
    return order


def list_order_entries(
    db: Session,
    order_id: int,
    status: Optional[str] = None,
) -> List[EquipmentEntry]:
    """Entries of an order in stable (id) order, optionally filtered by status."""
    query = (
        db.query(EquipmentEntry)
        .options(joinedload(EquipmentEntry.tool), joinedload(EquipmentEntry.quote))
        .filter(EquipmentEntry.order_id == order_id)
    )
    if status is not None:
        query = query.filter(EquipmentEntry.status == status)
    return query.order_by(EquipmentEntry.id).all()


def set_equipment_status(db: Session, entry: EquipmentEntry, status: str) -> EquipmentStatusLog:
    """Set the entry status and append its history row. Does not commit."""
    if status not in EQUIPMENT_STATUSES:
        raise InvalidStatusError(
            f"Invalid status '{status}'. Allowed values: {', '.join(EQUIPMENT_STATUSES)}"
        )
    entry.status = status
    log = EquipmentStatusLog(equipment_entry_id=entry.id, status=status)
    db.add(log)
    db.flush()
    return log


def change_equipment_status(db: Session, entry_id: int, status: str) -> EquipmentStatusLog:
    """Operator-initiated status change; commits on success."""
    entry = db.get(EquipmentEntry, entry_id)
    if entry is None:
        raise EquipmentEntryNotFoundError(entry_id)
    try:
        log = set_equipment_status(db, entry, status)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Equipment entry %s set to %s", entry_id, status)
    return log


def get_status_history(db: Session, entry_id: int) -> List[EquipmentStatusLog]:
    """History rows for an entry, most recent first."""
    if db.get(EquipmentEntry, entry_id) is None:
        raise EquipmentEntryNotFoundError(entry_id)
    return (
        db.query(EquipmentStatusLog)
        .filter(EquipmentStatusLog.equipment_entry_id == entry_id)
        .order_by(EquipmentStatusLog.id.desc())
        .all()
    )
