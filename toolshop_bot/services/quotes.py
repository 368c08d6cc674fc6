"""
Machine Quotes
==============

Technicians quote each equipment entry of an order separately: labor cost,
a description of the work and the spare parts needed. Saving a machine quote
replaces its parts list and recomputes the order's QuoteHeader totals:

    machine subtotal = labor + sum(quantity * unit price)
    order subtotal   = sum of machine subtotals
    tax              = order subtotal * TAX_RATE
    total            = order subtotal + tax

The stored quote message (see services.drafting) is left untouched; the
operator regenerates it after changing a machine quote.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import config
from ..exceptions import EquipmentEntryNotFoundError
from ..models import EquipmentEntry, EquipmentQuote, QuoteHeader, QuoteLineItem, utc_now
from .equipment import get_order


logger = logging.getLogger(__name__)


@dataclass
class LineItemInput:
    name: str
    quantity: int = 1
    unit_price: float = 0.0


@dataclass
class SavedMachineQuote:
    order_id: int
    equipment_entry_id: int
    subtotal: float
    order_subtotal: float
    tax: float
    total: float


@dataclass
class OrderQuote:
    order_id: int
    header: Optional[QuoteHeader]
    machines: List[EquipmentQuote] = field(default_factory=list)

    @property
    def saved_count(self) -> int:
        return len(self.machines)


def order_totals(subtotal: float) -> Tuple[float, float, float]:
    """(subtotal, tax, total) for an order subtotal at the configured TAX_RATE."""
    tax = subtotal * config.TAX_RATE
    return subtotal, tax, subtotal + tax


def _get_order_entry(db: Session, order_id: int, entry_id: int) -> EquipmentEntry:
    get_order(db, order_id)
    entry = db.get(EquipmentEntry, entry_id)
    if entry is None or entry.order_id != order_id:
        raise EquipmentEntryNotFoundError(f"Equipment entry {entry_id} not found in order {order_id}")
    return entry


def get_machine_quote(
    db: Session,
    order_id: int,
    entry_id: int,
) -> Tuple[Optional[EquipmentQuote], List[QuoteLineItem]]:
    entry = _get_order_entry(db, order_id, entry_id)
    return entry.quote, list(entry.line_items)


def save_machine_quote(
    db: Session,
    order_id: int,
    entry_id: int,
    labor_cost: float,
    work_description: Optional[str],
    items: Sequence[LineItemInput],
    technician_id: Optional[str] = None,
) -> SavedMachineQuote:
    """Upsert one machine's quote, replace its parts and refresh the order totals. Commits."""
    entry = _get_order_entry(db, order_id, entry_id)
    labor = float(labor_cost or 0)

    try:
        entry.line_items.clear()
        parts_total = 0.0
        for item in items:
            quantity = max(1, int(item.quantity or 1))
            unit_price = float(item.unit_price or 0)
            line_subtotal = quantity * unit_price
            parts_total += line_subtotal
            entry.line_items.append(QuoteLineItem(
                name=(item.name or "").strip() or "Item",
                quantity=quantity,
                unit_price=unit_price,
                subtotal=line_subtotal,
            ))

        quote = entry.quote
        if quote is None:
            quote = EquipmentQuote()
            entry.quote = quote
        quote.technician_id = technician_id or None
        quote.labor_cost = labor
        quote.work_description = (work_description or "").strip() or None
        quote.subtotal = labor + parts_total
        quote.updated_at = utc_now()
        db.flush()

        machines_sum = (
            db.query(func.coalesce(func.sum(EquipmentQuote.subtotal), 0.0))
            .join(EquipmentEntry, EquipmentEntry.id == EquipmentQuote.equipment_entry_id)
            .filter(EquipmentEntry.order_id == order_id)
            .scalar()
        )
        subtotal, tax, total = order_totals(float(machines_sum or 0))

        header = db.query(QuoteHeader).filter(QuoteHeader.order_id == order_id).first()
        if header is None:
            header = QuoteHeader(order_id=order_id)
            db.add(header)
        header.subtotal = subtotal
        header.tax = tax
        header.total = total
        header.updated_at = utc_now()

        machine_subtotal = quote.subtotal
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Quote saved for equipment entry %s of order %s (machine %.0f, order total %.0f)",
        entry_id, order_id, machine_subtotal, total,
    )
    return SavedMachineQuote(
        order_id=order_id,
        equipment_entry_id=entry_id,
        subtotal=machine_subtotal,
        order_subtotal=subtotal,
        tax=tax,
        total=total,
    )


def get_order_quote(db: Session, order_id: int) -> OrderQuote:
    """Header (None until a machine is quoted) and saved machine quotes in entry order."""
    get_order(db, order_id)
    machines = (
        db.query(EquipmentQuote)
        .join(EquipmentEntry, EquipmentEntry.id == EquipmentQuote.equipment_entry_id)
        .filter(EquipmentEntry.order_id == order_id)
        .order_by(EquipmentEntry.id)
        .all()
    )
    header = db.query(QuoteHeader).filter(QuoteHeader.order_id == order_id).first()
    return OrderQuote(order_id=order_id, header=header, machines=machines)
