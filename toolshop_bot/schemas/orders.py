"""
Order Schemas for Toolshop Bot
==============================

Pydantic models for the operator order endpoints: order detail (machines,
quote header, open WhatsApp authorizations), equipment status changes and
status history.

Endpoint Coverage:
------------------
- GET /orders/{order_id}: Order detail
- PATCH /equipment-entries/{entry_id}/status: Change one machine's status
- GET /equipment-entries/{entry_id}/history: Status history, newest first

Equipment Statuses:
-------------------
pending_review -> reviewed -> quoted -> authorized | not_authorized
-> repaired -> delivered. Changes are validated against this vocabulary but
not against the order of the workflow, so operators can correct mistakes.

Usage:
------
    detail = OrderDetailOut.from_order(order, pending_rows)
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models import EQUIPMENT_STATUSES


class EquipmentEntryOut(BaseModel):
    """
    One machine of an order.

    Attributes:
        id: Equipment entry id
        status: Current status
        name / brand / serial: Tool identification
        quoted_subtotal: Machine subtotal from its quote, if quoted
    """
    id: int
    status: str
    name: str
    brand: Optional[str] = None
    serial: Optional[str] = None
    quoted_subtotal: Optional[float] = None


class QuoteHeaderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    subtotal: float
    tax: float
    total: float
    message_text: Optional[str] = None
    whatsapp_sent: bool
    whatsapp_sent_at: Optional[datetime] = None


class PendingAuthorizationOut(BaseModel):
    """An open WhatsApp authorization dialogue for the order."""
    model_config = ConfigDict(from_attributes=True)

    phone: str
    state: str
    equipment_ids: Optional[List[int]] = None
    created_at: datetime


class OrderDetailOut(BaseModel):
    id: int
    number: int
    status: str
    client_name: str
    client_phone: Optional[str] = None
    entries: List[EquipmentEntryOut]
    quote: Optional[QuoteHeaderOut] = None
    pending_authorizations: List[PendingAuthorizationOut] = Field(default_factory=list)

    @classmethod
    def from_order(cls, order, pending_rows) -> "OrderDetailOut":
        entries = [
            EquipmentEntryOut(
                id=entry.id,
                status=entry.status,
                name=entry.tool.name,
                brand=entry.tool.brand,
                serial=entry.tool.serial,
                quoted_subtotal=entry.quote.subtotal if entry.quote is not None else None,
            )
            for entry in order.entries
        ]
        return cls(
            id=order.id,
            number=order.display_number,
            status=order.status,
            client_name=order.client.name,
            client_phone=order.client.phone,
            entries=entries,
            quote=QuoteHeaderOut.model_validate(order.quote) if order.quote is not None else None,
            pending_authorizations=[PendingAuthorizationOut.model_validate(p) for p in pending_rows],
        )


class EquipmentStatusUpdate(BaseModel):
    """Request body for PATCH /equipment-entries/{entry_id}/status."""
    status: str

    @field_validator("status")
    @classmethod
    def status_in_vocabulary(cls, v: str) -> str:
        v = v.strip()
        if v not in EQUIPMENT_STATUSES:
            raise ValueError(f"status must be one of: {', '.join(EQUIPMENT_STATUSES)}")
        return v


class StatusHistoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    equipment_entry_id: int
    status: str
    changed_at: datetime


class StatusChangeResponse(BaseModel):
    success: bool = True
    entry_id: int
    status: str
    history_id: int
