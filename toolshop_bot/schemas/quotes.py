"""
Machine Quote Schemas for Toolshop Bot
======================================

Pydantic models for saving and reading per-machine quotes.

Endpoint Coverage:
------------------
- GET /quotes/machine: One machine's quote and parts
- POST /quotes/machine: Save one machine's quote (replaces its parts)
- GET /quotes/order/{order_id}: Order totals and every saved machine quote
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .orders import QuoteHeaderOut


class QuoteLineItemIn(BaseModel):
    name: str = ""
    quantity: int = Field(default=1, ge=1)
    unit_price: float = Field(default=0.0, ge=0)


class MachineQuoteSave(BaseModel):
    """
    Quote for one equipment entry.

    ``items`` replaces the machine's whole parts list; send an empty list for
    labor-only repairs.
    """
    order_id: int
    equipment_entry_id: int
    technician_id: Optional[str] = None
    labor_cost: float = Field(default=0.0, ge=0)
    work_description: Optional[str] = None
    items: List[QuoteLineItemIn] = Field(default_factory=list)


class QuoteLineItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    quantity: int
    unit_price: float
    subtotal: float


class MachineQuoteOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    equipment_entry_id: int
    technician_id: Optional[str] = None
    labor_cost: float
    work_description: Optional[str] = None
    subtotal: float
    updated_at: Optional[datetime] = None


class MachineQuoteDetailOut(BaseModel):
    exists: bool
    machine_quote: Optional[MachineQuoteOut] = None
    items: List[QuoteLineItemOut] = Field(default_factory=list)


class MachineQuoteSaveResponse(BaseModel):
    success: bool = True
    order_id: int
    equipment_entry_id: int
    subtotal: float
    order_subtotal: float
    tax: float
    total: float


class OrderQuoteOut(BaseModel):
    success: bool = True
    order_id: int
    header: Optional[QuoteHeaderOut] = None
    machines: List[MachineQuoteOut] = Field(default_factory=list)
    saved_count: int = 0
