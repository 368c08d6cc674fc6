"""
Quote Routes for Toolshop Bot
=============================

Endpoints:
----------
- GET /quotes/machine?order_id=..&equipment_entry_id=..: One machine's quote
  and parts list
- POST /quotes/machine: Save one machine's quote (labor, work description,
  parts) and recompute the order totals
- GET /quotes/order/{order_id}: Order totals and every saved machine quote
- POST /quotes/order/{order_id}/generate-message: Compute totals and draft
  the WhatsApp quote message (OpenAI, or a template without API key)
- POST /quotes/order/{order_id}/send-whatsapp: Send the drafted message to
  every client mobile number and open the authorization dialogue

Authentication:
---------------
All endpoints require admin authentication via HTTP Basic Auth.

Usage:
------
    POST /quotes/machine
    {"order_id": 42, "equipment_entry_id": 7, "labor_cost": 45000,
     "work_description": "Cambio de carbones",
     "items": [{"name": "Carbones", "quantity": 2, "unit_price": 12000}]}

    POST /quotes/order/42/generate-message
    POST /quotes/order/42/send-whatsapp
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import verify_admin_credentials
from ..db import get_db
from ..exceptions import ToolshopError
from ..messaging import MessagingTransport, get_transport
from ..schemas.orders import QuoteHeaderOut
from ..schemas.quotes import (
    MachineQuoteDetailOut,
    MachineQuoteOut,
    MachineQuoteSave,
    MachineQuoteSaveResponse,
    OrderQuoteOut,
    QuoteLineItemOut,
)
from ..schemas.whatsapp import DispatchResponse, QuoteDraftResponse, QuoteTotalsOut
from ..services.dispatch import send_quote_to_client
from ..services.drafting import draft_quote_message
from ..services.quotes import LineItemInput, get_machine_quote, get_order_quote, save_machine_quote
from .errors import http_error


logger = logging.getLogger(__name__)

quotes_router = APIRouter(prefix="/quotes", tags=["Quotes"])


# =============================================================================
# Machine Quotes
# =============================================================================

@quotes_router.get("/machine", response_model=MachineQuoteDetailOut)
def read_machine_quote(
    order_id: int,
    equipment_entry_id: int,
    db: Session = Depends(get_db),
    _admin: str = Depends(verify_admin_credentials),
) -> MachineQuoteDetailOut:
    try:
        quote, items = get_machine_quote(db, order_id, equipment_entry_id)
    except ToolshopError as e:
        raise http_error(e)
    return MachineQuoteDetailOut(
        exists=quote is not None,
        machine_quote=MachineQuoteOut.model_validate(quote) if quote is not None else None,
        items=[QuoteLineItemOut.model_validate(item) for item in items],
    )


@quotes_router.post("/machine", response_model=MachineQuoteSaveResponse)
def save_machine_quote_endpoint(
    payload: MachineQuoteSave,
    db: Session = Depends(get_db),
    _admin: str = Depends(verify_admin_credentials),
) -> MachineQuoteSaveResponse:
    items = [
        LineItemInput(name=item.name, quantity=item.quantity, unit_price=item.unit_price)
        for item in payload.items
    ]
    try:
        saved = save_machine_quote(
            db,
            payload.order_id,
            payload.equipment_entry_id,
            labor_cost=payload.labor_cost,
            work_description=payload.work_description,
            items=items,
            technician_id=payload.technician_id,
        )
    except ToolshopError as e:
        raise http_error(e)
    return MachineQuoteSaveResponse(
        order_id=saved.order_id,
        equipment_entry_id=saved.equipment_entry_id,
        subtotal=saved.subtotal,
        order_subtotal=saved.order_subtotal,
        tax=saved.tax,
        total=saved.total,
    )


@quotes_router.get("/order/{order_id}", response_model=OrderQuoteOut)
def read_order_quote(
    order_id: int,
    db: Session = Depends(get_db),
    _admin: str = Depends(verify_admin_credentials),
) -> OrderQuoteOut:
    try:
        quote = get_order_quote(db, order_id)
    except ToolshopError as e:
        raise http_error(e)
    return OrderQuoteOut(
        order_id=quote.order_id,
        header=QuoteHeaderOut.model_validate(quote.header) if quote.header is not None else None,
        machines=[MachineQuoteOut.model_validate(machine) for machine in quote.machines],
        saved_count=quote.saved_count,
    )


# =============================================================================
# Quote Message
# =============================================================================

@quotes_router.post("/order/{order_id}/generate-message", response_model=QuoteDraftResponse)
def generate_quote_message(
    order_id: int,
    db: Session = Depends(get_db),
    _admin: str = Depends(verify_admin_credentials),
) -> QuoteDraftResponse:
    try:
        draft = draft_quote_message(db, order_id)
    except ToolshopError as e:
        raise http_error(e)
    return QuoteDraftResponse(
        order_id=draft.order_id,
        message=draft.message,
        totals=QuoteTotalsOut(subtotal=draft.subtotal, tax=draft.tax, total=draft.total),
        machines_count=draft.machines_count,
        generated_by_ai=draft.generated_by_ai,
    )


@quotes_router.post("/order/{order_id}/send-whatsapp", response_model=DispatchResponse)
def send_quote_whatsapp(
    order_id: int,
    db: Session = Depends(get_db),
    transport: MessagingTransport = Depends(get_transport),
    _admin: str = Depends(verify_admin_credentials),
) -> DispatchResponse:
    try:
        result = send_quote_to_client(db, transport, order_id)
    except ToolshopError as e:
        raise http_error(e)
    return DispatchResponse.from_result(result)
