"""
Order Routes for Toolshop Bot
=============================

Operator endpoints for an order's machines and their status notifications.

Endpoints:
----------
- GET /orders/{order_id}: Order detail with machines, quote and open
  WhatsApp authorizations
- PATCH /equipment-entries/{entry_id}/status: Change a machine's status
  (appends a history row)
- GET /equipment-entries/{entry_id}/history: Status history, newest first
- POST /orders/{order_id}/notify-parts: Parts list of authorized machines
  to the parts department
- POST /orders/{order_id}/notify-ready: "Ready for pickup" to the client
- POST /orders/{order_id}/notify-delivered: Delivery confirmation to the client

Authentication:
---------------
All endpoints require admin authentication via HTTP Basic Auth.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import verify_admin_credentials
from ..db import get_db
from ..exceptions import ToolshopError
from ..messaging import MessagingTransport, get_transport
from ..schemas.orders import (
    EquipmentStatusUpdate,
    OrderDetailOut,
    StatusChangeResponse,
    StatusHistoryOut,
)
from ..schemas.whatsapp import DispatchResponse
from ..services import dispatch
from ..services.equipment import change_equipment_status, get_order, get_status_history
from ..services.pending import list_pending_for_order
from .errors import http_error


logger = logging.getLogger(__name__)

orders_router = APIRouter(tags=["Orders"])


# =============================================================================
# Order Detail
# =============================================================================

@orders_router.get("/orders/{order_id}", response_model=OrderDetailOut)
def get_order_detail(
    order_id: int,
    db: Session = Depends(get_db),
    _admin: str = Depends(verify_admin_credentials),
) -> OrderDetailOut:
    try:
        order = get_order(db, order_id)
    except ToolshopError as e:
        raise http_error(e)
    return OrderDetailOut.from_order(order, list_pending_for_order(db, order.id))


# =============================================================================
# Equipment Status
# =============================================================================

@orders_router.patch("/equipment-entries/{entry_id}/status", response_model=StatusChangeResponse)
def update_equipment_status(
    entry_id: int,
    payload: EquipmentStatusUpdate,
    db: Session = Depends(get_db),
    _admin: str = Depends(verify_admin_credentials),
) -> StatusChangeResponse:
    try:
        log = change_equipment_status(db, entry_id, payload.status)
    except ToolshopError as e:
        raise http_error(e)
    return StatusChangeResponse(entry_id=entry_id, status=log.status, history_id=log.id)


@orders_router.get("/equipment-entries/{entry_id}/history", response_model=List[StatusHistoryOut])
def equipment_status_history(
    entry_id: int,
    db: Session = Depends(get_db),
    _admin: str = Depends(verify_admin_credentials),
) -> List[StatusHistoryOut]:
    try:
        rows = get_status_history(db, entry_id)
    except ToolshopError as e:
        raise http_error(e)
    return [StatusHistoryOut.model_validate(row) for row in rows]


# =============================================================================
# Status Notifications
# =============================================================================

@orders_router.post("/orders/{order_id}/notify-parts", response_model=DispatchResponse)
def notify_parts(
    order_id: int,
    db: Session = Depends(get_db),
    transport: MessagingTransport = Depends(get_transport),
    _admin: str = Depends(verify_admin_credentials),
) -> DispatchResponse:
    try:
        result = dispatch.send_parts_notification(db, transport, order_id)
    except ToolshopError as e:
        raise http_error(e)
    return DispatchResponse.from_result(result)


@orders_router.post("/orders/{order_id}/notify-ready", response_model=DispatchResponse)
def notify_ready(
    order_id: int,
    db: Session = Depends(get_db),
    transport: MessagingTransport = Depends(get_transport),
    _admin: str = Depends(verify_admin_credentials),
) -> DispatchResponse:
    try:
        result = dispatch.notify_ready(db, transport, order_id)
    except ToolshopError as e:
        raise http_error(e)
    return DispatchResponse.from_result(result)


@orders_router.post("/orders/{order_id}/notify-delivered", response_model=DispatchResponse)
def notify_delivered(
    order_id: int,
    db: Session = Depends(get_db),
    transport: MessagingTransport = Depends(get_transport),
    _admin: str = Depends(verify_admin_credentials),
) -> DispatchResponse:
    try:
        result = dispatch.notify_delivered(db, transport, order_id)
    except ToolshopError as e:
        raise http_error(e)
    return DispatchResponse.from_result(result)
