"""
Schemas Package for Toolshop Bot
================================

Pydantic models used for API request validation and response serialization.

Schema Organization:
--------------------
- **orders.py**: Order detail, equipment status changes and history
- **quotes.py**: Per-machine quotes and order quote totals
- **whatsapp.py**: WhatsApp sends, transport status and quote drafting

Naming Conventions:
-------------------
- *Out: Response models (e.g., OrderDetailOut)
- *Update: Request models for PATCH (e.g., EquipmentStatusUpdate)
- *Request / *Response: Other request bodies and response structures
"""

from .orders import (
    EquipmentEntryOut,
    EquipmentStatusUpdate,
    OrderDetailOut,
    PendingAuthorizationOut,
    QuoteHeaderOut,
    StatusChangeResponse,
    StatusHistoryOut,
)
from .quotes import (
    MachineQuoteDetailOut,
    MachineQuoteOut,
    MachineQuoteSave,
    MachineQuoteSaveResponse,
    OrderQuoteOut,
    QuoteLineItemIn,
    QuoteLineItemOut,
)
from .whatsapp import (
    DispatchResponse,
    QuoteDraftResponse,
    QuoteTotalsOut,
    WhatsAppSendRequest,
    WhatsAppStatusOut,
)

__all__ = [
    "EquipmentEntryOut",
    "EquipmentStatusUpdate",
    "OrderDetailOut",
    "PendingAuthorizationOut",
    "QuoteHeaderOut",
    "StatusChangeResponse",
    "StatusHistoryOut",
    "MachineQuoteDetailOut",
    "MachineQuoteOut",
    "MachineQuoteSave",
    "MachineQuoteSaveResponse",
    "OrderQuoteOut",
    "QuoteLineItemIn",
    "QuoteLineItemOut",
    "DispatchResponse",
    "QuoteDraftResponse",
    "QuoteTotalsOut",
    "WhatsAppSendRequest",
    "WhatsAppStatusOut",
]
