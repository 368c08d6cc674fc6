"""
Routes Package for Toolshop Bot
===============================

API route definitions organized by domain. Each module defines a FastAPI
APIRouter with related endpoints grouped together.

**Public Routes:**
- whatsapp.py: POST /whatsapp/webhook (Twilio inbound messages)

**Operator Routes (require authentication):**
- quotes.py: Quote message drafting and sending
- orders.py: Order detail, equipment status, status notifications
- whatsapp.py: Transport status and free-form sends

Error Handling:
---------------
Service exceptions are mapped by ``errors.http_error``:
- 400: Precondition failed (no mobile number, no quote message, ...)
- 401: Unauthorized (invalid credentials)
- 403: Invalid Twilio signature
- 404: Order or equipment entry not found
- 429: Too many requests (rate limited)
- 502: WhatsApp delivery failed
- 503: WhatsApp not connected, or admin auth not configured
"""

from .orders import orders_router
from .quotes import quotes_router
from .whatsapp import limiter, whatsapp_router

__all__ = [
    "limiter",
    "orders_router",
    "quotes_router",
    "whatsapp_router",
]
