"""
WhatsApp Routes for Toolshop Bot
================================

Endpoints:
----------
- POST /whatsapp/webhook: Twilio inbound message webhook (public, rate limited)
- GET /whatsapp/status: Transport readiness (admin)
- POST /whatsapp/send: Free-form message or attachment to an order's client (admin)

Inbound Flow:
-------------
The webhook only converts the Twilio form into an InboundMessage and puts it
on the transport's inbound queue; the inbound worker applies it to the
authorization dialogue. The webhook answers immediately with empty TwiML so
Twilio does not send a reply of its own.

Webhook Security:
-----------------
With TWILIO_VALIDATE_SIGNATURE=true the X-Twilio-Signature header is checked
with Twilio's RequestValidator and invalid requests get 403.

Rate Limiting:
--------------
Every webhook call comes from Twilio, so the limit is counted per WhatsApp
sender (the form's From field) rather than per remote address. One chatty
client cannot use up the budget of the others. Calls without a sender fall
back to the remote address.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.orm import Session
from twilio.request_validator import RequestValidator

from .. import config
from ..auth import verify_admin_credentials
from ..config import RATE_LIMIT_ENABLED, get_rate_limit_webhook
from ..db import get_db
from ..exceptions import ToolshopError
from ..messaging import MediaAttachment, MessagingTransport, get_transport
from ..messaging.twilio_whatsapp import inbound_from_twilio_form
from ..schemas.whatsapp import DispatchResponse, WhatsAppSendRequest, WhatsAppStatusOut
from ..services.dispatch import send_text_to_client
from .errors import http_error


logger = logging.getLogger(__name__)

whatsapp_router = APIRouter(prefix="/whatsapp", tags=["WhatsApp"])


# =============================================================================
# Rate Limiting Setup
# =============================================================================

def get_whatsapp_sender_or_ip(request: Request) -> str:
    """Get rate limit key from the webhook sender or fall back to IP."""
    sender = getattr(request.state, "whatsapp_sender", None)
    if sender:
        return f"whatsapp:{sender}"
    return get_remote_address(request)


limiter = Limiter(key_func=get_whatsapp_sender_or_ip, enabled=RATE_LIMIT_ENABLED)

EMPTY_TWIML = '<?xml version="1.0" encoding="UTF-8"?><Response></Response>'


async def _webhook_form(request: Request) -> dict:
    """
    Parse the Twilio form before the rate limit is checked.

    FastAPI resolves dependencies before calling the limiter-wrapped endpoint,
    so the sender stored here is what get_whatsapp_sender_or_ip sees.
    """
    form = await request.form()
    params = {key: value for key, value in form.items()}
    request.state.whatsapp_sender = str(params.get("From") or "").strip()
    return params


def _signature_is_valid(request: Request, params: dict) -> bool:
    validator = RequestValidator(config.TWILIO_AUTH_TOKEN or "")
    signature = request.headers.get("X-Twilio-Signature", "")
    return validator.validate(str(request.url), params, signature)


# =============================================================================
# Inbound Webhook
# =============================================================================

@whatsapp_router.post("/webhook")
@limiter.limit(get_rate_limit_webhook)
async def whatsapp_webhook(
    request: Request,
    params: dict = Depends(_webhook_form),
    transport: MessagingTransport = Depends(get_transport),
) -> Response:
    if config.TWILIO_VALIDATE_SIGNATURE and not _signature_is_valid(request, params):
        logger.warning("Rejected WhatsApp webhook with invalid Twilio signature")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid signature")

    message = inbound_from_twilio_form(params)
    if message is None:
        logger.debug("Webhook call without sender ignored")
    else:
        transport.publish_inbound(message)
        logger.debug("Queued inbound WhatsApp message %s", message.message_id)

    return Response(content=EMPTY_TWIML, media_type="application/xml")


# =============================================================================
# Operator Endpoints
# =============================================================================

@whatsapp_router.get("/status", response_model=WhatsAppStatusOut)
def whatsapp_status(
    transport: MessagingTransport = Depends(get_transport),
    _admin: str = Depends(verify_admin_credentials),
) -> WhatsAppStatusOut:
    return WhatsAppStatusOut(
        ready=transport.is_ready(),
        transport=transport.name,
        pending_inbound=transport.pending_inbound(),
    )


@whatsapp_router.post("/send", response_model=DispatchResponse)
def whatsapp_send(
    payload: WhatsAppSendRequest,
    db: Session = Depends(get_db),
    transport: MessagingTransport = Depends(get_transport),
    _admin: str = Depends(verify_admin_credentials),
) -> DispatchResponse:
    media = None
    if payload.media_url:
        media = MediaAttachment(url=payload.media_url, filename=payload.filename, caption=payload.message)
    try:
        result = send_text_to_client(db, transport, payload.order_id, payload.message or "", media=media)
    except ToolshopError as e:
        raise http_error(e)
    return DispatchResponse.from_result(result)
