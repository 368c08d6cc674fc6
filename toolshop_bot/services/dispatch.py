"""
Operator-initiated WhatsApp sends.

Everything here is triggered from an operator endpoint, so every failure is
raised to the caller: transport not ready, unknown order, missing quote
message, no client mobile number, unconfigured parts channel, nothing to
notify, and transport delivery errors.

Sending a quote is also the entry point of the authorization dialogue: every
phone that received the quote gets a pending authorization (``awaiting_choice``)
for the order, replacing whatever conversation that phone had before.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.orm import Session

from .. import config
from ..exceptions import (
    NoDestinationError,
    PartsChannelNotConfiguredError,
    QuoteMessageMissingError,
    ToolshopError,
    TransportNotReadyError,
)
from ..messaging.base import MediaAttachment, MessageContent, MessagingTransport
from ..models import Order, QuoteHeader, utc_now
from ..phones import parse_colombian_phones, strip_chat_suffix, to_chat_id
from . import notifications
from .equipment import get_order
from .locks import phone_locks
from .pending import upsert_pending


logger = logging.getLogger(__name__)


@dataclass
class DispatchResult:
    order_id: int
    recipients: List[str] = field(default_factory=list)

    @property
    def recipient_count(self) -> int:
        return len(self.recipients)


def _require_ready(transport: MessagingTransport) -> None:
    if not transport.is_ready():
        raise TransportNotReadyError("WhatsApp is not connected")


def client_chat_ids(order: Order) -> List[str]:
    """Chat ids of every mobile number on the order's client record."""
    raw = order.client.phone if order.client is not None else None
    chat_ids = parse_colombian_phones(raw)
    if not chat_ids:
        raise NoDestinationError(f"No valid mobile number found for the client of order {order.id}")
    return chat_ids


def _send_to_all(transport: MessagingTransport, order: Order, content: MessageContent) -> DispatchResult:
    result = DispatchResult(order_id=order.id)
    for chat_id in client_chat_ids(order):
        transport.send(chat_id, content)
        result.recipients.append(chat_id)
    return result


def send_quote_to_client(db: Session, transport: MessagingTransport, order_id: int) -> DispatchResult:
    """
    Send the stored quote message to every client number and open the
    authorization dialogue on each of them.

    Each phone is handled under its per-phone lock and committed on its own,
    so a reply being processed for that phone finishes before its pending
    authorization is replaced. If a send fails midway, phones that already
    received the quote keep their pending authorization and the error is
    raised.
    """
    _require_ready(transport)
    order = get_order(db, order_id)
    header = db.query(QuoteHeader).filter(QuoteHeader.order_id == order.id).first()
    message = header.message_text if header is not None and header.message_text else ""
    if not message.strip():
        raise QuoteMessageMissingError("Generate the quote message before sending it")

    result = DispatchResult(order_id=order.id)
    try:
        for chat_id in client_chat_ids(order):
            phone = strip_chat_suffix(chat_id)
            with phone_locks.hold(phone):
                transport.send(chat_id, message)
                upsert_pending(db, phone, order.id)
                _commit(db)
            result.recipients.append(chat_id)
    except ToolshopError:
        if result.recipients:
            _mark_quote_sent(db, header)
            logger.warning(
                "Quote for order %s only reached %d number(s) before failing",
                order.id, result.recipient_count,
            )
        else:
            db.rollback()
        raise

    _mark_quote_sent(db, header)
    logger.info("Quote for order %s sent to %d number(s)", order.id, result.recipient_count)
    return result


def _commit(db: Session) -> None:
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise


def _mark_quote_sent(db: Session, header: QuoteHeader) -> None:
    header.whatsapp_sent = True
    header.whatsapp_sent_at = utc_now()
    _commit(db)


def send_text_to_client(
    db: Session,
    transport: MessagingTransport,
    order_id: int,
    text: str,
    media: Optional[MediaAttachment] = None,
) -> DispatchResult:
    """Free-form message (or attachment with caption) to every client number."""
    _require_ready(transport)
    order = get_order(db, order_id)
    content: MessageContent = media if media is not None else str(text or "")
    result = _send_to_all(transport, order, content)
    logger.info("Message for order %s sent to %d number(s)", order.id, result.recipient_count)
    return result


def send_parts_notification(db: Session, transport: MessagingTransport, order_id: int) -> DispatchResult:
    """Consolidated parts list of the authorized machines, to the parts department."""
    chat_id = to_chat_id(config.PARTS_WHATSAPP_NUMBER)
    if chat_id is None:
        raise PartsChannelNotConfiguredError("PARTS_WHATSAPP_NUMBER is not configured")
    _require_ready(transport)
    text = notifications.compose_parts_notification(db, order_id)
    transport.send(chat_id, text)
    logger.info("Parts list for order %s sent to the parts department", order_id)
    return DispatchResult(order_id=order_id, recipients=[chat_id])


def notify_ready(db: Session, transport: MessagingTransport, order_id: int) -> DispatchResult:
    _require_ready(transport)
    order = get_order(db, order_id)
    text = notifications.compose_ready_notification(db, order_id)
    result = _send_to_all(transport, order, text)
    logger.info("Ready-for-pickup notice for order %s sent", order_id)
    return result


def notify_delivered(db: Session, transport: MessagingTransport, order_id: int) -> DispatchResult:
    _require_ready(transport)
    order = get_order(db, order_id)
    text = notifications.compose_delivered_notification(db, order_id)
    result = _send_to_all(transport, order, text)
    logger.info("Delivery confirmation for order %s sent", order_id)
    return result
