"""
Messaging Package for Toolshop Bot
==================================

WhatsApp delivery and reception behind a single adapter interface.

Available Transports:
---------------------
- **TwilioWhatsAppTransport**: real delivery through Twilio (when configured)
- **MockTransport**: logs messages instead of sending them (development)

The process owns exactly one transport, created lazily by ``get_transport()``.
Tests install their own with ``set_transport()``.

Usage:
------
    from toolshop_bot.messaging import get_transport

    transport = get_transport()
    if transport.is_ready():
        transport.send("573104650437@c.us", "Hola")
"""

import logging
import threading
from typing import Optional

from .. import config
from .base import DeliveryResult, InboundMessage, MediaAttachment, MessagingTransport
from .mock import MockTransport

logger = logging.getLogger(__name__)

_transport: Optional[MessagingTransport] = None
_transport_lock = threading.Lock()


def build_transport() -> MessagingTransport:
    if not config.is_twilio_configured():
        logger.warning("Twilio not configured - WhatsApp messages will only be logged")
        return MockTransport()

    from .twilio_whatsapp import TwilioWhatsAppTransport

    return TwilioWhatsAppTransport(
        account_sid=config.TWILIO_ACCOUNT_SID,
        auth_token=config.TWILIO_AUTH_TOKEN,
        from_number=config.TWILIO_WHATSAPP_NUMBER,
        timeout=config.TRANSPORT_SEND_TIMEOUT_SECONDS,
    )


def get_transport() -> MessagingTransport:
    global _transport
    with _transport_lock:
        if _transport is None:
            _transport = build_transport()
        return _transport


def set_transport(transport: Optional[MessagingTransport]) -> None:
    global _transport
    with _transport_lock:
        _transport = transport


__all__ = [
    "DeliveryResult",
    "InboundMessage",
    "MediaAttachment",
    "MessagingTransport",
    "MockTransport",
    "build_transport",
    "get_transport",
    "set_transport",
]
