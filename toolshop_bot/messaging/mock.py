"""
Mock WhatsApp transport.

Used when Twilio is not configured: every send is logged and kept in
``sent`` instead of leaving the process, like the SMS mock mode.
"""

import logging
import threading
import uuid
from typing import List, Optional, Tuple

from ..exceptions import UnresolvableDestinationError
from ..phones import CHAT_SUFFIX, strip_chat_suffix
from .base import DeliveryResult, MediaAttachment, MessageContent, MessagingTransport

logger = logging.getLogger(__name__)


class MockTransport(MessagingTransport):
    name = "mock"

    def __init__(self, unreachable: Optional[List[str]] = None) -> None:
        super().__init__()
        self.sent: List[Tuple[str, MessageContent]] = []
        # Numbers (without suffix) that behave as if they had no WhatsApp account
        self.unreachable = set(unreachable or [])
        self._lock = threading.Lock()

    def _handshake(self) -> bool:
        return True

    def resolve_destination(self, destination_id: str) -> str:
        phone = strip_chat_suffix(destination_id)
        if not phone.isdigit() or phone in self.unreachable:
            raise UnresolvableDestinationError(destination_id, "number has no WhatsApp account")
        return f"{phone}{CHAT_SUFFIX}"

    def _deliver(self, address: str, content: MessageContent) -> DeliveryResult:
        if isinstance(content, MediaAttachment):
            logger.info("MOCK WhatsApp media to %s: %s", address, content.filename or content.url)
        else:
            logger.info("MOCK WhatsApp to %s: %s", address, content)
        with self._lock:
            self.sent.append((address, content))
        return DeliveryResult(destination=address, message_id=f"mock-{uuid.uuid4().hex[:12]}", mock=True)

    def messages_to(self, destination_id: str) -> List[MessageContent]:
        address = f"{strip_chat_suffix(destination_id)}{CHAT_SUFFIX}"
        with self._lock:
            return [content for to, content in self.sent if to == address]
