"""
Messaging transport contract.

The rest of the package only talks to WhatsApp through a MessagingTransport:

- ``is_ready()`` is True only after ``connect()`` finished its handshake.
  Outbound operations fail with TransportNotReadyError otherwise; nothing is
  queued.
- ``send(destination_id, content)`` delivers text or a media attachment to a
  canonical chat id ("57XXXXXXXXXX@c.us"). Destination resolution is the
  adapter's job (``resolve_destination``); a number without WhatsApp raises
  UnresolvableDestinationError, any other failure TransportError.
- Inbound messages are published into a thread-safe queue
  (``publish_inbound``) and consumed with ``next_inbound`` by the inbound
  worker, which feeds the authorization state machine.
"""

import logging
import queue
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Union

from ..exceptions import TransportNotReadyError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MediaAttachment:
    """A file reachable by URL (PDF quote, maintenance report, ...)."""
    url: str
    filename: Optional[str] = None
    caption: Optional[str] = None


@dataclass(frozen=True)
class InboundMessage:
    sender_id: str
    body_text: str
    message_id: Optional[str] = None
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class DeliveryResult:
    destination: str
    message_id: Optional[str] = None
    status: str = "sent"
    mock: bool = False


MessageContent = Union[str, MediaAttachment]


class MessagingTransport(ABC):
    """Base adapter: owns the readiness flag and the inbound event queue."""

    name = "base"

    def __init__(self) -> None:
        self._ready = threading.Event()
        self._inbound: "queue.Queue[InboundMessage]" = queue.Queue()

    # --- Session lifecycle ---

    def is_ready(self) -> bool:
        return self._ready.is_set()

    def connect(self) -> bool:
        """Run the handshake. Returns the resulting readiness."""
        try:
            ok = self._handshake()
        except Exception as e:
            logger.error("%s transport handshake failed: %s", self.name, e)
            ok = False
        if ok:
            self._ready.set()
            logger.info("%s transport connected and ready", self.name)
        else:
            self._ready.clear()
        return ok

    def disconnect(self, reason: str = "") -> None:
        if self._ready.is_set():
            logger.warning("%s transport disconnected: %s", self.name, reason or "no reason given")
        self._ready.clear()

    # --- Outbound ---

    def send(self, destination_id: str, content: MessageContent) -> DeliveryResult:
        if not self.is_ready():
            raise TransportNotReadyError("WhatsApp transport is not connected")
        resolved = self.resolve_destination(destination_id)
        return self._deliver(resolved, content)

    @abstractmethod
    def resolve_destination(self, destination_id: str) -> str:
        """Map a chat id or bare number to the address the provider expects."""

    @abstractmethod
    def _handshake(self) -> bool:
        ...

    @abstractmethod
    def _deliver(self, address: str, content: MessageContent) -> DeliveryResult:
        ...

    # --- Inbound event channel ---

    def publish_inbound(self, message: InboundMessage) -> None:
        self._inbound.put(message)

    def next_inbound(self, timeout: Optional[float] = None) -> Optional[InboundMessage]:
        """Block up to ``timeout`` seconds for the next inbound message."""
        try:
            return self._inbound.get(timeout=timeout)
        except queue.Empty:
            return None

    def pending_inbound(self) -> int:
        return self._inbound.qsize()
