"""
Inbound WhatsApp worker.

A single daemon thread drains the transport's inbound queue and hands each
message to the authorization state machine with a fresh database session.
Messages are processed one at a time in arrival order. An error while
handling a message is logged and the loop moves on to the next one; the
client may have to answer again.
"""

import logging
import threading
from typing import Callable, Optional

from sqlalchemy.orm import Session

from .. import config, db as db_module
from ..messaging.base import InboundMessage, MessagingTransport
from .authorization import AuthorizationOutcome, handle_inbound_message


logger = logging.getLogger(__name__)


def process_inbound_message(
    transport: MessagingTransport,
    message: InboundMessage,
    session_factory: Optional[Callable[[], Session]] = None,
) -> Optional[AuthorizationOutcome]:
    """Handle one message in its own session. Errors propagate."""
    session = (session_factory or db_module.new_session)()
    try:
        outcome = handle_inbound_message(session, transport, message)
    finally:
        session.close()
    if outcome is not None:
        logger.info(
            "Inbound message from ...%s: %s (order %s)",
            outcome.phone[-4:], outcome.transition.value, outcome.order_id,
        )
    return outcome


class InboundWorker:
    def __init__(
        self,
        transport: MessagingTransport,
        session_factory: Optional[Callable[[], Session]] = None,
        poll_seconds: Optional[float] = None,
    ) -> None:
        self.transport = transport
        self.session_factory = session_factory
        self.poll_seconds = config.INBOUND_POLL_SECONDS if poll_seconds is None else poll_seconds
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="inbound-whatsapp", daemon=True)
        self._thread.start()
        logger.info("Inbound WhatsApp worker started")

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning("Inbound WhatsApp worker did not stop within %ss", timeout)
            self._thread = None
        logger.info("Inbound WhatsApp worker stopped")

    def run_once(self, timeout: Optional[float] = None) -> bool:
        """Process the next queued message, if any arrives within ``timeout``."""
        message = self.transport.next_inbound(timeout=timeout)
        if message is None:
            return False
        try:
            process_inbound_message(self.transport, message, self.session_factory)
        except Exception:
            logger.exception("Failed to process inbound message %s", message.message_id or "(no id)")
        return True

    def _run(self) -> None:
        while not self._stop.is_set():
            self.run_once(timeout=self.poll_seconds)
