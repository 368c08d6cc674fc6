"""
Processed inbound message ids.

Twilio retries a webhook it considers failed, so the same MessageSid can reach
the worker twice. An id is recorded in the same transaction as the
authorization change it caused; a message whose id is already recorded is
not applied again. Messages without an id are never filtered.

Rows older than INBOUND_DEDUPE_RETENTION_HOURS are pruned whenever a new id
is recorded.
"""

import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session

from .. import config
from ..models import ProcessedInboundMessage, utc_now


logger = logging.getLogger(__name__)


def was_processed(db: Session, message_id: Optional[str]) -> bool:
    if not message_id:
        return False
    return (
        db.query(ProcessedInboundMessage.id)
        .filter(ProcessedInboundMessage.message_id == message_id)
        .first()
        is not None
    )


def record_processed(db: Session, message_id: Optional[str], phone: str) -> None:
    """Add the id to the current transaction. Does not commit."""
    if not message_id:
        return
    retention = config.INBOUND_DEDUPE_RETENTION_HOURS
    if retention and retention > 0:
        cutoff = utc_now() - timedelta(hours=retention)
        pruned = (
            db.query(ProcessedInboundMessage)
            .filter(ProcessedInboundMessage.processed_at < cutoff)
            .delete(synchronize_session=False)
        )
        if pruned:
            logger.debug("Pruned %d processed inbound message ids", pruned)
    db.add(ProcessedInboundMessage(message_id=message_id, phone=phone))
    db.flush()
