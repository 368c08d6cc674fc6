"""
WhatsApp Quote Authorization
============================

Interprets the client's WhatsApp answers to a quote and applies them to the
order's equipment.

Conversation States:
--------------------
The state lives in the client's PendingAuthorization row (one per phone).
No row means no conversation: the message is ignored.

``awaiting_choice`` - the trimmed reply must be exactly one of:

    "1"  authorize every machine   -> entries authorized, row deleted,
                                      parts list sent, client confirmed
    "2"  reject                    -> entries not_authorized, row deleted,
                                      client confirmed (no parts list)
    "3"  partial authorization     -> numbered list sent, row moves to
                                      awaiting_equipment_selection
                                      (an order without machines is
                                      handed to the advisor instead)
    "4"  talk to an advisor        -> row deleted, advisor number sent
    anything else                  -> re-prompt, row unchanged

``awaiting_equipment_selection`` - every digit run in the reply is a machine
number. Numbers outside 1..N are dropped; if none remain the client is asked
again and the row stays as is (no retry limit). Otherwise the selected
machines are authorized, the others not_authorized, the row is deleted, the
parts list is sent and the client gets a summary.

Numbered List Snapshot:
-----------------------
When the list is shown, the ordered entry ids are stored in the row. If the
order's entries differ when the selection arrives, nothing is applied: the
client receives the refreshed list and the snapshot is replaced, so a number
always refers to the machine the client saw.

Transactions and Side Effects:
------------------------------
Status changes, history rows and the pending-row deletion commit together; a
storage error rolls all of them back and propagates. Messages to the client
and the parts list go out after the commit. Their failures are logged and
never undo the transition.

Handling for one phone is serialized with a per-phone lock (shared with
operator quote sends) on top of the row lock taken when the pending row is
read.

Redelivered Messages:
---------------------
The provider message id of every applied transition is recorded with it. A
message whose id was already applied is ignored, so a retried "3" is never
read as a selection of machine 3.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import config
from ..exceptions import ToolshopError
from ..messaging.base import InboundMessage, MessagingTransport
from ..models import (
    AUTHORIZED,
    AWAITING_CHOICE,
    AWAITING_EQUIPMENT_SELECTION,
    NOT_AUTHORIZED,
    EquipmentEntry,
    PendingAuthorization,
)
from ..phones import CHAT_SUFFIX, is_group_chat, strip_chat_suffix
from . import notifications
from .dispatch import send_parts_notification
from .equipment import list_order_entries, set_equipment_status
from .locks import phone_locks
from .message_log import record_processed, was_processed
from .pending import advance_to_selection, delete_pending, get_active_pending


logger = logging.getLogger(__name__)

_DIGIT_RUNS = re.compile(r"\d+")


class Transition(str, Enum):
    AUTHORIZED_ALL = "authorized_all"
    REJECTED = "rejected"
    SELECTION_REQUESTED = "selection_requested"
    ADVISOR_HANDOFF = "advisor_handoff"
    INVALID_CHOICE = "invalid_choice"
    PARTIALLY_AUTHORIZED = "partially_authorized"
    INVALID_SELECTION = "invalid_selection"
    SELECTION_REFRESHED = "selection_refreshed"


@dataclass
class AuthorizationOutcome:
    transition: Transition
    order_id: int
    phone: str
    state: Optional[str]  # None once the pending row is gone
    authorized_ids: List[int] = field(default_factory=list)
    not_authorized_ids: List[int] = field(default_factory=list)
    parts_notified: bool = False
    reply_sent: bool = False


# =============================================================================
# Helpers
# =============================================================================

def parse_selection(text: str) -> List[int]:
    """Distinct integers found in free text, ascending. '1, 3 y 3' -> [1, 3]"""
    return sorted({int(run) for run in _DIGIT_RUNS.findall(text or "")})


def _advisor_number() -> str:
    return "".join(c for c in config.ADVISOR_WHATSAPP_NUMBER if c.isdigit()) or config.SHOP_PHONE


def _reply(transport: MessagingTransport, phone: str, text: str) -> bool:
    try:
        transport.send(f"{phone}{CHAT_SUFFIX}", text)
    except ToolshopError as e:
        logger.warning("Could not reply to ...%s: %s", phone[-4:], e)
        return False
    return True


def _notify_parts(db: Session, transport: MessagingTransport, order_id: int) -> bool:
    """Best effort: runs after the commit, so nothing raised here may escape."""
    try:
        send_parts_notification(db, transport, order_id)
    except ToolshopError as e:
        logger.warning("Parts list for order %s not sent: %s", order_id, e)
        return False
    except SQLAlchemyError:
        logger.exception("Parts list for order %s not sent: storage error", order_id)
        db.rollback()
        return False
    return True


def _commit(db: Session, message_id: Optional[str], phone: str) -> None:
    """Record the message id and commit the transition, or roll back and raise."""
    try:
        record_processed(db, message_id, phone)
        db.commit()
    except Exception:
        db.rollback()
        raise


def _apply_statuses(
    db: Session,
    pending: PendingAuthorization,
    entries: Sequence[EquipmentEntry],
    authorized_ids: Sequence[int],
    message_id: Optional[str],
) -> None:
    """Set every entry status, drop the pending row, commit - all or nothing."""
    selected = set(authorized_ids)
    try:
        for entry in entries:
            set_equipment_status(db, entry, AUTHORIZED if entry.id in selected else NOT_AUTHORIZED)
        delete_pending(db, pending)
    except Exception:
        db.rollback()
        raise
    _commit(db, message_id, pending.phone)


def _hand_to_advisor(
    db: Session,
    transport: MessagingTransport,
    pending: PendingAuthorization,
    message_id: Optional[str],
) -> AuthorizationOutcome:
    phone, order_id = pending.phone, pending.order_id
    try:
        delete_pending(db, pending)
    except Exception:
        db.rollback()
        raise
    _commit(db, message_id, phone)
    logger.info("Order %s: client ...%s handed to an advisor", order_id, phone[-4:])
    sent = _reply(transport, phone, notifications.advisor_reply(_advisor_number()))
    return AuthorizationOutcome(Transition.ADVISOR_HANDOFF, order_id, phone, None, reply_sent=sent)


# =============================================================================
# State handlers
# =============================================================================

def _handle_choice(
    db: Session,
    transport: MessagingTransport,
    pending: PendingAuthorization,
    text: str,
    message_id: Optional[str],
) -> AuthorizationOutcome:
    phone, order_id = pending.phone, pending.order_id

    if text == "1":
        entries = list_order_entries(db, order_id)
        ids = [entry.id for entry in entries]
        _apply_statuses(db, pending, entries, ids, message_id)
        logger.info("Order %s fully authorized by ...%s (%d machines)", order_id, phone[-4:], len(ids))
        notified = _notify_parts(db, transport, order_id)
        sent = _reply(transport, phone, notifications.authorized_all_reply())
        return AuthorizationOutcome(
            Transition.AUTHORIZED_ALL, order_id, phone, None,
            authorized_ids=ids, parts_notified=notified, reply_sent=sent,
        )

    if text == "2":
        entries = list_order_entries(db, order_id)
        ids = [entry.id for entry in entries]
        _apply_statuses(db, pending, entries, [], message_id)
        logger.info("Order %s rejected by ...%s", order_id, phone[-4:])
        sent = _reply(transport, phone, notifications.rejected_reply())
        return AuthorizationOutcome(
            Transition.REJECTED, order_id, phone, None,
            not_authorized_ids=ids, reply_sent=sent,
        )

    if text == "3":
        entries = list_order_entries(db, order_id)
        if not entries:
            # Nothing to choose from
            logger.warning("Order %s has no machines to select; handing ...%s to an advisor", order_id, phone[-4:])
            return _hand_to_advisor(db, transport, pending, message_id)
        if not _reply(transport, phone, notifications.compose_selection_list(entries)):
            # The client never saw the list; keep waiting for a choice
            db.rollback()
            return AuthorizationOutcome(Transition.SELECTION_REQUESTED, order_id, phone, AWAITING_CHOICE)
        try:
            advance_to_selection(db, pending, [entry.id for entry in entries])
        except Exception:
            db.rollback()
            raise
        _commit(db, message_id, phone)
        logger.info("Order %s: partial authorization list sent to ...%s", order_id, phone[-4:])
        return AuthorizationOutcome(
            Transition.SELECTION_REQUESTED, order_id, phone, AWAITING_EQUIPMENT_SELECTION, reply_sent=True,
        )

    if text == "4":
        return _hand_to_advisor(db, transport, pending, message_id)

    db.rollback()
    sent = _reply(transport, phone, notifications.invalid_choice_reply())
    return AuthorizationOutcome(Transition.INVALID_CHOICE, order_id, phone, AWAITING_CHOICE, reply_sent=sent)


def _handle_selection(
    db: Session,
    transport: MessagingTransport,
    pending: PendingAuthorization,
    text: str,
    message_id: Optional[str],
) -> AuthorizationOutcome:
    phone, order_id = pending.phone, pending.order_id
    entries = list_order_entries(db, order_id)
    current_ids = [entry.id for entry in entries]

    snapshot = pending.equipment_ids
    if snapshot is not None and list(snapshot) != current_ids:
        logger.warning(
            "Order %s: machines changed since the list was sent to ...%s (%s -> %s)",
            order_id, phone[-4:], snapshot, current_ids,
        )
        if not entries:
            return _hand_to_advisor(db, transport, pending, message_id)
        text_out = notifications.selection_changed_reply() + "\n\n" + notifications.compose_selection_list(entries)
        sent = _reply(transport, phone, text_out)
        if sent:
            try:
                advance_to_selection(db, pending, current_ids)
            except Exception:
                db.rollback()
                raise
            _commit(db, message_id, phone)
        else:
            db.rollback()
        return AuthorizationOutcome(
            Transition.SELECTION_REFRESHED, order_id, phone, AWAITING_EQUIPMENT_SELECTION, reply_sent=sent,
        )

    valid = [n for n in parse_selection(text) if 1 <= n <= len(entries)]
    if not valid:
        db.rollback()
        sent = _reply(transport, phone, notifications.invalid_selection_reply(len(entries)))
        return AuthorizationOutcome(
            Transition.INVALID_SELECTION, order_id, phone, AWAITING_EQUIPMENT_SELECTION, reply_sent=sent,
        )

    authorized = [entries[n - 1] for n in valid]
    authorized_ids = [entry.id for entry in authorized]
    not_authorized = [entry for entry in entries if entry.id not in set(authorized_ids)]
    not_authorized_ids = [entry.id for entry in not_authorized]
    # Composed before the commit expires the loaded entries
    confirmation = notifications.compose_partial_confirmation(authorized, not_authorized)

    _apply_statuses(db, pending, entries, authorized_ids, message_id)
    logger.info(
        "Order %s partially authorized by ...%s: %d of %d machines",
        order_id, phone[-4:], len(authorized_ids), len(current_ids),
    )

    notified = _notify_parts(db, transport, order_id)
    sent = _reply(transport, phone, confirmation)
    return AuthorizationOutcome(
        Transition.PARTIALLY_AUTHORIZED, order_id, phone, None,
        authorized_ids=authorized_ids,
        not_authorized_ids=not_authorized_ids,
        parts_notified=notified,
        reply_sent=sent,
    )


# =============================================================================
# Entry point
# =============================================================================

def handle_inbound_message(
    db: Session,
    transport: MessagingTransport,
    message: InboundMessage,
) -> Optional[AuthorizationOutcome]:
    """
    Apply one inbound WhatsApp message to the sender's pending authorization.

    Returns None when the message is not part of an authorization dialogue
    (group chat, empty body, no pending row) or was already applied. Storage
    errors propagate after rollback.
    """
    if is_group_chat(message.sender_id):
        return None
    text = (message.body_text or "").strip()
    if not text:
        return None

    phone = strip_chat_suffix(message.sender_id)

    with phone_locks.hold(phone):
        try:
            pending = get_active_pending(db, phone)
            duplicate = pending is not None and was_processed(db, message.message_id)
        except Exception:
            db.rollback()
            raise

        if pending is None:
            db.rollback()
            return None

        if duplicate:
            logger.info("Ignoring redelivered message %s from ...%s", message.message_id, phone[-4:])
            db.rollback()
            return None

        if pending.state == AWAITING_CHOICE:
            return _handle_choice(db, transport, pending, text, message.message_id)
        if pending.state == AWAITING_EQUIPMENT_SELECTION:
            return _handle_selection(db, transport, pending, text, message.message_id)

        logger.error("Pending authorization %s has unknown state %r", pending.id, pending.state)
        db.rollback()
        return None
