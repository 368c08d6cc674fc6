"""
Tests for the WhatsApp quote authorization dialogue.
"""
import threading
import time
from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

import toolshop_bot.config as config_mod
import toolshop_bot.services.authorization as authorization
import toolshop_bot.services.notifications as notifications_mod
from toolshop_bot.models import (
    AUTHORIZED,
    AWAITING_CHOICE,
    AWAITING_EQUIPMENT_SELECTION,
    NOT_AUTHORIZED,
    QUOTED,
    EquipmentEntry,
    EquipmentStatusLog,
    Order,
    PendingAuthorization,
    ProcessedInboundMessage,
    Tool,
    utc_now,
)
from toolshop_bot.services.authorization import Transition, parse_selection
from toolshop_bot.services.equipment import set_equipment_status
from toolshop_bot.services.locks import KeyedLock
from toolshop_bot.services.pending import get_pending, upsert_pending

from conftest import ADVISOR_NUMBER, CLIENT_CHAT_ID, CLIENT_PHONE, PARTS_CHAT_ID


def _statuses(db_session, entry_ids):
    db_session.expire_all()
    return [db_session.get(EquipmentEntry, entry_id).status for entry_id in entry_ids]


def _history_count(db_session, entry_ids):
    return (
        db_session.query(EquipmentStatusLog)
        .filter(EquipmentStatusLog.equipment_entry_id.in_(entry_ids))
        .count()
    )


# =============================================================================
# Messages outside a dialogue
# =============================================================================

class TestIgnoredMessages:

    def test_no_pending_authorization_is_ignored(self, reply, transport, order):
        assert reply("1") is None
        assert transport.sent == []

    def test_group_chat_is_ignored(self, reply, transport, pending):
        assert reply("1", sender="573104650437-1600000000@g.us") is None
        assert transport.sent == []

    def test_empty_body_is_ignored(self, reply, transport, pending, db_session):
        assert reply("   ") is None
        assert transport.sent == []
        assert get_pending(db_session, CLIENT_PHONE).state == AWAITING_CHOICE

    def test_other_phone_is_ignored(self, reply, transport, pending, db_session, entry_ids):
        assert reply("1", sender="573009998877@c.us") is None
        assert _statuses(db_session, entry_ids) == [QUOTED] * 3


# =============================================================================
# awaiting_choice
# =============================================================================

class TestAuthorizeAll:

    def test_all_entries_authorized_with_history(self, reply, db_session, pending, entry_ids):
        before = _history_count(db_session, entry_ids)

        outcome = reply("1")

        assert outcome.transition == Transition.AUTHORIZED_ALL
        assert outcome.state is None
        assert outcome.authorized_ids == entry_ids
        assert _statuses(db_session, entry_ids) == [AUTHORIZED] * 3
        assert _history_count(db_session, entry_ids) == before + 3
        assert get_pending(db_session, CLIENT_PHONE) is None

    def test_latest_history_row_matches_status(self, reply, db_session, pending, entry_ids):
        reply("1")
        for entry_id in entry_ids:
            latest = (
                db_session.query(EquipmentStatusLog)
                .filter(EquipmentStatusLog.equipment_entry_id == entry_id)
                .order_by(EquipmentStatusLog.id.desc())
                .first()
            )
            assert latest.status == AUTHORIZED

    def test_parts_list_and_client_confirmation(self, reply, transport, pending):
        outcome = reply("1")

        assert outcome.parts_notified is True
        assert outcome.reply_sent is True
        parts = transport.messages_to(PARTS_CHAT_ID)
        assert len(parts) == 1
        assert "REPUESTOS AUTORIZADOS" in parts[0]
        assert "Orden #1042" in parts[0]
        assert "2x Carbones" in parts[0]
        assert "(solo mano de obra)" in parts[0]
        client_messages = transport.messages_to(CLIENT_CHAT_ID)
        assert len(client_messages) == 1
        assert "autorizada" in client_messages[0]

    def test_surrounding_whitespace_is_trimmed(self, reply, pending):
        assert reply("  1\n").transition == Transition.AUTHORIZED_ALL

    def test_second_message_after_terminal_reply_is_ignored(self, reply, transport, pending):
        reply("1")
        sent = len(transport.sent)
        assert reply("1") is None
        assert len(transport.sent) == sent


class TestReject:

    def test_all_entries_not_authorized(self, reply, db_session, transport, pending, entry_ids):
        before = _history_count(db_session, entry_ids)

        outcome = reply("2")

        assert outcome.transition == Transition.REJECTED
        assert outcome.not_authorized_ids == entry_ids
        assert _statuses(db_session, entry_ids) == [NOT_AUTHORIZED] * 3
        assert _history_count(db_session, entry_ids) == before + 3
        assert get_pending(db_session, CLIENT_PHONE) is None
        assert transport.messages_to(PARTS_CHAT_ID) == []
        assert "no autoriza" in transport.messages_to(CLIENT_CHAT_ID)[0]


class TestPartialRequest:

    def test_list_sent_and_state_advanced(self, reply, db_session, transport, pending, entry_ids):
        outcome = reply("3")

        assert outcome.transition == Transition.SELECTION_REQUESTED
        assert outcome.state == AWAITING_EQUIPMENT_SELECTION
        row = get_pending(db_session, CLIENT_PHONE)
        assert row.state == AWAITING_EQUIPMENT_SELECTION
        assert row.equipment_ids == entry_ids
        assert _statuses(db_session, entry_ids) == [QUOTED] * 3

        listing = transport.messages_to(CLIENT_CHAT_ID)[0]
        assert "1. Pulidora Makita (S/N: 9557NB) — $85.000" in listing
        assert "2. Taladro DeWalt — $60.000" in listing
        assert "3. Sierra Bosch (S/N: GKS190) — $120.000" in listing

    def test_list_not_delivered_keeps_awaiting_choice(self, reply, db_session, transport, pending):
        transport.unreachable.add(CLIENT_PHONE)

        outcome = reply("3")

        assert outcome.state == AWAITING_CHOICE
        assert outcome.reply_sent is False
        row = get_pending(db_session, CLIENT_PHONE)
        assert row.state == AWAITING_CHOICE
        assert row.equipment_ids is None


class TestPartialRequestWithoutMachines:

    def test_order_without_machines_goes_to_advisor(self, reply, db_session, transport, order):
        empty = Order(sequence_number=1050, client_id=order.client_id)
        db_session.add(empty)
        db_session.commit()
        upsert_pending(db_session, CLIENT_PHONE, empty.id)
        db_session.commit()

        outcome = reply("3")

        assert outcome.transition == Transition.ADVISOR_HANDOFF
        assert get_pending(db_session, CLIENT_PHONE) is None
        messages = transport.messages_to(CLIENT_CHAT_ID)
        assert len(messages) == 1
        assert ADVISOR_NUMBER in messages[0]

    def test_machines_removed_while_selecting_goes_to_advisor(self, reply, db_session, transport, order, pending):
        reply("3")
        transport.sent.clear()
        for entry in db_session.query(EquipmentEntry).filter(EquipmentEntry.order_id == order.id):
            db_session.delete(entry)
        db_session.commit()

        outcome = reply("1")

        assert outcome.transition == Transition.ADVISOR_HANDOFF
        assert get_pending(db_session, CLIENT_PHONE) is None
        assert ADVISOR_NUMBER in transport.messages_to(CLIENT_CHAT_ID)[0]


class TestAdvisor:

    def test_advisor_number_sent_and_pending_removed(self, reply, db_session, transport, pending, entry_ids):
        outcome = reply("4")

        assert outcome.transition == Transition.ADVISOR_HANDOFF
        assert get_pending(db_session, CLIENT_PHONE) is None
        assert ADVISOR_NUMBER in transport.messages_to(CLIENT_CHAT_ID)[0]
        assert _statuses(db_session, entry_ids) == [QUOTED] * 3


class TestInvalidChoice:

    @pytest.mark.parametrize("text", ["5", "hola", "1.", "si", "12"])
    def test_reprompt_without_changes(self, reply, db_session, transport, pending, entry_ids, text):
        outcome = reply(text)

        assert outcome.transition == Transition.INVALID_CHOICE
        assert get_pending(db_session, CLIENT_PHONE).state == AWAITING_CHOICE
        assert _statuses(db_session, entry_ids) == [QUOTED] * 3
        assert "*1*, *2*, *3* o *4*" in transport.messages_to(CLIENT_CHAT_ID)[0]

    def test_retries_are_unlimited(self, reply, db_session, pending):
        for _ in range(5):
            reply("no se")
        assert reply("1").transition == Transition.AUTHORIZED_ALL


# =============================================================================
# awaiting_equipment_selection
# =============================================================================

class TestSelection:

    @pytest.fixture
    def selecting(self, reply, pending, transport):
        reply("3")
        transport.sent.clear()

    def test_selected_authorized_rest_not(self, reply, db_session, transport, selecting, entry_ids):
        before = _history_count(db_session, entry_ids)

        outcome = reply("1, 3")

        assert outcome.transition == Transition.PARTIALLY_AUTHORIZED
        assert outcome.authorized_ids == [entry_ids[0], entry_ids[2]]
        assert outcome.not_authorized_ids == [entry_ids[1]]
        assert _statuses(db_session, entry_ids) == [AUTHORIZED, NOT_AUTHORIZED, AUTHORIZED]
        assert _history_count(db_session, entry_ids) == before + 3
        assert get_pending(db_session, CLIENT_PHONE) is None

    def test_parts_list_only_has_authorized_machines(self, reply, transport, selecting):
        reply("1 y 3")

        parts = transport.messages_to(PARTS_CHAT_ID)[0]
        assert "Pulidora Makita" in parts
        assert "Sierra Bosch" in parts
        assert "Taladro" not in parts

    def test_confirmation_lists_both_groups(self, reply, transport, selecting):
        reply("2")

        confirmation = transport.messages_to(CLIENT_CHAT_ID)[0]
        authorized_part, not_authorized_part = confirmation.split("*No autorizadas:*")
        assert "Taladro DeWalt" in authorized_part
        assert "Pulidora Makita" in not_authorized_part
        assert "Sierra Bosch" in not_authorized_part

    def test_duplicates_count_once(self, reply, db_session, selecting, entry_ids):
        outcome = reply("2,2,2")

        assert outcome.authorized_ids == [entry_ids[1]]
        assert _statuses(db_session, entry_ids) == [NOT_AUTHORIZED, AUTHORIZED, NOT_AUTHORIZED]

    def test_out_of_range_numbers_are_dropped(self, reply, db_session, selecting, entry_ids):
        outcome = reply("0, 3, 7")

        assert outcome.authorized_ids == [entry_ids[2]]

    @pytest.mark.parametrize("text", ["9", "0", "ninguna", "4, 5"])
    def test_no_valid_number_keeps_waiting(self, reply, db_session, transport, selecting, entry_ids, text):
        outcome = reply(text)

        assert outcome.transition == Transition.INVALID_SELECTION
        assert get_pending(db_session, CLIENT_PHONE).state == AWAITING_EQUIPMENT_SELECTION
        assert _statuses(db_session, entry_ids) == [QUOTED] * 3
        assert "entre 1 y 3" in transport.messages_to(CLIENT_CHAT_ID)[0]

    def test_changed_equipment_list_is_resent(self, reply, db_session, transport, selecting, order, entry_ids):
        tool = Tool(client_id=order.client_id, name="Rotomartillo", brand="Bosch")
        db_session.add(tool)
        db_session.flush()
        extra = EquipmentEntry(order_id=order.id, tool_id=tool.id)
        db_session.add(extra)
        db_session.flush()
        set_equipment_status(db_session, extra, QUOTED)
        db_session.commit()
        extra_id = extra.id

        outcome = reply("1")

        assert outcome.transition == Transition.SELECTION_REFRESHED
        assert _statuses(db_session, entry_ids + [extra_id]) == [QUOTED] * 4
        row = get_pending(db_session, CLIENT_PHONE)
        assert row.state == AWAITING_EQUIPMENT_SELECTION
        assert row.equipment_ids == entry_ids + [extra_id]
        assert "4. Rotomartillo Bosch" in transport.messages_to(CLIENT_CHAT_ID)[0]

        # The refreshed list is now the reference
        assert reply("4").authorized_ids == [extra_id]


# =============================================================================
# Redelivered messages
# =============================================================================

class TestRedeliveredMessages:

    def test_same_message_id_applied_once(self, reply, db_session, transport, pending, entry_ids):
        first = reply("3", message_id="SM123")
        second = reply("3", message_id="SM123")

        assert first.transition == Transition.SELECTION_REQUESTED
        assert second is None
        assert get_pending(db_session, CLIENT_PHONE).state == AWAITING_EQUIPMENT_SELECTION
        assert _statuses(db_session, entry_ids) == [QUOTED] * 3
        assert len(transport.messages_to(CLIENT_CHAT_ID)) == 1

    def test_new_message_id_is_applied(self, reply, db_session, pending, entry_ids):
        reply("3", message_id="SM123")

        outcome = reply("3", message_id="SM124")

        assert outcome.transition == Transition.PARTIALLY_AUTHORIZED
        assert _statuses(db_session, entry_ids) == [NOT_AUTHORIZED, NOT_AUTHORIZED, AUTHORIZED]

    def test_applied_id_is_recorded_with_phone(self, reply, db_session, pending):
        reply("1", message_id="SM500")

        row = db_session.query(ProcessedInboundMessage).filter_by(message_id="SM500").one()
        assert row.phone == CLIENT_PHONE

    def test_rejected_reply_is_not_recorded(self, reply, db_session, pending):
        reply("hola", message_id="SM600")

        assert db_session.query(ProcessedInboundMessage).count() == 0
        assert reply("1", message_id="SM601").transition == Transition.AUTHORIZED_ALL

    def test_messages_without_id_are_not_filtered(self, reply, db_session, pending, entry_ids):
        reply("3")

        assert reply("3").transition == Transition.PARTIALLY_AUTHORIZED
        assert db_session.query(ProcessedInboundMessage).count() == 0


# =============================================================================
# Follow-up sends never undo a committed transition
# =============================================================================

class TestBestEffortSends:

    def test_parts_channel_not_configured(self, reply, db_session, transport, pending, entry_ids, monkeypatch):
        monkeypatch.setattr(config_mod, "PARTS_WHATSAPP_NUMBER", "")

        outcome = reply("1")

        assert outcome.parts_notified is False
        assert outcome.reply_sent is True
        assert _statuses(db_session, entry_ids) == [AUTHORIZED] * 3
        assert transport.messages_to(PARTS_CHAT_ID) == []

    def test_parts_number_unreachable(self, reply, db_session, transport, pending, entry_ids):
        transport.unreachable.add("573001112233")

        outcome = reply("1")

        assert outcome.parts_notified is False
        assert outcome.reply_sent is True
        assert _statuses(db_session, entry_ids) == [AUTHORIZED] * 3

    def test_transport_disconnected(self, reply, db_session, transport, pending, entry_ids):
        transport.disconnect("phone offline")

        outcome = reply("1")

        assert outcome.parts_notified is False
        assert outcome.reply_sent is False
        assert _statuses(db_session, entry_ids) == [AUTHORIZED] * 3
        assert get_pending(db_session, CLIENT_PHONE) is None


    def test_parts_list_storage_error_still_confirms_client(
        self, reply, db_session, transport, pending, entry_ids, monkeypatch
    ):
        def broken_compose(db, order_id):
            raise OperationalError("SELECT equipment_entries", {}, Exception("server has gone away"))

        monkeypatch.setattr(notifications_mod, "compose_parts_notification", broken_compose)

        outcome = reply("1")

        assert outcome.transition == Transition.AUTHORIZED_ALL
        assert outcome.parts_notified is False
        assert outcome.reply_sent is True
        assert _statuses(db_session, entry_ids) == [AUTHORIZED] * 3
        assert get_pending(db_session, CLIENT_PHONE) is None
        assert "autorizada" in transport.messages_to(CLIENT_CHAT_ID)[0]

    def test_partial_confirmation_survives_parts_storage_error(
        self, reply, db_session, transport, pending, entry_ids, monkeypatch
    ):
        reply("3")
        transport.sent.clear()

        def broken_compose(db, order_id):
            raise OperationalError("SELECT equipment_entries", {}, Exception("server has gone away"))

        monkeypatch.setattr(notifications_mod, "compose_parts_notification", broken_compose)

        outcome = reply("2")

        assert outcome.transition == Transition.PARTIALLY_AUTHORIZED
        assert outcome.parts_notified is False
        assert outcome.reply_sent is True
        assert _statuses(db_session, entry_ids) == [NOT_AUTHORIZED, AUTHORIZED, NOT_AUTHORIZED]
        assert "Taladro DeWalt" in transport.messages_to(CLIENT_CHAT_ID)[0]


class TestStorageFailure:

    def test_failed_status_update_rolls_back_everything(self, reply, db_session, transport, pending, entry_ids, monkeypatch):
        real_set_status = authorization.set_equipment_status
        calls = []

        def failing_set_status(db, entry, status):
            calls.append(entry.id)
            if len(calls) == 2:
                raise OperationalError("UPDATE equipment_entries", {}, Exception("database is locked"))
            return real_set_status(db, entry, status)

        monkeypatch.setattr(authorization, "set_equipment_status", failing_set_status)
        before = _history_count(db_session, entry_ids)

        with pytest.raises(OperationalError):
            reply("1")

        assert _statuses(db_session, entry_ids) == [QUOTED] * 3
        assert _history_count(db_session, entry_ids) == before
        assert get_pending(db_session, CLIENT_PHONE).state == AWAITING_CHOICE
        assert transport.sent == []


# =============================================================================
# Expiry
# =============================================================================

class TestExpiry:

    def test_expired_pending_is_dropped(self, reply, db_session, transport, pending, monkeypatch):
        monkeypatch.setattr(config_mod, "PENDING_AUTHORIZATION_TTL_HOURS", 24.0)
        row = get_pending(db_session, CLIENT_PHONE)
        row.created_at = utc_now() - timedelta(hours=25)
        db_session.commit()

        assert reply("1") is None
        assert db_session.query(PendingAuthorization).count() == 0
        assert transport.sent == []

    def test_fresh_pending_is_kept(self, reply, pending, monkeypatch):
        monkeypatch.setattr(config_mod, "PENDING_AUTHORIZATION_TTL_HOURS", 24.0)
        assert reply("1").transition == Transition.AUTHORIZED_ALL


# =============================================================================
# Overwrite by a newer quote
# =============================================================================

def test_newer_quote_replaces_dialogue(reply, db_session, transport, order, pending, entry_ids):
    other = Order(sequence_number=1043, client_id=order.client_id)
    db_session.add(other)
    db_session.commit()
    upsert_pending(db_session, CLIENT_PHONE, other.id)
    db_session.commit()

    outcome = reply("2")

    # The newer order has no machines; the older order is untouched
    assert outcome.order_id == other.id
    assert _statuses(db_session, entry_ids) == [QUOTED] * 3


# =============================================================================
# Helpers
# =============================================================================

class TestParseSelection:

    @pytest.mark.parametrize("text,expected", [
        ("1,3", [1, 3]),
        ("1 y 3", [1, 3]),
        ("3, 1, 3", [1, 3]),
        ("la 2 por favor", [2]),
        ("ninguna", []),
        ("", []),
        ("007", [7]),
    ])
    def test_digit_runs(self, text, expected):
        assert parse_selection(text) == expected


class TestKeyedLock:

    def test_same_key_is_serialized(self):
        lock = KeyedLock()
        events = []

        def worker(name):
            with lock.hold("573104650437"):
                events.append(f"{name}-in")
                time.sleep(0.05)
                events.append(f"{name}-out")

        threads = [threading.Thread(target=worker, args=(n,)) for n in ("a", "b")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert events[0].endswith("-in") and events[1].endswith("-out")
        assert events[0][0] == events[1][0]
        assert lock._locks == {}

    def test_different_keys_do_not_block(self):
        lock = KeyedLock()
        with lock.hold("a"):
            acquired = threading.Event()

            def other():
                with lock.hold("b"):
                    acquired.set()

            t = threading.Thread(target=other)
            t.start()
            assert acquired.wait(1.0)
            t.join()
