"""
Tests for the processed inbound message log.
"""
from datetime import timedelta

import toolshop_bot.config as config_mod
from toolshop_bot.models import ProcessedInboundMessage, utc_now
from toolshop_bot.services.message_log import record_processed, was_processed

from conftest import CLIENT_PHONE


def test_unknown_id_is_not_processed(db_session):
    assert was_processed(db_session, "SM1") is False


def test_recorded_id_is_processed(db_session):
    record_processed(db_session, "SM1", CLIENT_PHONE)
    db_session.commit()

    assert was_processed(db_session, "SM1") is True
    assert was_processed(db_session, "SM2") is False


def test_missing_id_is_never_recorded(db_session):
    record_processed(db_session, None, CLIENT_PHONE)
    record_processed(db_session, "", CLIENT_PHONE)
    db_session.commit()

    assert db_session.query(ProcessedInboundMessage).count() == 0
    assert was_processed(db_session, None) is False


def test_old_ids_are_pruned_on_record(db_session, monkeypatch):
    monkeypatch.setattr(config_mod, "INBOUND_DEDUPE_RETENTION_HOURS", 72.0)
    db_session.add(ProcessedInboundMessage(
        message_id="SM-old", phone=CLIENT_PHONE, processed_at=utc_now() - timedelta(hours=100),
    ))
    db_session.add(ProcessedInboundMessage(
        message_id="SM-recent", phone=CLIENT_PHONE, processed_at=utc_now() - timedelta(hours=1),
    ))
    db_session.commit()

    record_processed(db_session, "SM-new", CLIENT_PHONE)
    db_session.commit()

    ids = {row.message_id for row in db_session.query(ProcessedInboundMessage)}
    assert ids == {"SM-recent", "SM-new"}


def test_zero_retention_keeps_everything(db_session, monkeypatch):
    monkeypatch.setattr(config_mod, "INBOUND_DEDUPE_RETENTION_HOURS", 0.0)
    db_session.add(ProcessedInboundMessage(
        message_id="SM-old", phone=CLIENT_PHONE, processed_at=utc_now() - timedelta(days=30),
    ))
    db_session.commit()

    record_processed(db_session, "SM-new", CLIENT_PHONE)
    db_session.commit()

    assert db_session.query(ProcessedInboundMessage).count() == 2
