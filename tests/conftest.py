import os

# db.py requires DATABASE_URL at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import toolshop_bot.config as config_mod
import toolshop_bot.db as db
from toolshop_bot.messaging import MockTransport, set_transport
from toolshop_bot.messaging.base import InboundMessage
from toolshop_bot.models import (
    QUOTED,
    Base,
    Client,
    EquipmentEntry,
    EquipmentQuote,
    Order,
    QuoteHeader,
    QuoteLineItem,
    Tool,
)
from toolshop_bot.services.authorization import handle_inbound_message
from toolshop_bot.services.equipment import set_equipment_status
from toolshop_bot.services.pending import upsert_pending

# Test admin credentials
TEST_ADMIN_USERNAME = "testadmin"
TEST_ADMIN_PASSWORD = "testpassword123"

CLIENT_PHONE_FIELD = "3104650437 / 6063334455"
CLIENT_PHONE = "573104650437"
CLIENT_CHAT_ID = "573104650437@c.us"
PARTS_NUMBER = "300 111 2233"
PARTS_CHAT_ID = "573001112233@c.us"
ADVISOR_NUMBER = "3209998877"


@pytest.fixture(autouse=True)
def shop_config(monkeypatch):
    """Deterministic configuration for every test."""
    monkeypatch.setattr(config_mod, "PARTS_WHATSAPP_NUMBER", PARTS_NUMBER)
    monkeypatch.setattr(config_mod, "ADVISOR_WHATSAPP_NUMBER", ADVISOR_NUMBER)
    monkeypatch.setattr(config_mod, "PENDING_AUTHORIZATION_TTL_HOURS", 0.0)
    monkeypatch.setattr(config_mod, "OPENAI_API_KEY", None)
    monkeypatch.setattr(config_mod, "TAX_RATE", 0.0)
    monkeypatch.setattr(config_mod, "TWILIO_VALIDATE_SIGNATURE", False)
    monkeypatch.setattr(config_mod, "ADMIN_USERNAME", TEST_ADMIN_USERNAME)
    monkeypatch.setattr(config_mod, "ADMIN_PASSWORD", TEST_ADMIN_PASSWORD)


@pytest.fixture
def session_factory(monkeypatch):
    """In-memory SQLite shared by every connection (StaticPool)."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    # Patch the db module used by the app and the inbound worker
    monkeypatch.setattr(db, "engine", engine)
    monkeypatch.setattr(db, "SessionLocal", TestingSessionLocal)

    yield TestingSessionLocal
    engine.dispose()


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def transport():
    """Connected mock transport installed as the process transport."""
    mock = MockTransport()
    mock.connect()
    set_transport(mock)
    yield mock
    set_transport(None)


@pytest.fixture
def order(db_session):
    """
    Order #1042 with three quoted machines:

    1. Pulidora Makita (S/N 9557NB) - $85.000, parts: 2x Carbones, 1x Rodamiento 608
    2. Taladro DeWalt (no serial)    - $60.000, labor only
    3. Sierra Bosch (S/N GKS190)     - $120.000, parts: 1x Interruptor
    """
    client = Client(name="Ferretería El Tornillo", contact_name="Andrés", phone=CLIENT_PHONE_FIELD)
    db_session.add(client)
    db_session.flush()

    order = Order(sequence_number=1042, client_id=client.id)
    db_session.add(order)
    db_session.flush()

    machines = [
        ("Pulidora", "Makita", "9557NB", 45000, 85000, [("Carbones", 2, 12000), ("Rodamiento 608", 1, 16000)]),
        ("Taladro", "DeWalt", None, 60000, 60000, []),
        ("Sierra", "Bosch", "GKS190", 95000, 120000, [("Interruptor", 1, 25000)]),
    ]
    for name, brand, serial, labor, subtotal, parts in machines:
        tool = Tool(client_id=client.id, name=name, brand=brand, serial=serial)
        db_session.add(tool)
        db_session.flush()
        entry = EquipmentEntry(order_id=order.id, tool_id=tool.id)
        db_session.add(entry)
        db_session.flush()
        set_equipment_status(db_session, entry, QUOTED)
        db_session.add(EquipmentQuote(
            equipment_entry_id=entry.id,
            labor_cost=labor,
            work_description=f"Mantenimiento {name.lower()}",
            subtotal=subtotal,
        ))
        for part_name, quantity, unit_price in parts:
            db_session.add(QuoteLineItem(
                equipment_entry_id=entry.id,
                name=part_name,
                quantity=quantity,
                unit_price=unit_price,
                subtotal=quantity * unit_price,
            ))

    db_session.add(QuoteHeader(
        order_id=order.id,
        subtotal=265000,
        tax=0,
        total=265000,
        message_text="Hola, le saluda *SU HERRAMIENTA CST*. Total: $265.000",
    ))
    db_session.commit()
    return order


@pytest.fixture
def entry_ids(db_session, order):
    return [
        entry_id
        for (entry_id,) in db_session.query(EquipmentEntry.id)
        .filter(EquipmentEntry.order_id == order.id)
        .order_by(EquipmentEntry.id)
    ]


@pytest.fixture
def pending(db_session, order):
    """The quote for ``order`` was sent to the client: awaiting_choice."""
    upsert_pending(db_session, CLIENT_PHONE, order.id)
    db_session.commit()
    return CLIENT_PHONE


@pytest.fixture
def reply(db_session, transport):
    """Deliver a WhatsApp message from the client to the authorization handler."""
    def _reply(text, sender=CLIENT_CHAT_ID, message_id=None):
        message = InboundMessage(sender_id=sender, body_text=text, message_id=message_id)
        return handle_inbound_message(db_session, transport, message)
    return _reply


@pytest.fixture
def client(session_factory, transport):
    """Shared FastAPI TestClient using the in-memory SQLite DB and the mock transport."""
    from toolshop_bot.main import app

    def override_get_db():
        db_sess = session_factory()
        try:
            yield db_sess
        finally:
            db_sess.close()

    app.dependency_overrides[db.get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_auth():
    """Returns HTTP Basic Auth tuple for admin endpoints."""
    return (TEST_ADMIN_USERNAME, TEST_ADMIN_PASSWORD)
