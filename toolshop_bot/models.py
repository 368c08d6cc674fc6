from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Integer,
    String,
    Float,
    Boolean,
    JSON,
    DateTime,
    ForeignKey,
    Text,
    Index,
    func,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


# Equipment status vocabulary, in workflow order
PENDING_REVIEW = "pending_review"
REVIEWED = "reviewed"
QUOTED = "quoted"
AUTHORIZED = "authorized"
NOT_AUTHORIZED = "not_authorized"
REPAIRED = "repaired"
DELIVERED = "delivered"

EQUIPMENT_STATUSES = (
    PENDING_REVIEW,
    REVIEWED,
    QUOTED,
    AUTHORIZED,
    NOT_AUTHORIZED,
    REPAIRED,
    DELIVERED,
)

# Conversation sub-states of a pending authorization
AWAITING_CHOICE = "awaiting_choice"
AWAITING_EQUIPMENT_SELECTION = "awaiting_equipment_selection"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Client(Base):
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    contact_name = Column(String(255), nullable=True)
    # Free text; may hold several numbers ("3104650437 / 6063334455")
    phone = Column(String(255), nullable=True)

    orders = relationship("Order", back_populates="client")
    tools = relationship("Tool", back_populates="client")


class Tool(Base):
    """A physical machine owned by a client; it can come back in several orders."""
    __tablename__ = "tools"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    brand = Column(String(255), nullable=True)
    serial = Column(String(255), nullable=True)
    reference = Column(String(255), nullable=True)

    client = relationship("Client", back_populates="tools")


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    sequence_number = Column(Integer, nullable=True, index=True)  # number shown to clients
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    status = Column(String(32), nullable=False, default="open", index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    client = relationship("Client", back_populates="orders")
    entries = relationship(
        "EquipmentEntry",
        back_populates="order",
        order_by="EquipmentEntry.id",
        cascade="all, delete-orphan",
    )
    quote = relationship("QuoteHeader", back_populates="order", uselist=False, cascade="all, delete-orphan")

    @property
    def display_number(self):
        return self.sequence_number or self.id


class EquipmentEntry(Base):
    """One tool received within an order. Status changes go through services.equipment."""
    __tablename__ = "equipment_entries"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    tool_id = Column(Integer, ForeignKey("tools.id"), nullable=False)
    notes = Column(Text, nullable=True)
    status = Column(String(32), nullable=False, default=PENDING_REVIEW, index=True)

    order = relationship("Order", back_populates="entries")
    tool = relationship("Tool")
    history = relationship(
        "EquipmentStatusLog",
        back_populates="entry",
        order_by="EquipmentStatusLog.id",
        cascade="all, delete-orphan",
    )
    quote = relationship("EquipmentQuote", back_populates="entry", uselist=False, cascade="all, delete-orphan")
    line_items = relationship(
        "QuoteLineItem",
        back_populates="entry",
        order_by="QuoteLineItem.id",
        cascade="all, delete-orphan",
    )

    @property
    def display_name(self) -> str:
        """'Taladro DeWalt' - name and brand, skipping blanks."""
        tool = self.tool
        return " ".join(part for part in (tool.name, tool.brand) if part)


class EquipmentStatusLog(Base):
    """Insert-only status history."""
    __tablename__ = "equipment_status_log"

    id = Column(Integer, primary_key=True, index=True)
    equipment_entry_id = Column(Integer, ForeignKey("equipment_entries.id"), nullable=False)
    status = Column(String(32), nullable=False)
    changed_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    entry = relationship("EquipmentEntry", back_populates="history")

    __table_args__ = (
        Index("ix_equipment_status_log_entry_id", "equipment_entry_id", "id"),
    )


class PendingAuthorization(Base):
    """An order waiting for the client's WhatsApp answer. At most one per phone."""
    __tablename__ = "pending_authorizations"

    id = Column(Integer, primary_key=True, index=True)
    phone = Column(String(32), nullable=False, unique=True)  # "573104650437", no chat suffix
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    state = Column(String(40), nullable=False, default=AWAITING_CHOICE)
    # Ordered entry ids shown in the numbered list; set while awaiting a selection
    equipment_ids = Column(JSON(none_as_null=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    order = relationship("Order")


class QuoteHeader(Base):
    __tablename__ = "quote_headers"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, unique=True)
    subtotal = Column(Float, nullable=False, default=0.0)
    tax = Column(Float, nullable=False, default=0.0)
    total = Column(Float, nullable=False, default=0.0)
    message_text = Column(Text, nullable=True)
    whatsapp_sent = Column(Boolean, nullable=False, default=False)
    whatsapp_sent_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    order = relationship("Order", back_populates="quote")


class EquipmentQuote(Base):
    """Labor and work description quoted for a single equipment entry."""
    __tablename__ = "equipment_quotes"

    id = Column(Integer, primary_key=True, index=True)
    equipment_entry_id = Column(Integer, ForeignKey("equipment_entries.id"), nullable=False, unique=True)
    technician_id = Column(String(64), nullable=True)
    labor_cost = Column(Float, nullable=False, default=0.0)
    work_description = Column(Text, nullable=True)
    subtotal = Column(Float, nullable=False, default=0.0)  # labor + parts
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    entry = relationship("EquipmentEntry", back_populates="quote")


class QuoteLineItem(Base):
    """A spare part quoted for an equipment entry."""
    __tablename__ = "quote_line_items"

    id = Column(Integer, primary_key=True, index=True)
    equipment_entry_id = Column(Integer, ForeignKey("equipment_entries.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Float, nullable=False, default=0.0)
    subtotal = Column(Float, nullable=False, default=0.0)

    entry = relationship("EquipmentEntry", back_populates="line_items")


class ProcessedInboundMessage(Base):
    """Provider message ids already applied to an authorization, to drop redeliveries."""
    __tablename__ = "processed_inbound_messages"

    id = Column(Integer, primary_key=True, index=True)
    message_id = Column(String(64), nullable=False, unique=True)  # Twilio MessageSid
    phone = Column(String(32), nullable=False)
    processed_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)
