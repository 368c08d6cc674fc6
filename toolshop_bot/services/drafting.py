"""
Quote Message Drafting
======================

Builds the WhatsApp quote message an operator sends to the client.

Totals are computed from the per-machine quotes (subtotal = sum of machine
subtotals, tax = subtotal * TAX_RATE, total = subtotal + tax) and stored in the
order's QuoteHeader together with the message text.

The message body is written by OpenAI from a prompt describing every machine,
its labor, work description and parts. Without OPENAI_API_KEY a plain template
is used instead. Either way the fixed 1/2/3/4 authorization options are
appended, because the authorization dialogue only understands those answers.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from openai import OpenAI, OpenAIError
from sqlalchemy.orm import Session, joinedload

from .. import config
from ..exceptions import NoQuotedEquipmentError
from ..models import EquipmentEntry, EquipmentQuote, Order, QuoteHeader, utc_now
from .equipment import get_order
from .notifications import AUTHORIZATION_OPTIONS, format_cop, signature
from .quotes import order_totals


logger = logging.getLogger(__name__)

MAX_MESSAGE_TOKENS = 450

_client: Optional[OpenAI] = None


@dataclass
class QuoteDraft:
    order_id: int
    message: str
    subtotal: float
    tax: float
    total: float
    machines_count: int
    generated_by_ai: bool


def get_openai_client() -> OpenAI:
    """Get the shared OpenAI client."""
    global _client
    if _client is None:
        if not config.OPENAI_API_KEY:
            raise ValueError("OPENAI_API_KEY not set")
        _client = OpenAI(api_key=config.OPENAI_API_KEY)
    return _client


def _quoted_entries(db: Session, order_id: int) -> List[EquipmentEntry]:
    return (
        db.query(EquipmentEntry)
        .join(EquipmentQuote, EquipmentQuote.equipment_entry_id == EquipmentEntry.id)
        .options(
            joinedload(EquipmentEntry.tool),
            joinedload(EquipmentEntry.quote),
            joinedload(EquipmentEntry.line_items),
        )
        .filter(EquipmentEntry.order_id == order_id)
        .order_by(EquipmentEntry.id)
        .all()
    )


def _machine_block(position: int, entry: EquipmentEntry) -> str:
    tool = entry.tool
    title = f"{position}) {tool.name or 'Máquina'} ({tool.brand or '-'})"
    if tool.serial:
        title += f" / {tool.serial}"
    if entry.line_items:
        parts = "\n".join(
            f"- {item.name} x{item.quantity} @ {format_cop(item.unit_price)}" for item in entry.line_items
        )
    else:
        parts = "- (Sin repuestos)"
    return (
        f"{title}\n"
        f"Mano de obra: {format_cop(entry.quote.labor_cost)}\n"
        f"Trabajo: {entry.quote.work_description or '(Sin descripción)'}\n"
        f"Repuestos:\n{parts}\n"
        f"Subtotal máquina: {format_cop(entry.quote.subtotal)}"
    )


def build_prompt(order: Order, entries: List[EquipmentEntry], subtotal: float, tax: float, total: float) -> str:
    client = order.client
    blocks = "\n\n".join(_machine_block(i, entry) for i, entry in enumerate(entries, start=1))
    tax_line = format_cop(tax) if tax else "No aplica"
    return f"""You write repair quotes for a power tool repair shop in Colombia. Write in Spanish.

ORDER:
- Number: #{order.display_number}
- Client: {client.name}
- Contact: {client.contact_name or 'No especificado'}
- Phone: {client.phone or ''}

QUOTE (PER MACHINE):
{blocks}

SUMMARY:
Subtotal: {format_cop(subtotal)}
IVA: {tax_line}
TOTAL: {format_cop(total)}

INSTRUCTIONS:
1) Write ONE WhatsApp message, professional and friendly.
2) Start with a greeting such as "Hola, le saluda *{config.SHOP_NAME}*".
3) Include EVERY machine in a short, clear list.
4) Include the final total.
5) Maximum 650 characters.
6) Use at most 3 emojis.
7) Do not invent data that is not listed above.
8) Do not list answer options; they are added afterwards.

Return ONLY the message, without explanations."""


def template_message(order: Order, entries: List[EquipmentEntry], subtotal: float, tax: float, total: float) -> str:
    """Deterministic message used when OpenAI is not configured."""
    lines = [f"Hola, le saluda *{config.SHOP_NAME}*.", f"Cotización de la orden #{order.display_number}:", ""]
    for entry in entries:
        lines.append(f"• {entry.display_name}: {format_cop(entry.quote.subtotal)}")
    lines.append("")
    if tax:
        lines.append(f"Subtotal: {format_cop(subtotal)}")
        lines.append(f"IVA: {format_cop(tax)}")
    lines.append(f"*TOTAL: {format_cop(total)}*")
    return "\n".join(lines)


def _generate_text(prompt: str) -> str:
    response = get_openai_client().chat.completions.create(
        model=config.OPENAI_MODEL,
        max_tokens=MAX_MESSAGE_TOKENS,
        messages=[{"role": "user", "content": prompt}],
    )
    return (response.choices[0].message.content or "").strip()


def draft_quote_message(db: Session, order_id: int) -> QuoteDraft:
    """Compute totals, write the message and store both in the quote header."""
    order = get_order(db, order_id)
    entries = _quoted_entries(db, order.id)
    if not entries:
        raise NoQuotedEquipmentError(f"Order {order_id} has no saved machine quotes")

    subtotal, tax, total = order_totals(sum(float(entry.quote.subtotal or 0) for entry in entries))

    body = ""
    generated_by_ai = False
    if config.OPENAI_API_KEY:
        try:
            body = _generate_text(build_prompt(order, entries, subtotal, tax, total))
        except OpenAIError as e:
            logger.warning("OpenAI drafting failed for order %s, using template: %s", order.id, e)
            body = ""
        generated_by_ai = bool(body)
    if not body:
        logger.info("Drafting quote for order %s from template", order.id)
        body = template_message(order, entries, subtotal, tax, total)

    message = f"{body}\n\n{AUTHORIZATION_OPTIONS}\n\n{signature()}"

    header = db.query(QuoteHeader).filter(QuoteHeader.order_id == order.id).first()
    if header is None:
        header = QuoteHeader(order_id=order.id)
        db.add(header)
    header.subtotal = subtotal
    header.tax = tax
    header.total = total
    header.message_text = message
    header.updated_at = utc_now()
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Quote message drafted for order %s (%d machines, total %s)", order.id, len(entries), format_cop(total))
    return QuoteDraft(
        order_id=order.id,
        message=message,
        subtotal=subtotal,
        tax=tax,
        total=total,
        machines_count=len(entries),
        generated_by_ai=generated_by_ai,
    )
