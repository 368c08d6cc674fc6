"""
Notification Composer
=====================

Builds the WhatsApp texts sent to clients and to the parts department.
Composers that depend on an equipment status (parts list, ready, delivered)
raise NoMatchingEquipmentError when no entry of the order has that status, so
callers never hand the transport an empty message.

Message Catalog:
----------------
- Parts list (status ``authorized``) for the parts department:

      🔧 *REPUESTOS AUTORIZADOS*
      Orden #1042

      *Pulidora Makita* / S/N: 9557NB
        • 2x Carbones
        • 1x Rodamiento 608

      *Taladro DeWalt*
        (solo mano de obra)

      — SU HERRAMIENTA CST

- Ready for pickup (status ``repaired``) and delivered (status ``delivered``)
  notices for the client.
- Authorization dialogue texts: numbered selection list, partial
  confirmation, and the fixed replies for options 1/2/4 and invalid input.
"""

from typing import List, Sequence

from sqlalchemy.orm import Session, joinedload

from .. import config
from ..exceptions import NoMatchingEquipmentError
from ..models import AUTHORIZED, DELIVERED, REPAIRED, EquipmentEntry
from .equipment import get_order


AUTHORIZATION_OPTIONS = (
    "Responda con el número de su elección:\n"
    "1️⃣ Autorizar la reparación de todas las máquinas\n"
    "2️⃣ No autorizar\n"
    "3️⃣ Autorizar solo algunas máquinas\n"
    "4️⃣ Comunicarse con un asesor"
)


def signature() -> str:
    return f"— {config.SHOP_NAME}"


def format_cop(amount) -> str:
    """1234567.4 -> '$1.234.567'"""
    return "$" + f"{int(round(float(amount or 0))):,}".replace(",", ".")


def _bullet_names(entries: Sequence[EquipmentEntry]) -> str:
    return "\n".join(f"  • {entry.display_name}" for entry in entries)


def entries_with_status(db: Session, order_id: int, status: str) -> List[EquipmentEntry]:
    """Entries of the order having ``status``, with tool and parts loaded."""
    entries = (
        db.query(EquipmentEntry)
        .options(joinedload(EquipmentEntry.tool), joinedload(EquipmentEntry.line_items))
        .filter(EquipmentEntry.order_id == order_id, EquipmentEntry.status == status)
        .order_by(EquipmentEntry.id)
        .all()
    )
    if not entries:
        raise NoMatchingEquipmentError(order_id, status)
    return entries


# =============================================================================
# Status-driven notifications
# =============================================================================

def compose_parts_notification(db: Session, order_id: int) -> str:
    """Consolidated list of parts for every authorized machine of the order."""
    order = get_order(db, order_id)
    entries = entries_with_status(db, order_id, AUTHORIZED)

    blocks = []
    for entry in entries:
        serial = f" / S/N: {entry.tool.serial}" if entry.tool.serial else ""
        if entry.line_items:
            lines = "\n".join(f"  • {item.quantity}x {item.name}" for item in entry.line_items)
        else:
            lines = "  (solo mano de obra)"
        blocks.append(f"*{entry.display_name}*{serial}\n{lines}")

    return (
        "🔧 *REPUESTOS AUTORIZADOS*\n"
        f"Orden #{order.display_number}\n\n"
        + "\n\n".join(blocks)
        + f"\n\n{signature()}"
    )


def compose_ready_notification(db: Session, order_id: int) -> str:
    order = get_order(db, order_id)
    entries = entries_with_status(db, order_id, REPAIRED)
    name = order.client.name if order.client and order.client.name else "cliente"
    return (
        f"Hola {name}, le informamos que las siguientes herramientas están "
        "*reparadas y listas para recoger*:\n\n"
        f"{_bullet_names(entries)}\n\n"
        f"📍 {config.SHOP_ADDRESS}\n📞 {config.SHOP_PHONE}\n{signature()}"
    )


def compose_delivered_notification(db: Session, order_id: int) -> str:
    order = get_order(db, order_id)
    entries = entries_with_status(db, order_id, DELIVERED)
    name = order.client.name if order.client and order.client.name else "cliente"
    return (
        f"Hola {name}, confirmamos la entrega de las siguientes herramientas:\n\n"
        f"{_bullet_names(entries)}\n\n"
        f"¡Gracias por confiar en nosotros!\n{signature()}"
    )


# =============================================================================
# Authorization dialogue
# =============================================================================

def compose_selection_list(entries: Sequence[EquipmentEntry]) -> str:
    """1-indexed machine list shown when the client chooses partial authorization."""
    lines = []
    for position, entry in enumerate(entries, start=1):
        serial = f" (S/N: {entry.tool.serial})" if entry.tool.serial else ""
        price = ""
        if entry.quote is not None and entry.quote.subtotal is not None:
            price = f" — {format_cop(entry.quote.subtotal)}"
        lines.append(f"{position}. {entry.display_name}{serial}{price}")
    return (
        "Seleccione las máquinas a *autorizar* enviando sus números separados por coma "
        "(ej: 1,3):\n\n" + "\n".join(lines)
    )


def compose_partial_confirmation(
    authorized: Sequence[EquipmentEntry],
    not_authorized: Sequence[EquipmentEntry],
) -> str:
    message = "✅ *Autorización parcial registrada.*\n\n*Autorizadas:*\n" + _bullet_names(authorized)
    if not_authorized:
        message += "\n\n*No autorizadas:*\n" + _bullet_names(not_authorized)
    message += (
        "\n\nProcederemos con las herramientas autorizadas. "
        f"Le avisaremos cuando estén listas. {signature()}"
    )
    return message


def authorized_all_reply() -> str:
    return (
        "✅ *¡Cotización autorizada!* Gracias, procederemos con la reparación de todas "
        f"sus herramientas. Le avisaremos cuando estén listas. {signature()}"
    )


def rejected_reply() -> str:
    return (
        "Entendido, hemos registrado que *no autoriza* la reparación en este momento. "
        f"Si cambia de opinión no dude en contactarnos. {signature()}"
    )


def advisor_reply(advisor_number: str) -> str:
    return f"Le comunicamos con nuestro asesor: *{advisor_number}* {signature()}"


def invalid_choice_reply() -> str:
    return "Por favor responda con *1*, *2*, *3* o *4* según su elección."


def invalid_selection_reply(equipment_count: int) -> str:
    return (
        "No entendí su selección. Por favor envíe los números separados por coma (ej: 1,3). "
        f"Los números deben estar entre 1 y {equipment_count}."
    )


def selection_changed_reply() -> str:
    return "La lista de máquinas de su orden cambió. Por favor revise la lista actualizada."
