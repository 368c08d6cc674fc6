"""
Exception hierarchy for toolshop_bot.

Precondition failures are raised to whoever initiated the action (usually an
operator-facing HTTP route). The authorization state machine catches them only
around its own best-effort follow-up sends.
"""


class ToolshopError(Exception):
    """Base class for all errors raised by this package."""


# --- Preconditions ---

class OrderNotFoundError(ToolshopError):
    def __init__(self, order_id):
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class EquipmentEntryNotFoundError(ToolshopError):
    def __init__(self, entry_id):
        super().__init__(f"Equipment entry {entry_id} not found")
        self.entry_id = entry_id


class InvalidStatusError(ToolshopError):
    """Status value outside the equipment status vocabulary."""


class NoMatchingEquipmentError(ToolshopError):
    """No equipment entry of the order has the status a notification needs."""
    def __init__(self, order_id, status: str):
        super().__init__(f'Order {order_id} has no equipment with status "{status}"')
        self.order_id = order_id
        self.status = status


class NoDestinationError(ToolshopError):
    """The client record holds no valid mobile number."""


class PartsChannelNotConfiguredError(ToolshopError):
    """PARTS_WHATSAPP_NUMBER is missing or unusable."""


class QuoteMessageMissingError(ToolshopError):
    """The quote message must be generated before it can be sent."""


class NoQuotedEquipmentError(ToolshopError):
    """The order has no saved machine quotes to draft a message from."""


# --- Transport ---

class TransportNotReadyError(ToolshopError):
    """The messaging session has not completed its handshake."""


class TransportError(ToolshopError):
    """Delivery failed inside the messaging transport."""


class UnresolvableDestinationError(TransportError):
    """The destination number cannot be resolved to a WhatsApp account."""
    def __init__(self, destination: str, reason: str = ""):
        message = f"Destination {destination} cannot be resolved"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.destination = destination
