"""
Twilio WhatsApp transport.

Sends through the Twilio Messaging API with the ``whatsapp:`` channel prefix.
Inbound messages arrive on the /whatsapp/webhook route, which converts the
Twilio form fields with ``inbound_from_twilio_form`` and publishes them on the
transport's inbound queue.

Environment variables (see config.py):
- TWILIO_ACCOUNT_SID: Twilio Account SID (starts with AC)
- TWILIO_AUTH_TOKEN: Twilio Auth Token
- TWILIO_WHATSAPP_NUMBER: WhatsApp-enabled sender number (e.g., +14155238886)
- TRANSPORT_SEND_TIMEOUT_SECONDS: HTTP timeout for every Twilio call
"""

import logging
from typing import Any, Mapping, Optional

import phonenumbers
from phonenumbers.phonenumberutil import NumberParseException
from twilio.base.exceptions import TwilioRestException
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client

from ..exceptions import TransportError, UnresolvableDestinationError
from ..phones import CHAT_SUFFIX, strip_chat_suffix
from .base import DeliveryResult, InboundMessage, MediaAttachment, MessageContent, MessagingTransport

logger = logging.getLogger(__name__)

WHATSAPP_PREFIX = "whatsapp:"

# Twilio error codes meaning "this number cannot receive the message"
# 21211: invalid 'To' number, 21614: not a mobile number,
# 63003: channel could not find the destination address
UNRESOLVABLE_ERROR_CODES = {21211, 21614, 63003}


def to_whatsapp_address(number: str) -> str:
    """'+57 310 465 0437' -> 'whatsapp:+573104650437'"""
    digits = "".join(c for c in str(number) if c.isdigit())
    return f"{WHATSAPP_PREFIX}+{digits}"


def chat_id_from_twilio(address: str) -> str:
    """'whatsapp:+573104650437' -> '573104650437@c.us'"""
    value = str(address or "")
    if value.startswith(WHATSAPP_PREFIX):
        value = value[len(WHATSAPP_PREFIX):]
    digits = "".join(c for c in value if c.isdigit())
    return f"{digits}{CHAT_SUFFIX}"


def inbound_from_twilio_form(form: Mapping[str, Any]) -> Optional[InboundMessage]:
    """Build an InboundMessage from a Twilio webhook form, or None if it has no sender."""
    sender = form.get("From")
    if not sender:
        return None
    return InboundMessage(
        sender_id=chat_id_from_twilio(sender),
        body_text=str(form.get("Body") or ""),
        message_id=form.get("MessageSid"),
    )


class TwilioWhatsAppTransport(MessagingTransport):
    name = "twilio"

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        timeout: float = 15.0,
        client: Optional[Client] = None,
    ) -> None:
        super().__init__()
        self.account_sid = account_sid
        self.from_address = to_whatsapp_address(from_number)
        self.timeout = timeout
        self._client = client or Client(
            account_sid,
            auth_token,
            http_client=TwilioHttpClient(timeout=timeout),
        )

    def _handshake(self) -> bool:
        account = self._client.api.v2010.accounts(self.account_sid).fetch()
        if account.status != "active":
            logger.error("Twilio account %s is %s, WhatsApp disabled", self.account_sid, account.status)
            return False
        return True

    def resolve_destination(self, destination_id: str) -> str:
        digits = strip_chat_suffix(destination_id).lstrip("+")
        try:
            parsed = phonenumbers.parse("+" + digits, None)
        except NumberParseException as e:
            raise UnresolvableDestinationError(destination_id, str(e)) from e

        if not phonenumbers.is_valid_number(parsed):
            raise UnresolvableDestinationError(destination_id, "not a valid phone number")

        e164 = phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)
        return f"{WHATSAPP_PREFIX}{e164}"

    def _deliver(self, address: str, content: MessageContent) -> DeliveryResult:
        params = {"from_": self.from_address, "to": address}
        if isinstance(content, MediaAttachment):
            params["media_url"] = [content.url]
            if content.caption:
                params["body"] = content.caption
        else:
            params["body"] = content

        try:
            message = self._client.messages.create(**params)
        except TwilioRestException as e:
            if e.code in UNRESOLVABLE_ERROR_CODES:
                raise UnresolvableDestinationError(address, e.msg) from e
            logger.error("Twilio rejected WhatsApp message to %s: %s (code %s)", address, e.msg, e.code)
            raise TransportError(f"Twilio error {e.code}: {e.msg}") from e
        except Exception as e:
            logger.error("Failed to send WhatsApp message to %s: %s", address, e)
            raise TransportError(str(e)) from e

        logger.info("WhatsApp message sent to %s (SID: %s)", address, message.sid)
        return DeliveryResult(destination=address, message_id=message.sid, status=message.status or "queued")
