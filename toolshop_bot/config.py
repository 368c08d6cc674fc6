"""
Configuration Module for Toolshop Bot
=====================================

This module centralizes all configuration settings, environment variables, and
constants used throughout the repair shop backend. Values are parsed once at
import time so a misconfigured deployment fails early.

Configuration Categories:
-------------------------
- **Shop Identity**: Name, address and phone printed at the bottom of every
  WhatsApp message sent to clients and to the parts department.

- **WhatsApp**: Twilio credentials, the parts-department and advisor numbers,
  the outbound send timeout and the optional expiry for pending
  authorizations.

- **Quotes**: Tax rate applied to quote totals and the OpenAI model used to
  draft the quote message.

- **Rate Limiting**: Throttling for the inbound WhatsApp webhook.

- **Admin Authentication**: HTTP Basic credentials for operator endpoints.

Environment Variables:
----------------------
- SHOP_NAME, SHOP_ADDRESS, SHOP_PHONE
- PARTS_WHATSAPP_NUMBER: Parts department number (authorized parts lists)
- ADVISOR_WHATSAPP_NUMBER: Advisor number given to clients (default: parts number)
- TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, TWILIO_WHATSAPP_NUMBER
- TWILIO_VALIDATE_SIGNATURE: Validate X-Twilio-Signature on the webhook (default: "false")
- TRANSPORT_SEND_TIMEOUT_SECONDS: HTTP timeout for outbound sends (default: 15)
- PENDING_AUTHORIZATION_TTL_HOURS: Expire unanswered authorizations (default: 0 = never)
- INBOUND_POLL_SECONDS: Inbound worker queue poll interval (default: 0.5)
- INBOUND_DEDUPE_RETENTION_HOURS: How long applied message ids are kept (default: 72)
- TAX_RATE: Fraction added on top of the quote subtotal (default: 0)
- OPENAI_API_KEY, OPENAI_MODEL
- RATE_LIMIT_WEBHOOK (default: "60 per minute"), RATE_LIMIT_ENABLED (default: "true")
- ADMIN_USERNAME (default: "admin"), ADMIN_PASSWORD (required for admin access)
- CORS_ORIGINS: Comma-separated allowed origins (default: "*")

Usage:
------
    from toolshop_bot import config

    if not config.PARTS_WHATSAPP_NUMBER:
        ...
"""

import os
from typing import List


# =============================================================================
# Shop Identity
# =============================================================================

SHOP_NAME: str = os.getenv("SHOP_NAME", "SU HERRAMIENTA CST")
SHOP_ADDRESS: str = os.getenv("SHOP_ADDRESS", "Calle 21 No 10 02, Pereira")
SHOP_PHONE: str = os.getenv("SHOP_PHONE", "3104650437")


# =============================================================================
# WhatsApp Configuration
# =============================================================================
# Numbers are free text; they are normalized with phones.to_chat_id() at send time.

PARTS_WHATSAPP_NUMBER: str = os.getenv("PARTS_WHATSAPP_NUMBER", "")
ADVISOR_WHATSAPP_NUMBER: str = os.getenv("ADVISOR_WHATSAPP_NUMBER", "") or PARTS_WHATSAPP_NUMBER

TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
TWILIO_WHATSAPP_NUMBER = os.getenv("TWILIO_WHATSAPP_NUMBER")
TWILIO_VALIDATE_SIGNATURE: bool = os.getenv("TWILIO_VALIDATE_SIGNATURE", "false").lower() == "true"

# A stalled send blocks the handler for at most this long
TRANSPORT_SEND_TIMEOUT_SECONDS: float = float(os.getenv("TRANSPORT_SEND_TIMEOUT_SECONDS", "15"))

# 0 disables expiry: pending authorizations live until answered or overwritten
PENDING_AUTHORIZATION_TTL_HOURS: float = float(os.getenv("PENDING_AUTHORIZATION_TTL_HOURS", "0"))

INBOUND_POLL_SECONDS: float = float(os.getenv("INBOUND_POLL_SECONDS", "0.5"))

# Applied message ids are remembered this long to drop provider redeliveries
INBOUND_DEDUPE_RETENTION_HOURS: float = float(os.getenv("INBOUND_DEDUPE_RETENTION_HOURS", "72"))


def is_twilio_configured() -> bool:
    """Check if Twilio is properly configured."""
    return all([TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, TWILIO_WHATSAPP_NUMBER])


# =============================================================================
# Quote Configuration
# =============================================================================

TAX_RATE: float = float(os.getenv("TAX_RATE", "0"))

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o")


# =============================================================================
# Rate Limiting Configuration
# =============================================================================
# Rate limit format: "X per Y" where Y is second, minute, hour, or day

RATE_LIMIT_WEBHOOK: str = os.getenv("RATE_LIMIT_WEBHOOK", "60 per minute")
RATE_LIMIT_ENABLED: bool = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"


def get_rate_limit_webhook() -> str:
    """Return the current webhook rate limit (overridable in tests)."""
    return RATE_LIMIT_WEBHOOK


# =============================================================================
# CORS Configuration
# =============================================================================

_cors_origins_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS: List[str] = [
    origin.strip()
    for origin in _cors_origins_env.split(",")
    if origin.strip()
] or ["*"]


# =============================================================================
# Admin Authentication Configuration
# =============================================================================
# ADMIN_PASSWORD must be set in production for admin access to work.

ADMIN_USERNAME: str = os.getenv("ADMIN_USERNAME", "admin")
ADMIN_PASSWORD: str = os.getenv("ADMIN_PASSWORD", "")
