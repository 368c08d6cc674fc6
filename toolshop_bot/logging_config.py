"""
Logging setup for the toolshop bot.

Call setup_logging() once when the app starts (main.py does this).

Environment variables:
    LOG_LEVEL: DEBUG, INFO, WARNING, ERROR or CRITICAL (default: INFO)
    WHATSAPP_LOG_LEVEL: level for the messaging transport and the inbound
        worker only (default: same as LOG_LEVEL). Set it to DEBUG to trace
        WhatsApp traffic without turning on SQL and HTTP client noise.

Client phone numbers are logged only as their last four digits.
"""
import logging
import os
import sys

VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

WHATSAPP_LOGGERS = (
    "toolshop_bot.messaging",
    "toolshop_bot.services.inbound",
    "toolshop_bot.services.authorization",
)

NOISY_LOGGERS = (
    "httpx",
    "httpcore",
    "openai",
    "twilio.http_client",
    "sqlalchemy.engine",
)


def _resolve_level(value, default: str = "INFO") -> str:
    value = (value or "").upper()
    return value if value in VALID_LEVELS else default


def setup_logging(level: str = None) -> None:
    """
    Configure the root logger and the toolshop_bot loggers.

    Args:
        level: Log level name. Falls back to LOG_LEVEL, then INFO. Unknown
               names are treated as INFO.
    """
    level = _resolve_level(level if level is not None else os.getenv("LOG_LEVEL", "INFO"))
    numeric_level = getattr(logging, level)

    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )
    logging.getLogger("toolshop_bot").setLevel(numeric_level)

    # Without an override these inherit from "toolshop_bot"
    whatsapp_level = _resolve_level(os.getenv("WHATSAPP_LOG_LEVEL"), default=level)
    override = logging.NOTSET if whatsapp_level == level else getattr(logging, whatsapp_level)
    for name in WHATSAPP_LOGGERS:
        logging.getLogger(name).setLevel(override)

    if level != "DEBUG":
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        "Logging configured at %s (WhatsApp at %s)", level, whatsapp_level
    )
