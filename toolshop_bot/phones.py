"""
Colombian phone number helpers.

Client records store phone numbers as free text ("3104650437 / 6063334455",
"573001112233, 3001112233", ...). Every run of non-digits separates two
numbers, so "310 465 0437" is read as three short fragments. Only mobile
numbers can receive WhatsApp; everything else is dropped without raising.

Examples:
    parse_colombian_phones("3104650437 / 6063334455")  -> ["573104650437@c.us"]
    parse_colombian_phones("573001112233,3001112233")   -> ["573001112233@c.us"]
    parse_colombian_phones(None)                        -> []
"""

import re
from typing import List, Optional

COUNTRY_PREFIX = "57"
MOBILE_PREFIX = "3"
CHAT_SUFFIX = "@c.us"
GROUP_SUFFIX = "@g.us"

_NON_DIGITS = re.compile(r"[^0-9]+")
_CHAT_SUFFIX_RE = re.compile(r"@[a-z.]+$")


def parse_colombian_phones(raw: Optional[str]) -> List[str]:
    """
    Extract every Colombian mobile number from a free-text field.

    Returns canonical chat ids ("57XXXXXXXXXX@c.us"), deduplicated. The order
    of the result carries no meaning.
    """
    if not raw:
        return []

    chat_ids = set()
    for segment in _NON_DIGITS.split(str(raw)):
        if not segment:
            continue
        number = segment
        if len(number) == 12 and number.startswith(COUNTRY_PREFIX):
            number = number[len(COUNTRY_PREFIX):]
        if len(number) == 10 and number.startswith(MOBILE_PREFIX):
            chat_ids.add(f"{COUNTRY_PREFIX}{number}{CHAT_SUFFIX}")

    return sorted(chat_ids)


def strip_chat_suffix(chat_id: str) -> str:
    """'573104650437@c.us' -> '573104650437'"""
    return _CHAT_SUFFIX_RE.sub("", str(chat_id or ""))


def is_group_chat(chat_id: str) -> bool:
    return str(chat_id or "").endswith(GROUP_SUFFIX)


def to_chat_id(number: Optional[str]) -> Optional[str]:
    """
    Turn a configured operator number into a chat id.

    Keeps digits only and adds the country prefix (to the last 10 digits)
    when missing. Returns None for an empty value.
    """
    digits = _NON_DIGITS.sub("", str(number or ""))
    if not digits:
        return None
    if not digits.startswith(COUNTRY_PREFIX):
        digits = COUNTRY_PREFIX + digits[-10:]
    return f"{digits}{CHAT_SUFFIX}"
