"""
Operator authentication.

Every operator endpoint (quotes, orders, equipment status, WhatsApp sends)
depends on ``verify_admin_credentials``, HTTP Basic checked against
ADMIN_USERNAME / ADMIN_PASSWORD. The Twilio webhook and /health stay public.

Without ADMIN_PASSWORD the operator endpoints answer 503 instead of opening
up.
"""

import secrets

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from . import config


security = HTTPBasic(realm="Toolshop Admin")


def _same(given: str, expected: str) -> bool:
    # compare_digest keeps the comparison time independent of the match length
    return secrets.compare_digest(given.encode("utf-8"), expected.encode("utf-8"))


def verify_admin_credentials(
    credentials: HTTPBasicCredentials = Depends(security),
) -> str:
    """Return the operator's username, or raise 503 (not configured) / 401."""
    if not config.ADMIN_PASSWORD:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Operator access is disabled until ADMIN_PASSWORD is set",
        )

    # Both checks always run so a wrong username costs as much as a wrong password
    user_ok = _same(credentials.username, config.ADMIN_USERNAME)
    password_ok = _same(credentials.password, config.ADMIN_PASSWORD)
    if not (user_ok and password_ok):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid operator credentials",
            headers={"WWW-Authenticate": "Basic"},
        )
    return credentials.username
