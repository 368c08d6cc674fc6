"""Map service exceptions to HTTP errors for the operator endpoints."""

import logging

from fastapi import HTTPException, status

from ..exceptions import (
    EquipmentEntryNotFoundError,
    OrderNotFoundError,
    ToolshopError,
    TransportError,
    TransportNotReadyError,
)

logger = logging.getLogger(__name__)


def http_error(exc: ToolshopError) -> HTTPException:
    """
    - TransportNotReadyError -> 503 (WhatsApp not connected)
    - Order / equipment not found -> 404
    - TransportError (incl. unresolvable destination) -> 502
    - any other precondition failure -> 400
    """
    if isinstance(exc, TransportNotReadyError):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    elif isinstance(exc, (OrderNotFoundError, EquipmentEntryNotFoundError)):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, TransportError):
        logger.error("WhatsApp delivery failed: %s", exc)
        code = status.HTTP_502_BAD_GATEWAY
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=str(exc))
