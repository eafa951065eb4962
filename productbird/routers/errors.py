"""Translation of domain exceptions into HTTP errors."""

import logging

from fastapi import HTTPException, status

from productbird.core.api_client import BatchTooLarge, InsufficientCredits, ProductbirdAPIError, Unauthorized
from productbird.core.dispatcher import ConfigurationError
from productbird.core.item_store import ItemNotFound
from productbird.core.reconciliation import (
    InvalidTransition,
    ItemGenerationError,
    NoDraftAvailable,
    ValidationError,
)
from productbird.core.signature import SignatureInvalid
from productbird.core.status_store import ConcurrentUpdateError

logger = logging.getLogger(__name__)

# First match wins, so subclasses must come before their bases
_STATUS_BY_EXCEPTION: tuple[tuple[type[Exception], int], ...] = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (BatchTooLarge, status.HTTP_400_BAD_REQUEST),
    (ConfigurationError, status.HTTP_400_BAD_REQUEST),
    (NoDraftAvailable, status.HTTP_400_BAD_REQUEST),
    (SignatureInvalid, status.HTTP_401_UNAUTHORIZED),
    (Unauthorized, status.HTTP_401_UNAUTHORIZED),
    (InsufficientCredits, status.HTTP_402_PAYMENT_REQUIRED),
    (ItemNotFound, status.HTTP_404_NOT_FOUND),
    (InvalidTransition, status.HTTP_409_CONFLICT),
    (ConcurrentUpdateError, status.HTTP_409_CONFLICT),
    (ItemGenerationError, status.HTTP_502_BAD_GATEWAY),
    (ProductbirdAPIError, status.HTTP_502_BAD_GATEWAY),
)

HANDLED_ERRORS: tuple[type[Exception], ...] = tuple(exc_type for exc_type, _ in _STATUS_BY_EXCEPTION)


def error_code(exc: Exception) -> str:
    return getattr(exc, "code", "internal_error")


def to_http_exception(exc: Exception) -> HTTPException:
    """Build the HTTPException for a handled domain error.

    The detail is ``{"error": message, "code": machine_code}``.
    """
    for exc_type, status_code in _STATUS_BY_EXCEPTION:
        if isinstance(exc, exc_type):
            break
    else:
        raise TypeError(f"Unhandled exception type: {type(exc).__name__}")

    if status_code >= 500:
        logger.error(f"Upstream failure ({error_code(exc)}): {exc}")
    return HTTPException(status_code=status_code, detail={"error": str(exc), "code": error_code(exc)})
