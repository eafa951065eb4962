"""Webhook signature verification."""

import hashlib
import hmac
import logging
import time
from typing import Optional

logger = logging.getLogger(__name__)

SIGNATURE_PREFIX = "sha256="
TIMESTAMP_HEADER = "X-Productbird-Timestamp"
SIGNATURE_HEADER = "X-Productbird-Signature"


class SignatureInvalid(Exception):
    """Raised when a webhook request cannot be authenticated."""

    code = "invalid_signature"


def compute_signature(raw_body: bytes | str, timestamp: str, shared_secret: str) -> str:
    """Compute the hex HMAC-SHA256 of ``timestamp + "." + raw_body``.

    Args:
        raw_body: Exact request body as received
        timestamp: Value of the timestamp header
        shared_secret: Webhook secret shared with Productbird

    Returns:
        Hex digest, without the ``sha256=`` prefix

    Example:
        ```python
        from productbird.core.signature import compute_signature

        header = "sha256=" + compute_signature(body, "1700000000", secret)
        ```
    """
    if isinstance(raw_body, str):
        raw_body = raw_body.encode("utf-8")
    signed_payload = timestamp.encode("utf-8") + b"." + raw_body
    return hmac.new(shared_secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()


def check_signature(
    raw_body: bytes | str,
    timestamp_header: Optional[str],
    signature_header: Optional[str],
    shared_secret: Optional[str],
    *,
    max_age: Optional[int] = None,
    now: Optional[float] = None,
) -> None:
    """Validate a webhook request, raising on the first failed check.

    Raises:
        SignatureInvalid: If headers are missing, the prefix is wrong, the
            timestamp is stale, or the digest does not match
    """
    if not timestamp_header or not signature_header:
        raise SignatureInvalid("Missing required headers")

    if not signature_header.startswith(SIGNATURE_PREFIX):
        raise SignatureInvalid("Invalid signature format")

    if not shared_secret:
        raise SignatureInvalid("Webhook secret is not configured")

    if max_age is not None:
        try:
            sent_at = int(timestamp_header)
        except ValueError:
            raise SignatureInvalid("Invalid signature timestamp") from None
        current = time.time() if now is None else now
        if abs(current - sent_at) > max_age:
            raise SignatureInvalid("Signature timestamp outside the allowed window")

    provided_signature = signature_header[len(SIGNATURE_PREFIX):]
    expected_signature = compute_signature(raw_body, timestamp_header, shared_secret)

    if not hmac.compare_digest(expected_signature.encode("utf-8"), provided_signature.encode("utf-8")):
        raise SignatureInvalid("Signature mismatch")


def verify(
    raw_body: bytes | str,
    timestamp_header: Optional[str],
    signature_header: Optional[str],
    shared_secret: Optional[str],
    *,
    max_age: Optional[int] = None,
    now: Optional[float] = None,
) -> bool:
    """Return True if the webhook request is authentic (and fresh when max_age is set).

    Example:
        ```python
        from productbird.core.signature import verify

        if not verify(body, request.headers.get(TIMESTAMP_HEADER), request.headers.get(SIGNATURE_HEADER), secret):
            ...
        ```
    """
    try:
        check_signature(raw_body, timestamp_header, signature_header, shared_secret, max_age=max_age, now=now)
    except SignatureInvalid as e:
        logger.warning(f"Rejected webhook signature: {e}")
        return False
    return True
