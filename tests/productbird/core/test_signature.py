"""Tests for webhook signature verification."""

import pytest

from productbird.core.signature import SignatureInvalid, check_signature, compute_signature, verify

SECRET = "shared-secret"
BODY = b'{"productId": 101, "description": []}'
TIMESTAMP = "1700000000"


def signed_header(body: bytes = BODY, timestamp: str = TIMESTAMP, secret: str = SECRET) -> str:
    return "sha256=" + compute_signature(body, timestamp, secret)


def test_compute_signature_is_hex_sha256():
    """Test the digest shape and that str and bytes bodies agree."""
    digest = compute_signature(BODY, TIMESTAMP, SECRET)

    assert len(digest) == 64
    assert digest == compute_signature(BODY.decode("utf-8"), TIMESTAMP, SECRET)


def test_valid_signature():
    """Test that a correctly signed body verifies."""
    assert verify(BODY, TIMESTAMP, signed_header(), SECRET) is True


@pytest.mark.parametrize(
    "timestamp, signature, secret",
    [
        (None, signed_header(), SECRET),
        (TIMESTAMP, None, SECRET),
        (TIMESTAMP, compute_signature(BODY, TIMESTAMP, SECRET), SECRET),
        (TIMESTAMP, signed_header(), ""),
        (TIMESTAMP, signed_header(), "other-secret"),
        ("1700000001", signed_header(), SECRET),
    ],
)
def test_invalid_signatures(timestamp, signature, secret):
    """Test missing headers, wrong prefix, empty secret and digest mismatch."""
    assert verify(BODY, timestamp, signature, secret) is False


def test_tampered_body_is_rejected():
    """Test that a single changed byte invalidates the signature."""
    assert verify(BODY.replace(b"101", b"102"), TIMESTAMP, signed_header(), SECRET) is False


def test_check_signature_reports_reason():
    """Test that check_signature explains why a request was rejected."""
    with pytest.raises(SignatureInvalid, match="Missing required headers"):
        check_signature(BODY, None, None, SECRET)

    with pytest.raises(SignatureInvalid, match="Invalid signature format"):
        check_signature(BODY, TIMESTAMP, "md5=abc", SECRET)

    with pytest.raises(SignatureInvalid, match="Signature mismatch"):
        check_signature(BODY, TIMESTAMP, "sha256=abc", SECRET)


def test_freshness_window():
    """Test that max_age rejects stale and malformed timestamps only when set."""
    header = signed_header()

    assert verify(BODY, TIMESTAMP, header, SECRET, max_age=300, now=1700000100) is True
    assert verify(BODY, TIMESTAMP, header, SECRET, max_age=300, now=1700000301) is False
    assert verify(BODY, TIMESTAMP, header, SECRET, max_age=300, now=1699999000) is False
    assert verify(BODY, TIMESTAMP, header, SECRET, now=1800000000) is True

    odd_timestamp = "yesterday"
    assert verify(BODY, odd_timestamp, signed_header(timestamp=odd_timestamp), SECRET, max_age=300) is False
