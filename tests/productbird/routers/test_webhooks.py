"""Tests for the Productbird webhook router."""

import json
import time

import pytest
from fastapi.testclient import TestClient

from productbird.config import settings
from productbird.core.signature import SIGNATURE_HEADER, TIMESTAMP_HEADER, compute_signature
from productbird.core.status_store import StatusStore

SECRET = "webhook-test-secret"
URL = "/api/webhooks/magic-descriptions"


@pytest.fixture(autouse=True)
def webhook_secret(monkeypatch):
    monkeypatch.setattr(settings, "webhook_secret", SECRET)
    monkeypatch.setattr(settings, "webhook_max_age_seconds", None)


def signed_request(body, timestamp=None, secret=SECRET):
    raw = body if isinstance(body, bytes) else json.dumps(body).encode("utf-8")
    timestamp = timestamp or str(int(time.time()))
    headers = {
        TIMESTAMP_HEADER: timestamp,
        SIGNATURE_HEADER: "sha256=" + compute_signature(raw, timestamp, secret),
        "Content-Type": "application/json",
    }
    return raw, headers


def post_webhook(test_client, body, mode="review", **kwargs):
    raw, headers = signed_request(body, **kwargs)
    return test_client.post(URL, params={"mode": mode} if mode else None, content=raw, headers=headers)


def test_review_webhook(test_client: TestClient, create_product, test_db_session):
    """Test that a signed review callback stores the draft."""
    create_product(101, description="<p>Live</p>")

    response = post_webhook(test_client, {"productId": 101, "description": [{"tag": "p", "text": "Hello"}]})

    assert response.status_code == 200
    assert response.json() == {"success": True, "productId": 101, "duplicate": False}
    record = StatusStore(test_db_session).get(101)
    assert record.draft_content == "<p>Hello</p>"
    assert record.delivered is False


def test_auto_apply_webhook_updates_product(test_client: TestClient, create_product, test_db_session):
    product = create_product(102)

    response = post_webhook(
        test_client, {"item_id": "102", "description": [{"tag": "p", "text": "World"}]}, mode="auto-apply"
    )

    assert response.status_code == 200
    test_db_session.refresh(product)
    assert product.description == "<p>World</p>"
    assert StatusStore(test_db_session).get(102).delivered is True


def test_repeated_webhook_is_acknowledged(test_client: TestClient, create_product):
    create_product(101)
    body = {"productId": 101, "description": [{"text": "Hello"}]}

    post_webhook(test_client, body)
    response = post_webhook(test_client, body)

    assert response.status_code == 200
    assert response.json()["duplicate"] is True


def test_unknown_mode_falls_back_to_review(test_client: TestClient, create_product, test_db_session):
    product = create_product(101, description="<p>Live</p>")

    response = post_webhook(test_client, {"productId": 101, "description": [{"text": "Hi"}]}, mode="sometime")

    assert response.status_code == 200
    test_db_session.refresh(product)
    assert product.description == "<p>Live</p>"


@pytest.mark.parametrize(
    "headers",
    [
        {},
        {TIMESTAMP_HEADER: "1700000000"},
        {TIMESTAMP_HEADER: "1700000000", SIGNATURE_HEADER: "sha256=deadbeef"},
        {TIMESTAMP_HEADER: "1700000000", SIGNATURE_HEADER: "deadbeef"},
    ],
)
def test_invalid_signature_is_rejected(test_client: TestClient, create_product, test_db_session, headers):
    """Test that unsigned or badly signed callbacks change nothing."""
    create_product(101)
    body = json.dumps({"productId": 101, "description": [{"text": "Hello"}]})

    response = test_client.post(URL, params={"mode": "auto-apply"}, content=body, headers=headers)

    assert response.status_code == 401
    assert response.json()["detail"]["code"] == "invalid_signature"
    assert StatusStore(test_db_session).exists(101) is False


def test_signature_with_wrong_secret(test_client: TestClient, create_product):
    create_product(101)

    response = post_webhook(test_client, {"productId": 101, "description": [{"text": "x"}]}, secret="guess")

    assert response.status_code == 401


def test_missing_secret_rejects_everything(test_client: TestClient, create_product, monkeypatch):
    monkeypatch.setattr(settings, "webhook_secret", None)
    create_product(101)

    response = post_webhook(test_client, {"productId": 101, "description": [{"text": "x"}]})

    assert response.status_code == 401


def test_stale_timestamp_is_rejected(test_client: TestClient, create_product, monkeypatch):
    """Test the optional freshness window."""
    monkeypatch.setattr(settings, "webhook_max_age_seconds", 300)
    create_product(101)

    stale = post_webhook(
        test_client, {"productId": 101, "description": [{"text": "x"}]}, timestamp=str(int(time.time()) - 3600)
    )
    fresh = post_webhook(test_client, {"productId": 101, "description": [{"text": "x"}]})

    assert stale.status_code == 401
    assert fresh.status_code == 200


@pytest.mark.parametrize(
    "body",
    [
        b"not json",
        {"description": [{"text": "x"}]},
        {"productId": 101},
        {"productId": 101, "description": [{"text": ""}]},
        {"productId": -1, "description": [{"text": "x"}]},
    ],
)
def test_malformed_payload_is_rejected(test_client: TestClient, create_product, body):
    create_product(101)

    response = post_webhook(test_client, body)

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "invalid_request"


def test_unknown_product(test_client: TestClient):
    response = post_webhook(test_client, {"productId": 404, "description": [{"text": "x"}]})

    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "product_not_found"
