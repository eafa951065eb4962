"""Tests for generation payload construction."""

import pytest

from productbird.config import settings
from productbird.core.payloads import WEBHOOK_PATH, build_callback_url, build_product_payload
from productbird.models.generation_record import GenerationMode
from productbird.models.product import Product


@pytest.fixture
def product() -> Product:
    return Product(
        id=101,
        name="Trail Runner",
        sku="TR-1",
        brand_name="Acme",
        categories=["Shoes", "", "Running"],
        attributes=[{"name": "Color", "value": "Red, Blue"}, {"name": "Size", "value": ""}, "junk"],
        image_urls=["https://cdn.example.com/tr-1.jpg"],
    )


def test_build_callback_url():
    """Test that the callback URL carries the mode."""
    url = build_callback_url(GenerationMode.AUTO_APPLY, base_url="https://shop.example.com/")

    assert url == f"https://shop.example.com{WEBHOOK_PATH}?mode=auto-apply"


def test_build_callback_url_uses_public_base_url(monkeypatch):
    monkeypatch.setattr(settings, "public_base_url", "https://hooks.example.com")

    assert build_callback_url(GenerationMode.REVIEW).startswith("https://hooks.example.com/api/webhooks/")


def test_build_product_payload(product, monkeypatch):
    """Test the payload fields sent for a product on a public store."""
    monkeypatch.setattr(settings, "site_url", "https://shop.example.com")
    monkeypatch.setattr(settings, "store_name", "Acme Outdoor")

    payload = build_product_payload(product, callback_url="https://cb", tone="friendly", formality="informal")

    assert payload == {
        "tone": "friendly",
        "formality": "informal",
        "callback_url": "https://cb",
        "language": "en",
        "store_name": "Acme Outdoor",
        "id": "101",
        "name": "Trail Runner",
        "brand_name": "Acme",
        "categories": [{"name": "Shoes"}, {"name": "Running"}],
        "sku": "TR-1",
        "attributes": [{"name": "Color", "value": "Red, Blue"}],
        "image_urls": ["https://cdn.example.com/tr-1.jpg"],
    }


def test_payload_drops_empty_fields_and_local_images(monkeypatch):
    """Test that null and empty values are omitted and local images are not sent."""
    monkeypatch.setattr(settings, "site_url", "http://localhost:8000")
    bare = Product(id=5, name="Plain", sku="", image_urls=["http://localhost/img.jpg"])

    payload = build_product_payload(bare, callback_url="https://cb", tone=None, formality=None)

    assert "image_urls" not in payload
    assert "sku" not in payload
    assert "brand_name" not in payload
    assert "categories" not in payload
    assert payload["id"] == "5"


def test_payload_extra_fields(product):
    """Test that regeneration context is merged in and blanks are dropped."""
    payload = build_product_payload(
        product,
        callback_url="https://cb",
        extra={"previous_description": "<p>Old</p>", "custom_prompt": ""},
    )

    assert payload["previous_description"] == "<p>Old</p>"
    assert "custom_prompt" not in payload
