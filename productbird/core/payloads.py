"""Generation request payloads built from catalog products."""

from typing import Any, Dict, Optional
from urllib.parse import urlencode

from productbird.config import settings
from productbird.models.generation_record import GenerationMode
from productbird.models.product import Product

WEBHOOK_PATH = "/api/webhooks/magic-descriptions"


def build_callback_url(mode: GenerationMode, base_url: Optional[str] = None) -> str:
    """Public URL Productbird should call once a description is ready."""
    base_url = (base_url or settings.public_base_url).rstrip("/")
    return f"{base_url}{WEBHOOK_PATH}?{urlencode({'mode': mode.value})}"


def build_product_payload(
    product: Product,
    *,
    callback_url: str,
    tone: Optional[str] = None,
    formality: Optional[str] = None,
    language: Optional[str] = None,
    store_name: Optional[str] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Build the generation payload for one product.

    Null and empty entries are dropped to keep the payload concise.

    Args:
        product: Catalog product to describe
        callback_url: Webhook URL for the finished description
        tone: Writing tone (defaults to DEFAULT_TONE)
        formality: Formality (defaults to DEFAULT_FORMALITY)
        language: Two-letter language (defaults to STORE_LANGUAGE)
        store_name: Store name (defaults to STORE_NAME)
        extra: Additional fields such as ``previous_description`` or ``custom_prompt``

    Returns:
        Dict[str, Any]: JSON-serializable payload
    """
    categories = [{"name": name} for name in (product.categories or []) if name]
    attributes = [
        {"name": attribute.get("name"), "value": attribute.get("value")}
        for attribute in (product.attributes or [])
        if isinstance(attribute, dict) and attribute.get("name") and attribute.get("value")
    ]

    payload: Dict[str, Any] = {
        "tone": tone if tone is not None else settings.default_tone,
        "formality": formality if formality is not None else settings.default_formality,
        "callback_url": callback_url,
        "language": language or settings.store_language,
        "store_name": store_name or settings.store_name or "Store",
        "id": str(product.id),
        "name": product.name,
        "brand_name": product.brand_name,
        "categories": categories,
        "sku": product.sku or None,
        "attributes": attributes,
        # Images on a local store are not reachable from the API
        "image_urls": [] if settings.is_local_site else list(product.image_urls or []),
    }
    if extra:
        payload.update(extra)

    return {key: value for key, value in payload.items() if value is not None and value != "" and value != []}
