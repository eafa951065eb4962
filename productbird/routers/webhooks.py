"""Webhook router for Productbird generation callbacks."""

import json
import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from productbird.config import settings
from productbird.core.dispatcher import Dispatcher
from productbird.core.item_store import SqlItemStore
from productbird.core.reconciliation import ValidationError
from productbird.core.signature import SIGNATURE_HEADER, TIMESTAMP_HEADER, check_signature
from productbird.core.status_store import StatusStore
from productbird.database import get_db
from productbird.models.generation_record import GenerationMode
from productbird.routers.errors import HANDLED_ERRORS, to_http_exception
from productbird.schemas.magic_descriptions import WebhookPayload, WebhookResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


def _parse_mode(raw: Optional[str]) -> Optional[GenerationMode]:
    if not raw:
        return None
    try:
        return GenerationMode(raw)
    except ValueError:
        logger.warning(f"Ignoring unknown callback mode {raw!r}")
        return None


@router.post("/magic-descriptions", response_model=WebhookResponse, status_code=status.HTTP_200_OK)
async def magic_descriptions_callback(
    request: Request,
    db: Annotated[Session, Depends(get_db)],
    mode: Annotated[Optional[str], Query(description="auto-apply or review")] = None,
) -> WebhookResponse:
    """Receive a generated description from Productbird.

    The request is authenticated with an HMAC signature over the raw body
    before anything is parsed. Repeated deliveries of the same description
    are acknowledged without changing the product again.

    Raises:
        HTTPException: 401 for a bad signature, 400 for a malformed payload,
            404 if the product does not exist
    """
    raw_body = await request.body()

    try:
        check_signature(
            raw_body,
            request.headers.get(TIMESTAMP_HEADER),
            request.headers.get(SIGNATURE_HEADER),
            settings.webhook_secret,
            max_age=settings.webhook_max_age_seconds,
        )
    except HANDLED_ERRORS as e:
        logger.warning(f"Rejected webhook: {e}")
        raise to_http_exception(e) from e

    try:
        payload = WebhookPayload.model_validate(json.loads(raw_body or b"null"))
    except (ValueError, PydanticValidationError) as e:
        logger.error(f"Webhook body could not be parsed: {e}")
        raise to_http_exception(ValidationError("Invalid JSON payload.")) from e

    if payload.product_id is None or payload.description is None:
        raise to_http_exception(ValidationError("Missing productId or description."))

    dispatcher = Dispatcher(StatusStore(db), SqlItemStore(db))
    try:
        outcome = dispatcher.handle_webhook(payload.product_id, payload.description, _parse_mode(mode))
    except HANDLED_ERRORS as e:
        raise to_http_exception(e) from e

    logger.info(
        f"Webhook processed for product {outcome.item_id} "
        f"(mode={outcome.mode.value}, duplicate={outcome.duplicate}, delivered={outcome.delivered})"
    )
    return WebhookResponse(product_id=outcome.item_id, duplicate=outcome.duplicate)
