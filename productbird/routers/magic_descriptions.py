"""Magic Descriptions router: bulk generation and the review workflow."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from productbird.core.dependencies import MANAGE_PRODUCTS, get_dispatcher, require_capability
from productbird.core.dispatcher import Dispatcher
from productbird.models.user import User
from productbird.routers.errors import HANDLED_ERRORS, to_http_exception
from productbird.schemas.magic_descriptions import (
    ActionResponse,
    ApplyRequest,
    BulkGenerationRequest,
    BulkGenerationResponse,
    ClearResponse,
    PolledStatusResponse,
    PreflightResponse,
    ProductActionRequest,
    ProductIdsRequest,
    RegenerateRequest,
    RegenerateResponse,
    StatusCheckResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/magic-descriptions", tags=["magic-descriptions"])

StoreManager = Annotated[User, Depends(require_capability(MANAGE_PRODUCTS))]
DispatcherDep = Annotated[Dispatcher, Depends(get_dispatcher)]


def _parse_id_list(raw: str) -> list[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


@router.post("/bulk", response_model=BulkGenerationResponse, status_code=status.HTTP_200_OK)
async def bulk_generate(
    request: BulkGenerationRequest,
    current_user: StoreManager,
    dispatcher: DispatcherDep,
) -> BulkGenerationResponse:
    """Schedule description generation for a batch of products.

    Products whose previous draft is still waiting for review are returned in
    ``pending_items`` instead of being resubmitted.

    Raises:
        HTTPException: 400 for invalid input, too many products or a missing API
            key; 401/402 when Productbird rejects the key or is out of credits
    """
    try:
        result = await dispatcher.submit_batch(request.product_ids, request.mode)
    except HANDLED_ERRORS as e:
        raise to_http_exception(e) from e

    logger.info(
        f"User {current_user.id} scheduled {len(result.scheduled_items)} products "
        f"({len(result.pending_items)} pending review)"
    )
    return BulkGenerationResponse(**result.to_dict())


@router.get("/status", response_model=StatusCheckResponse, status_code=status.HTTP_200_OK)
async def check_status(
    current_user: StoreManager,
    dispatcher: DispatcherDep,
    product_ids: Annotated[str, Query(description="Comma separated product IDs")],
) -> StatusCheckResponse:
    """Return finished drafts and the number of products still generating.

    This endpoint only reads stored state. It never contacts Productbird.
    """
    try:
        return StatusCheckResponse(**dispatcher.check_status(_parse_id_list(product_ids)))
    except HANDLED_ERRORS as e:
        raise to_http_exception(e) from e


@router.post("/check-generation-status", response_model=PolledStatusResponse, status_code=status.HTTP_200_OK)
async def check_generation_status(
    request: ProductIdsRequest,
    current_user: StoreManager,
    dispatcher: DispatcherDep,
) -> PolledStatusResponse:
    """Poll Productbird for in-flight products and return each product's status."""
    try:
        statuses = await dispatcher.poll_statuses(request.product_ids)
    except HANDLED_ERRORS as e:
        raise to_http_exception(e) from e
    return PolledStatusResponse(statuses=statuses)


@router.post("/preflight", response_model=PreflightResponse, status_code=status.HTTP_200_OK)
async def preflight(
    request: ProductIdsRequest,
    current_user: StoreManager,
    dispatcher: DispatcherDep,
) -> PreflightResponse:
    """Report accepted, declined, pending and never generated products before a new batch."""
    try:
        return PreflightResponse(**dispatcher.preflight(request.product_ids))
    except HANDLED_ERRORS as e:
        raise to_http_exception(e) from e


@router.post("/apply", response_model=ActionResponse, status_code=status.HTTP_200_OK)
async def apply_description(
    request: ApplyRequest,
    current_user: StoreManager,
    dispatcher: DispatcherDep,
) -> ActionResponse:
    """Accept a generated description and write it to the product.

    Raises:
        HTTPException: 400 if there is no draft and no description was sent,
            404 if the product does not exist
    """
    try:
        dispatcher.apply(request.product_id, request.description)
    except HANDLED_ERRORS as e:
        raise to_http_exception(e) from e

    logger.info(f"User {current_user.id} applied the description for product {request.product_id}")
    return ActionResponse(product_id=int(request.product_id))


@router.post("/decline", response_model=ActionResponse, status_code=status.HTTP_200_OK)
async def decline_description(
    request: ProductActionRequest,
    current_user: StoreManager,
    dispatcher: DispatcherDep,
) -> ActionResponse:
    """Decline a generated description. The draft is kept so this can be undone."""
    try:
        dispatcher.decline(request.product_id)
    except HANDLED_ERRORS as e:
        raise to_http_exception(e) from e
    return ActionResponse(product_id=int(request.product_id))


@router.post("/undo-decline", response_model=ActionResponse, status_code=status.HTTP_200_OK)
async def undo_decline_description(
    request: ProductActionRequest,
    current_user: StoreManager,
    dispatcher: DispatcherDep,
) -> ActionResponse:
    try:
        dispatcher.undo_decline(request.product_id)
    except HANDLED_ERRORS as e:
        raise to_http_exception(e) from e
    return ActionResponse(product_id=int(request.product_id))


@router.put("/regenerate", response_model=RegenerateResponse, status_code=status.HTTP_200_OK)
async def regenerate_description(
    request: RegenerateRequest,
    current_user: StoreManager,
    dispatcher: DispatcherDep,
) -> RegenerateResponse:
    """Discard the current draft and generate a new description for one product.

    The previous draft and the optional custom prompt are sent to Productbird
    as context.
    """
    try:
        result = await dispatcher.regenerate(request.product_id, request.custom_prompt, request.mode)
    except HANDLED_ERRORS as e:
        raise to_http_exception(e) from e
    return RegenerateResponse(**result)


@router.delete("/records", response_model=ClearResponse, status_code=status.HTTP_200_OK)
async def clear_all_records(
    current_user: StoreManager,
    dispatcher: DispatcherDep,
) -> ClearResponse:
    """Remove every stored generation record for this tool."""
    cleared = dispatcher.clear_all()
    logger.info(f"User {current_user.id} cleared {cleared} generation records")
    return ClearResponse(cleared=cleared)


@router.delete("/records/{product_id}", response_model=ClearResponse, status_code=status.HTTP_200_OK)
async def clear_record(
    product_id: int,
    current_user: StoreManager,
    dispatcher: DispatcherDep,
) -> ClearResponse:
    try:
        cleared = dispatcher.clear(product_id)
    except HANDLED_ERRORS as e:
        raise to_http_exception(e) from e

    if not cleared:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": f"No generation record for product {product_id}.", "code": "record_not_found"},
        )
    return ClearResponse(cleared=1)
