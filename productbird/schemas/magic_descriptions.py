"""Schemas for the Magic Descriptions endpoints."""

from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from productbird.models.generation_record import GenerationMode


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class BulkGenerationRequest(_CamelModel):
    """Request schema for bulk description generation."""

    # Validated by the dispatcher so malformed IDs get the same error shape as other requests
    product_ids: list[Any] = Field(..., alias="productIds", description="Products to generate descriptions for")
    mode: GenerationMode = Field(GenerationMode.REVIEW, description="auto-apply or review")


class ProductIdsRequest(_CamelModel):
    """Request schema for endpoints that take a list of product IDs."""

    product_ids: list[Any] = Field(..., alias="productIds", description="Products to inspect")


class ProductActionRequest(_CamelModel):
    """Request schema for single-product review actions."""

    product_id: Any = Field(..., alias="productId", description="Product to act on")


class ApplyRequest(ProductActionRequest):
    """Request schema for applying a generated description.

    When ``description`` is given it is committed instead of the stored draft,
    which lets reviewers edit the draft before accepting it.
    """

    description: Optional[Any] = Field(None, description="Edited HTML or description blocks")


class RegenerateRequest(ProductActionRequest):
    """Request schema for regenerating a single product description."""

    custom_prompt: Optional[str] = Field(None, alias="customPrompt", description="Extra instructions for the AI")
    mode: Optional[GenerationMode] = Field(None, description="Mode of the new cycle; defaults to the previous one")


class WebhookPayload(BaseModel):
    """Body of a Productbird generation callback."""

    product_id: Optional[Any] = Field(None, validation_alias=AliasChoices("productId", "item_id", "product_id"))
    description: Optional[Any] = Field(None, description="List of description blocks")


class ScheduledItem(BaseModel):
    product_id: int
    status_id: str


class ReviewItem(BaseModel):
    """Generated description shown to a reviewer next to the current one."""

    id: int
    name: str
    html: Optional[str]
    current_html: str
    status: Optional[str] = None


class BulkGenerationResponse(BaseModel):
    """Response schema for bulk description generation."""

    mode: GenerationMode
    scheduled_items: list[ScheduledItem]
    has_scheduled_items: bool
    pending_items: list[ReviewItem]
    has_pending_items: bool
    failed_items: list[int] = Field(default_factory=list)
    status: str = "queued"


class StatusCheckResponse(BaseModel):
    """Completed drafts plus the number of items still generating."""

    completed_items: list[ReviewItem]
    remaining_count: int


class PolledStatusResponse(BaseModel):
    statuses: dict[int, str] = Field(..., description="Status per product after polling")


class PreflightItem(BaseModel):
    id: int
    name: str
    status: str = Field(..., description="accepted, declined, pending or never_generated")


class PreflightResponse(BaseModel):
    items: list[PreflightItem]


class ActionResponse(BaseModel):
    success: bool = True
    product_id: int


class RegenerateResponse(BaseModel):
    product_id: int
    status_id: str
    status: str


class ClearResponse(BaseModel):
    success: bool = True
    cleared: int


class WebhookResponse(BaseModel):
    success: bool = True
    product_id: int = Field(..., serialization_alias="productId")
    duplicate: bool = False
