"""Pydantic schemas package."""

from productbird.schemas.magic_descriptions import (
    ApplyRequest,
    BulkGenerationRequest,
    BulkGenerationResponse,
    StatusCheckResponse,
    WebhookPayload,
)

__all__ = [
    "BulkGenerationRequest",
    "BulkGenerationResponse",
    "ApplyRequest",
    "StatusCheckResponse",
    "WebhookPayload",
]
