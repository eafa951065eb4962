"""Database models package."""

from productbird.models.generation_record import (
    MAGIC_DESCRIPTIONS_TOOL,
    GenerationMode,
    GenerationRecord,
    GenerationStatus,
)
from productbird.models.product import Product
from productbird.models.user import User

__all__ = [
    "User",
    "Product",
    "GenerationRecord",
    "GenerationStatus",
    "GenerationMode",
    "MAGIC_DESCRIPTIONS_TOOL",
]
