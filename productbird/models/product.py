"""Product model."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text

from productbird.database import Base


class Product(Base):
    """Catalog product whose long description is generated by Productbird.

    Mirrors the subset of store data sent to the generation API.
    """

    __tablename__ = "products"

    id = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(String(255), nullable=False)
    sku = Column(String(100), nullable=True)
    brand_name = Column(String(255), nullable=True)
    categories = Column(JSON, nullable=True)  # ["Shoes", "Running"]
    attributes = Column(JSON, nullable=True)  # [{"name": "Color", "value": "Red, Blue"}]
    image_urls = Column(JSON, nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation of Product."""
        return f"<Product(id={self.id}, name={self.name}, sku={self.sku})>"
