"""Access to the live product catalog."""

import logging
from typing import Protocol

from sqlalchemy.orm import Session

from productbird.models.product import Product

logger = logging.getLogger(__name__)


class ItemStore(Protocol):
    """Catalog collaborator the reconciliation engine writes descriptions to."""

    def get_item(self, item_id: int) -> Product | None: ...

    def commit_description(self, item_id: int, html: str) -> None: ...


class ItemNotFound(LookupError):
    """Raised when a product does not exist in the catalog."""

    code = "product_not_found"

    def __init__(self, item_id: int) -> None:
        super().__init__(f"Product {item_id} not found.")
        self.item_id = item_id


class SqlItemStore:
    """ItemStore backed by the ``products`` table."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_item(self, item_id: int) -> Product | None:
        return self.db.get(Product, item_id)

    def commit_description(self, item_id: int, html: str) -> None:
        """Replace the product's live description.

        Raises:
            ItemNotFound: If the product does not exist
        """
        product = self.db.get(Product, item_id)
        if product is None:
            raise ItemNotFound(item_id)

        product.description = html
        self.db.commit()
        logger.info(f"Committed generated description to product {item_id}")
