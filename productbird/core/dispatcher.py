"""Request handling for the Magic Descriptions tool.

The dispatcher validates caller input, drives the reconciliation engine and
shapes results for the HTTP layer. It knows nothing about FastAPI.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from productbird.config import MAX_BULK_ITEMS, settings
from productbird.core.api_client import (
    BatchTooLarge,
    InsufficientCredits,
    ProductbirdAPIError,
    ProductbirdClient,
    Unauthorized,
)
from productbird.core.item_store import ItemNotFound, ItemStore
from productbird.core.payloads import build_callback_url, build_product_payload
from productbird.core.reconciliation import (
    ItemGenerationError,
    ReconciliationEngine,
    SubmitOutcome,
    ValidationError,
    WebhookOutcome,
)
from productbird.core.rendering import render_description
from productbird.core.status_store import StatusStore
from productbird.models.generation_record import GenerationMode, GenerationStatus

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """A required setting (such as the API key) is missing."""

    code = "api_key_missing"


@dataclass
class BatchResult:
    """Outcome of a bulk submission."""

    mode: GenerationMode
    scheduled_items: List[Dict[str, Any]] = field(default_factory=list)
    pending_items: List[Dict[str, Any]] = field(default_factory=list)
    failed_items: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode.value,
            "scheduled_items": self.scheduled_items,
            "has_scheduled_items": bool(self.scheduled_items),
            "pending_items": self.pending_items,
            "has_pending_items": bool(self.pending_items),
            "failed_items": self.failed_items,
            "status": "queued",
        }


def normalize_item_ids(item_ids: Iterable[Any]) -> List[int]:
    """Validate item IDs and drop duplicates, keeping first-seen order.

    Raises:
        ValidationError: If no IDs are given or any ID is not a positive integer
    """
    normalized: List[int] = []
    seen = set()
    for raw in item_ids or []:
        if isinstance(raw, bool):
            raise ValidationError(f"Invalid product ID: {raw!r}")
        try:
            item_id = int(raw)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid product ID: {raw!r}") from None
        if item_id <= 0 or str(raw).strip() != str(item_id):
            raise ValidationError(f"Invalid product ID: {raw!r}")
        if item_id not in seen:
            seen.add(item_id)
            normalized.append(item_id)

    if not normalized:
        raise ValidationError("No product IDs provided.")
    return normalized


class Dispatcher:
    """Entry points for bulk generation, review actions and status queries.

    Args:
        store: Status store for the Magic Descriptions tool
        items: Live product catalog
        client: Productbird API client, or None when no API key is configured
        max_batch_size: Largest accepted batch (after de-duplication). Never
            more than the bulk endpoint accepts
    """

    def __init__(
        self,
        store: StatusStore,
        items: ItemStore,
        client: Optional[ProductbirdClient] = None,
        max_batch_size: Optional[int] = None,
    ) -> None:
        self.store = store
        self.items = items
        self.client = client
        self.engine = ReconciliationEngine(store, items)
        limit = max_batch_size if max_batch_size is not None else settings.max_batch_size
        self.max_batch_size = min(limit, MAX_BULK_ITEMS)

    def _require_client(self) -> ProductbirdClient:
        if self.client is None:
            logger.error("Productbird API key not configured")
            raise ConfigurationError("API key not configured")
        return self.client

    async def submit_batch(self, item_ids: Iterable[Any], mode: GenerationMode = GenerationMode.REVIEW) -> BatchResult:
        """Schedule description generation for a batch of products.

        Items whose draft is still awaiting review are not resubmitted; they
        are returned in ``pending_items`` instead.

        Raises:
            ValidationError: If IDs are invalid or no product could be processed
            BatchTooLarge: If more than ``max_batch_size`` unique IDs are given
            ConfigurationError: If no API key is configured
            Unauthorized: If the API rejects the key (queued items are marked error)
            InsufficientCredits: If the organization is out of credits
            ProductbirdAPIError: If the bulk request fails for another reason
        """
        ids = normalize_item_ids(item_ids)
        logger.info(f"Bulk generation request started for {len(ids)} products in {mode.value} mode")

        if len(ids) > self.max_batch_size:
            logger.warning(f"Bulk generation rejected: {len(ids)} products exceeds limit of {self.max_batch_size}")
            raise BatchTooLarge(len(ids), self.max_batch_size)

        client = self._require_client()
        callback_url = build_callback_url(mode)
        result = BatchResult(mode=mode)
        payloads: List[Dict[str, Any]] = []

        for item_id in ids:
            product = self.items.get_item(item_id)
            if product is None:
                logger.warning(f"Product {item_id} not found during bulk generation")
                continue

            outcome, draft = self.engine.prepare_submission(item_id, mode)
            if outcome is SubmitOutcome.PENDING_REVIEW:
                logger.info(f"Product {item_id} skipped: generated description still needs review")
                result.pending_items.append(
                    {
                        "id": item_id,
                        "name": product.name,
                        "html": draft,
                        "current_html": product.description or "",
                    }
                )
                continue

            payloads.append(build_product_payload(product, callback_url=callback_url))

        if not payloads and not result.pending_items:
            logger.error(f"Bulk generation failed: no valid products among {ids}")
            raise ValidationError("No valid products found to process.")

        if payloads:
            queued_ids = [int(payload["id"]) for payload in payloads]
            try:
                bulk_results = await client.generate_bulk(payloads)
            except Exception as e:
                # Nothing was scheduled, so no queued record may be left without a job
                for item_id in queued_ids:
                    self.engine.record_submission_error(item_id, str(e) or type(e).__name__)
                if isinstance(e, (Unauthorized, InsufficientCredits)):
                    logger.error(f"Bulk generation aborted ({e.code}): {e}")
                raise

            job_ids = {bulk_result.item_id: bulk_result.job_id for bulk_result in bulk_results}
            for item_id in queued_ids:
                job_id = job_ids.get(item_id)
                if job_id is None:
                    self.engine.record_submission_error(item_id, "Productbird did not return a job for this product.")
                    result.failed_items.append(item_id)
                    continue
                self.engine.record_job(item_id, job_id)
                result.scheduled_items.append({"product_id": item_id, "status_id": job_id})

        logger.info(
            f"Bulk generation request completed: {len(result.scheduled_items)} scheduled, "
            f"{len(result.pending_items)} needing review, {len(result.failed_items)} failed"
        )
        return result

    async def regenerate(
        self,
        item_id: int,
        custom_prompt: Optional[str] = None,
        mode: Optional[GenerationMode] = None,
    ) -> Dict[str, Any]:
        """Start a fresh generation for one product, discarding any draft.

        The previous draft is sent along as context for the new description.

        Raises:
            ItemNotFound: If the product does not exist
            ConfigurationError: If no API key is configured
            Unauthorized, InsufficientCredits: Passed through from the API
            ItemGenerationError: If the API request fails for another reason
        """
        [item_id] = normalize_item_ids([item_id])
        client = self._require_client()
        product = self.items.get_item(item_id)
        if product is None:
            raise ItemNotFound(item_id)

        previous_draft, cycle_mode = self.engine.prepare_regeneration(item_id, mode)

        extra: Dict[str, Any] = {}
        if previous_draft:
            extra["previous_description"] = previous_draft
        if custom_prompt and custom_prompt.strip():
            extra["custom_prompt"] = custom_prompt.strip()

        payload = build_product_payload(product, callback_url=build_callback_url(cycle_mode), extra=extra)

        try:
            job_id = await client.generate(payload)
        except (Unauthorized, InsufficientCredits) as e:
            self.engine.record_submission_error(item_id, str(e))
            raise
        except ProductbirdAPIError as e:
            self.engine.record_submission_error(item_id, str(e))
            raise ItemGenerationError(item_id, str(e)) from e

        self.engine.record_job(item_id, job_id)
        logger.info(f"Regeneration queued for product {item_id} with job {job_id}")
        return {"product_id": item_id, "status_id": job_id, "status": GenerationStatus.QUEUED.value}

    def check_status(self, item_ids: Iterable[Any]) -> Dict[str, Any]:
        """Report finished drafts and how many items are still in flight.

        Read-only: no record is modified.
        """
        ids = normalize_item_ids(item_ids)
        records = self.store.get_many(ids)

        completed_items: List[Dict[str, Any]] = []
        remaining_count = 0

        for item_id in ids:
            record = records.get(item_id)
            if record is None:
                continue

            status = record.generation_status
            if status is GenerationStatus.COMPLETED:
                if record.delivered or not record.draft_content:
                    continue
                product = self.items.get_item(item_id)
                completed_items.append(
                    {
                        "id": item_id,
                        "name": product.name if product else "",
                        "html": record.draft_content,
                        "current_html": (product.description or "") if product else "",
                        "status": "declined" if record.declined else "pending",
                    }
                )
            elif status.is_in_flight:
                remaining_count += 1

        logger.debug(
            f"Status check for {len(ids)} products: {len(completed_items)} completed, {remaining_count} remaining"
        )
        return {"completed_items": completed_items, "remaining_count": remaining_count}

    async def poll_statuses(self, item_ids: Iterable[Any]) -> Dict[int, str]:
        """Poll Productbird for in-flight items and reconcile the answers.

        Items that are already terminal are reported as they are. An API
        error leaves the record unchanged.
        """
        ids = normalize_item_ids(item_ids)
        client = self._require_client()
        statuses: Dict[int, str] = {}

        for item_id in ids:
            record = self.store.get(item_id)
            if record is None:
                statuses[item_id] = GenerationStatus.NONE.value
                continue

            status = record.generation_status
            job_id = record.external_job_id
            if status.is_terminal or not job_id:
                statuses[item_id] = status.value
                continue

            try:
                poll_result = await client.poll_status(job_id)
            except ProductbirdAPIError as e:
                logger.warning(f"Status poll for product {item_id} failed: {e}")
                statuses[item_id] = status.value if status.is_in_flight else GenerationStatus.RUNNING.value
                continue

            statuses[item_id] = self.engine.apply_poll_result(item_id, job_id, poll_result).value

        return statuses

    def preflight(self, item_ids: Iterable[Any]) -> Dict[str, Any]:
        """Describe where each product stands before a new batch is started."""
        ids = normalize_item_ids(item_ids)
        records = self.store.get_many(ids)
        items: List[Dict[str, Any]] = []

        for item_id in ids:
            product = self.items.get_item(item_id)
            if product is None:
                continue

            record = records.get(item_id)
            if record is None:
                status = "never_generated"
            elif record.delivered:
                status = "accepted"
            elif record.declined:
                status = "declined"
            elif record.generation_status.is_in_flight or record.awaiting_review:
                status = "pending"
            else:
                status = "never_generated"

            items.append({"id": item_id, "name": product.name, "status": status})

        return {"items": items}

    def handle_webhook(self, item_id: Any, description: Any, mode: Optional[GenerationMode] = None) -> WebhookOutcome:
        """Render a webhook description and reconcile it.

        Raises:
            ValidationError: If the product ID or description is missing or empty
            ItemNotFound: If the product does not exist
        """
        [item_id] = normalize_item_ids([item_id])
        if not isinstance(description, list):
            raise ValidationError("Missing productId or description.")

        html = render_description(description)
        if not html:
            logger.error(f"Callback for product {item_id} had no usable description blocks")
            raise ValidationError("Empty description content.")

        return self.engine.apply_webhook(item_id, html, mode)

    def apply(self, item_id: Any, content: Optional[str] = None) -> str:
        [item_id] = normalize_item_ids([item_id])
        return self.engine.apply(item_id, content)

    def decline(self, item_id: Any) -> None:
        [item_id] = normalize_item_ids([item_id])
        self.engine.decline(item_id)

    def undo_decline(self, item_id: Any) -> None:
        [item_id] = normalize_item_ids([item_id])
        self.engine.undo_decline(item_id)

    def clear(self, item_id: Any) -> bool:
        [item_id] = normalize_item_ids([item_id])
        return self.store.clear_all(item_id)

    def clear_all(self) -> int:
        return self.store.clear_tool()
