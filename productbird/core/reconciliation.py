"""Generation-status reconciliation.

Three independent paths report on the same generation job: the signed
webhook callback, the foreground status poll and the background cron poller.
They can arrive in any order, more than once, and for cycles that have since
been reset. The rules below keep every item's record consistent regardless:

* every change is a single :meth:`StatusStore.transition`, so a webhook and a
  poll touching the same item cannot lose each other's update;
* the webhook is authoritative and may always be applied; repeating it is a
  no-op;
* a poll never overrides a terminal status and ignores jobs that are no
  longer the record's current job;
* live product writes happen only after the record committed, and the item
  is marked delivered only if its draft is still the one that was written.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple

from productbird.core.api_client import PollResult
from productbird.core.item_store import ItemNotFound, ItemStore
from productbird.core.rendering import render_content
from productbird.core.status_store import StatusStore
from productbird.models.generation_record import GenerationMode, GenerationRecord, GenerationStatus

logger = logging.getLogger(__name__)

RUN_STARTED = "RUN_STARTED"
RUN_SUCCESS = "RUN_SUCCESS"
RUN_FAILED = "RUN_FAILED"
RUN_CANCELED = "RUN_CANCELED"


class ReconciliationError(Exception):
    """Base exception for reconciliation failures."""

    code = "reconciliation_error"


class ValidationError(ReconciliationError):
    """Request data is missing or malformed. Raised before any external call."""

    code = "invalid_request"


class NoDraftAvailable(ReconciliationError):
    """No generated draft (or inline content) exists for the item."""

    code = "no_draft_available"

    def __init__(self, item_id: int) -> None:
        super().__init__(f"No generated description is available for product {item_id}.")
        self.item_id = item_id


class InvalidTransition(ReconciliationError):
    """The requested human action does not apply to the item's current state."""

    code = "invalid_transition"


class ItemGenerationError(ReconciliationError):
    """Generation failed for a single item. Recorded on that item's record."""

    code = "generation_failed"

    def __init__(self, item_id: int, message: str) -> None:
        super().__init__(message)
        self.item_id = item_id


class SubmitOutcome(str, Enum):
    QUEUED = "queued"
    PENDING_REVIEW = "pending_review"


@dataclass(frozen=True)
class WebhookOutcome:
    """Result of applying one webhook delivery."""

    item_id: int
    mode: GenerationMode
    duplicate: bool
    delivered: bool


class ReconciliationEngine:
    """State machine mapping external signals onto GenerationRecords.

    Args:
        store: Status store for the tool being reconciled
        items: Live catalog the generated descriptions are committed to
    """

    def __init__(self, store: StatusStore, items: ItemStore) -> None:
        self.store = store
        self.items = items

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def prepare_submission(self, item_id: int, mode: GenerationMode) -> Tuple[SubmitOutcome, Optional[str]]:
        """Queue an item for generation unless a draft awaits review.

        Delivered or declined records are reset in the same write that
        queues them, so a stale draft can never leak into the new cycle.

        Returns:
            The outcome and, for items pending review, their draft
        """

        def submit(record: GenerationRecord) -> Tuple[SubmitOutcome, Optional[str]]:
            if record.awaiting_review:
                return SubmitOutcome.PENDING_REVIEW, record.draft_content

            if record.delivered or record.declined:
                logger.info(f"Resetting finished generation cycle for product {item_id} before requeueing")

            record.reset()
            record.status = GenerationStatus.QUEUED.value
            record.mode = mode.value
            return SubmitOutcome.QUEUED, None

        outcome = self.store.transition(item_id, submit)
        logger.debug(f"Submission of product {item_id}: {outcome[0].value}")
        return outcome

    def prepare_regeneration(self, item_id: int, mode: Optional[GenerationMode] = None) -> Tuple[Optional[str], GenerationMode]:
        """Reset and requeue an item regardless of any pending draft.

        Returns:
            The previous draft (useful as context for the new run) and the
            mode of the new cycle
        """

        def regenerate(record: GenerationRecord) -> Tuple[Optional[str], GenerationMode]:
            previous_draft = record.draft_content
            new_mode = mode or record.generation_mode or GenerationMode.REVIEW
            record.reset()
            record.status = GenerationStatus.QUEUED.value
            record.mode = new_mode.value
            return previous_draft, new_mode

        return self.store.transition(item_id, regenerate)

    def record_job(self, item_id: int, job_id: str) -> bool:
        """Attach the external job ID to a queued item.

        Returns:
            False if the item settled (or was cleared) before the ID arrived
        """

        def attach(record: GenerationRecord) -> bool:
            if not record.generation_status.is_in_flight:
                return False
            record.external_job_id = job_id
            return True

        attached = self.store.transition(item_id, attach)
        if not attached:
            logger.info(f"Not attaching job {job_id} to product {item_id}: record is no longer in flight")
        return attached

    def record_submission_error(self, item_id: int, message: str) -> bool:
        """Mark a queued item as failed without touching settled records."""

        def fail(record: GenerationRecord) -> bool:
            if not record.generation_status.is_in_flight:
                return False
            record.status = GenerationStatus.ERROR.value
            record.external_job_id = None
            record.last_error = message
            return True

        failed = self.store.transition(item_id, fail)
        if failed:
            logger.warning(f"Generation request for product {item_id} failed: {message}")
        return failed

    # ------------------------------------------------------------------
    # External signals
    # ------------------------------------------------------------------

    def apply_webhook(self, item_id: int, html: str, mode: Optional[GenerationMode] = None) -> WebhookOutcome:
        """Settle an item from a verified webhook callback.

        Args:
            item_id: Product the description belongs to
            html: Rendered description
            mode: Mode from the callback URL. Falls back to the mode stored
                with the record, then review.

        Raises:
            ValidationError: If the description is empty
            ItemNotFound: If the product does not exist
        """
        if not html:
            raise ValidationError("Empty description content.")
        if self.items.get_item(item_id) is None:
            raise ItemNotFound(item_id)

        def settle(record: GenerationRecord) -> Tuple[GenerationMode, bool, bool]:
            effective_mode = mode or record.generation_mode or GenerationMode.REVIEW
            if record.generation_status is GenerationStatus.COMPLETED and record.delivered:
                # Delivered ends the cycle; only a resubmission opens a new one
                return effective_mode, True, False

            same_draft = record.generation_status is GenerationStatus.COMPLETED and record.draft_content == html

            if same_draft and (record.declined or effective_mode is GenerationMode.REVIEW):
                return effective_mode, True, False

            if not same_draft:
                record.status = GenerationStatus.COMPLETED.value
                record.draft_content = html
                record.delivered = False
                record.declined = False
            record.external_job_id = None
            record.last_error = None
            record.mode = effective_mode.value
            return effective_mode, False, effective_mode is GenerationMode.AUTO_APPLY

        effective_mode, duplicate, needs_commit = self.store.transition(item_id, settle)

        if duplicate:
            logger.info(f"Ignoring repeated webhook for product {item_id}")
            return WebhookOutcome(item_id=item_id, mode=effective_mode, duplicate=True, delivered=self._is_delivered(item_id))

        delivered = False
        if needs_commit:
            delivered = self._commit(item_id, html)
            logger.info(f"Auto-applied generated description to product {item_id}")
        else:
            logger.info(f"Generated description for product {item_id} is ready for review")

        return WebhookOutcome(item_id=item_id, mode=effective_mode, duplicate=False, delivered=delivered)

    def apply_poll_result(self, item_id: int, job_id: str, result: PollResult) -> GenerationStatus:
        """Merge a status-poll response into an item's record.

        The poll is a fallback: records that are already terminal, or whose
        current job is not ``job_id``, are left untouched.

        Returns:
            The item's status after reconciliation
        """
        state = result.workflow_state
        html = render_content(result.content) if state == RUN_SUCCESS else ""

        def reconcile(record: GenerationRecord) -> Tuple[GenerationStatus, bool]:
            current = record.generation_status
            if current.is_terminal or record.external_job_id != job_id:
                return current, False

            if state == RUN_SUCCESS and not html:
                record.status = GenerationStatus.ERROR.value
                record.external_job_id = None
                record.last_error = f"Generation job {job_id} succeeded without a description"
                return GenerationStatus.ERROR, False

            if state == RUN_SUCCESS:
                record.status = GenerationStatus.COMPLETED.value
                record.external_job_id = None
                record.last_error = None
                record.draft_content = html
                record.delivered = False
                record.declined = False
                return GenerationStatus.COMPLETED, record.generation_mode is GenerationMode.AUTO_APPLY

            if state in (RUN_FAILED, RUN_CANCELED):
                record.status = GenerationStatus.ERROR.value
                record.external_job_id = None
                record.last_error = f"Generation job {job_id} ended with state {state}"
                return GenerationStatus.ERROR, False

            # RUN_STARTED and anything unrecognised
            record.status = GenerationStatus.RUNNING.value
            return GenerationStatus.RUNNING, False

        status, needs_commit = self.store.transition(item_id, reconcile)

        if state == RUN_SUCCESS and not html and status is GenerationStatus.ERROR:
            logger.warning(f"Job {job_id} for product {item_id} succeeded without a description")
        if needs_commit:
            self._commit(item_id, html)
            logger.info(f"Auto-applied polled description to product {item_id}")

        return status

    # ------------------------------------------------------------------
    # Human actions
    # ------------------------------------------------------------------

    def apply(self, item_id: int, content: Any = None) -> str:
        """Accept a draft (or inline content) and commit it to the live product.

        Returns:
            The HTML that was committed

        Raises:
            ItemNotFound: If the product does not exist
            NoDraftAvailable: If there is neither a draft nor inline content
        """
        if self.items.get_item(item_id) is None:
            raise ItemNotFound(item_id)

        html = render_content(content) if content else ""
        if not html:
            record = self.store.get(item_id)
            html = record.draft_content if record is not None and record.draft_content else ""
        if not html:
            raise NoDraftAvailable(item_id)

        self.items.commit_description(item_id, html)

        def accept(record: GenerationRecord) -> None:
            record.status = GenerationStatus.COMPLETED.value
            record.external_job_id = None
            record.last_error = None
            record.draft_content = html
            record.delivered = True
            record.declined = False

        self.store.transition(item_id, accept)
        logger.info(f"Applied generated description to product {item_id}")
        return html

    def decline(self, item_id: int) -> None:
        """Reject a draft. The draft is kept so the decision can be undone.

        Raises:
            NoDraftAvailable: If there is no draft to decline
            InvalidTransition: If the draft was already delivered
        """

        def reject(record: GenerationRecord) -> None:
            if not record.draft_content:
                raise NoDraftAvailable(item_id)
            if record.delivered:
                raise InvalidTransition(f"The description for product {item_id} has already been applied.")
            record.declined = True

        self.store.transition(item_id, reject)
        logger.info(f"Declined generated description for product {item_id}")

    def undo_decline(self, item_id: int) -> None:
        """Withdraw a decline so the draft can be reviewed again.

        Raises:
            NoDraftAvailable: If there is no draft
            InvalidTransition: If the draft is not currently declined
        """

        def restore(record: GenerationRecord) -> None:
            if not record.draft_content:
                raise NoDraftAvailable(item_id)
            if not record.declined:
                raise InvalidTransition(f"The description for product {item_id} has not been declined.")
            record.declined = False

        self.store.transition(item_id, restore)
        logger.info(f"Restored declined description for product {item_id}")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _commit(self, item_id: int, html: str) -> bool:
        """Write html to the live product, then mark the record delivered."""
        self.items.commit_description(item_id, html)

        def deliver(record: GenerationRecord) -> bool:
            # A newer cycle may have replaced the draft in the meantime
            if record.draft_content != html or record.declined:
                return False
            record.delivered = True
            return True

        return self.store.transition(item_id, deliver)

    def _is_delivered(self, item_id: int) -> bool:
        record = self.store.get(item_id)
        return bool(record is not None and record.delivered)
