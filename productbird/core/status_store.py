"""Persistence of per-item generation state."""

import logging
from enum import Enum
from typing import Callable, Iterable, Iterator, NamedTuple, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from productbird.models.generation_record import (
    MAGIC_DESCRIPTIONS_TOOL,
    GenerationRecord,
    GenerationStatus,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Fields that callers may write through set_field
RECORD_FIELDS = frozenset(
    {
        "status",
        "mode",
        "external_job_id",
        "draft_content",
        "delivered",
        "declined",
        "last_error",
    }
)


class StatusStoreError(Exception):
    """Base exception for status store operations."""

    code = "status_store_error"


class ConcurrentUpdateError(StatusStoreError):
    """Raised when a record keeps changing underneath a transition."""

    code = "concurrent_update"


class LiveJob(NamedTuple):
    """An item with an external job that has not settled yet."""

    item_id: int
    job_id: str


class StatusStore:
    """Keyed store of GenerationRecords for a single tool.

    Every write goes through :meth:`transition`, which re-reads the record,
    applies a mutator and commits. The record's version column turns the
    commit into a compare-and-set: if another request updated the row in the
    meantime the flush fails with ``StaleDataError`` and the mutator is
    re-applied to the fresh state. Mutators must therefore depend only on the
    record they are given.
    """

    def __init__(self, db: Session, tool: str = MAGIC_DESCRIPTIONS_TOOL, max_attempts: int = 5) -> None:
        self.db = db
        self.tool = tool
        self.max_attempts = max_attempts

    def _query(self):
        return self.db.query(GenerationRecord).filter(GenerationRecord.tool == self.tool)

    def get(self, item_id: int) -> GenerationRecord | None:
        """Return the current record for an item, or None if it was never written."""
        return self._query().filter(GenerationRecord.item_id == item_id).populate_existing().first()

    def get_many(self, item_ids: Iterable[int]) -> dict[int, GenerationRecord]:
        """Return existing records keyed by item ID."""
        ids = list(item_ids)
        if not ids:
            return {}
        records = self._query().filter(GenerationRecord.item_id.in_(ids)).populate_existing().all()
        return {record.item_id: record for record in records}

    def exists(self, item_id: int) -> bool:
        return self._query().filter(GenerationRecord.item_id == item_id).first() is not None

    def set_field(self, item_id: int, field: str, value) -> None:
        """Write a single field, creating the record if needed."""
        if field not in RECORD_FIELDS:
            raise ValueError(f"Unknown generation record field: {field}")
        if isinstance(value, Enum):
            value = value.value

        self.transition(item_id, lambda record: setattr(record, field, value))

    def transition(self, item_id: int, mutator: Callable[[GenerationRecord], T]) -> T:
        """Atomically read, mutate and persist one item's record.

        Args:
            item_id: ID of the item
            mutator: Function applied to the (possibly new) record. Its return
                value is passed through. It may run more than once.

        Returns:
            The mutator's return value from the attempt that committed

        Raises:
            ConcurrentUpdateError: If every attempt lost a race
        """
        for attempt in range(1, self.max_attempts + 1):
            record = self.get(item_id)
            created = record is None
            if created:
                record = GenerationRecord(tool=self.tool, item_id=item_id)
                record.reset()

            try:
                result = mutator(record)

                if created:
                    if _is_blank(record):
                        # Absence already means "none"
                        return result
                    self.db.add(record)

                self.db.commit()
                return result
            except (StaleDataError, IntegrityError) as e:
                self.db.rollback()
                logger.warning(
                    f"Concurrent update on {self.tool} record for item {item_id} "
                    f"(attempt {attempt}/{self.max_attempts}): {e.__class__.__name__}"
                )
            except Exception:
                self.db.rollback()
                raise

        raise ConcurrentUpdateError(
            f"Could not update {self.tool} record for item {item_id} after {self.max_attempts} attempts"
        )

    def clear_all(self, item_id: int) -> bool:
        """Delete every tracked field for an item, returning it to ``none``.

        Returns:
            True if a record existed
        """
        deleted = (
            self._query()
            .filter(GenerationRecord.item_id == item_id)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return deleted > 0

    def clear_tool(self) -> int:
        """Delete all records of this tool.

        Returns:
            Number of records removed
        """
        deleted = self._query().delete(synchronize_session=False)
        self.db.commit()
        logger.info(f"Cleared {deleted} {self.tool} generation records")
        return deleted

    def iter_live_jobs(self, page_size: int = 100) -> Iterator[LiveJob]:
        """Yield items with an outstanding external job, one page at a time.

        Pages are keyed on the primary key, so records that settle while the
        scan is running do not shift later pages.
        """
        last_id = 0
        while True:
            rows = (
                self._query()
                .filter(GenerationRecord.external_job_id.isnot(None), GenerationRecord.id > last_id)
                .order_by(GenerationRecord.id)
                .limit(page_size)
                .all()
            )
            if not rows:
                return

            page = [LiveJob(row.item_id, row.external_job_id) for row in rows]
            last_id = rows[-1].id
            yield from page


def _is_blank(record: GenerationRecord) -> bool:
    return (
        record.status == GenerationStatus.NONE.value
        and record.mode is None
        and record.external_job_id is None
        and not record.draft_content
        and not record.delivered
        and not record.declined
        and record.last_error is None
    )
