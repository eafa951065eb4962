"""GenerationRecord model."""

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, UniqueConstraint

from productbird.database import Base

MAGIC_DESCRIPTIONS_TOOL = "magic-descriptions"


class GenerationStatus(str, Enum):
    """Lifecycle of one generation cycle for an item."""

    NONE = "none"
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (GenerationStatus.COMPLETED, GenerationStatus.ERROR)

    @property
    def is_in_flight(self) -> bool:
        return self in (GenerationStatus.QUEUED, GenerationStatus.RUNNING)


class GenerationMode(str, Enum):
    """What happens to generated content once it arrives."""

    AUTO_APPLY = "auto-apply"
    REVIEW = "review"


class GenerationRecord(Base):
    """Per-item generation state shared by the webhook, poll and cron paths.

    A missing row means the item was never submitted (status ``none``).
    ``version`` is bumped on every UPDATE and checked by SQLAlchemy, so two
    writers racing on the same row cannot silently overwrite each other.
    """

    __tablename__ = "generation_records"
    __table_args__ = (UniqueConstraint("tool", "item_id", name="uq_generation_records_tool_item"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    tool = Column(String(50), nullable=False, default=MAGIC_DESCRIPTIONS_TOOL, index=True)
    item_id = Column(Integer, nullable=False, index=True)
    status = Column(
        String(50),
        nullable=False,
        default=GenerationStatus.NONE.value,
        index=True,
    )  # Status: none, queued, running, completed, error
    mode = Column(String(20), nullable=True)  # auto-apply or review, for the current cycle
    external_job_id = Column(String(255), nullable=True, index=True)  # Only while queued/running
    draft_content = Column(Text, nullable=True)
    delivered = Column(Boolean, nullable=False, default=False)
    declined = Column(Boolean, nullable=False, default=False)
    last_error = Column(Text, nullable=True)
    version = Column(Integer, nullable=False)
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

    __mapper_args__ = {"version_id_col": version}

    @property
    def generation_status(self) -> GenerationStatus:
        return GenerationStatus(self.status or GenerationStatus.NONE.value)

    @property
    def generation_mode(self) -> GenerationMode | None:
        return GenerationMode(self.mode) if self.mode else None

    @property
    def last_updated_at(self) -> datetime | None:
        return self.updated_at

    @property
    def awaiting_review(self) -> bool:
        """Completed draft that nobody has accepted or declined yet."""
        return (
            self.generation_status is GenerationStatus.COMPLETED
            and bool(self.draft_content)
            and not self.delivered
            and not self.declined
        )

    def reset(self) -> None:
        """Return every tracked field to the ``none`` state in place."""
        self.status = GenerationStatus.NONE.value
        self.mode = None
        self.external_job_id = None
        self.draft_content = None
        self.delivered = False
        self.declined = False
        self.last_error = None

    def __repr__(self) -> str:
        """String representation of GenerationRecord."""
        return (
            f"<GenerationRecord("
            f"tool={self.tool}, "
            f"item_id={self.item_id}, "
            f"status={self.status}, "
            f"external_job_id={self.external_job_id}, "
            f"delivered={self.delivered}, "
            f"declined={self.declined})>"
        )
