"""User model."""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, String, Uuid

from productbird.database import Base

# Capabilities granted to each role. Store managers may run and review
# description generation; plain users may only sign in.
ROLE_CAPABILITIES: dict[str, frozenset[str]] = {
    "admin": frozenset({"manage_products", "manage_settings"}),
    "shop_manager": frozenset({"manage_products"}),
    "user": frozenset(),
}


class User(Base):
    """User model for authentication and authorization."""

    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    role = Column(String(50), default="user", nullable=False)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def has_capability(self, capability: str) -> bool:
        """Return True if the user's role grants the capability."""
        return capability in ROLE_CAPABILITIES.get(self.role, frozenset())

    def __repr__(self) -> str:
        """String representation of User."""
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
