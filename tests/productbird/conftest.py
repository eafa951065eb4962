"""Pytest fixtures for productbird tests."""

import os

# Settings are read at import time, so test defaults must be in place first
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("PRODUCTBIRD_API_KEY", "test-api-key")
os.environ.setdefault("WEBHOOK_SECRET", "test-webhook-secret")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from datetime import datetime, timezone  # noqa: E402
from typing import Any, Callable, Dict, Generator, List, Optional  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from productbird.core.api_client import BulkResult, PollResult, ProductbirdAPIError  # noqa: E402
from productbird.core.dependencies import get_api_client  # noqa: E402
from productbird.core.item_store import SqlItemStore  # noqa: E402
from productbird.core.reconciliation import ReconciliationEngine  # noqa: E402
from productbird.core.security import create_access_token, hash_password  # noqa: E402
from productbird.core.status_store import StatusStore  # noqa: E402
from productbird.database import Base, get_db  # noqa: E402
from productbird.main import app  # noqa: E402
from productbird.models.product import Product  # noqa: E402
from productbird.models.user import User  # noqa: E402


class FakeProductbirdClient:
    """In-memory stand-in for ProductbirdClient.

    Job IDs are ``job-<product id>-<n>``. Set ``error`` to make every call
    raise it, ``poll_results`` to control what ``poll_status`` returns, and
    ``skip_items`` to leave products out of bulk responses.
    """

    def __init__(self) -> None:
        self.bulk_calls: List[List[Dict[str, Any]]] = []
        self.generate_calls: List[Dict[str, Any]] = []
        self.poll_calls: List[str] = []
        self.poll_results: Dict[str, PollResult] = {}
        self.skip_items: set[int] = set()
        self.error: Optional[ProductbirdAPIError] = None
        self._counter = 0

    def _next_job_id(self, item_id: Any) -> str:
        self._counter += 1
        return f"job-{item_id}-{self._counter}"

    async def generate(self, payload: Dict[str, Any]) -> str:
        self.generate_calls.append(payload)
        if self.error is not None:
            raise self.error
        return self._next_job_id(payload["id"])

    async def generate_bulk(self, payloads: List[Dict[str, Any]]) -> List[BulkResult]:
        self.bulk_calls.append(payloads)
        if self.error is not None:
            raise self.error
        return [
            BulkResult(item_id=int(payload["id"]), job_id=self._next_job_id(payload["id"]))
            for payload in payloads
            if int(payload["id"]) not in self.skip_items
        ]

    async def poll_status(self, job_id: str) -> PollResult:
        self.poll_calls.append(job_id)
        if self.error is not None:
            raise self.error
        return self.poll_results.get(job_id, PollResult(workflow_state="RUN_STARTED"))

    async def aclose(self) -> None:
        pass


class RecordingItemStore(SqlItemStore):
    """SqlItemStore that remembers every live commit."""

    def __init__(self, db: Session) -> None:
        super().__init__(db)
        self.commits: List[tuple[int, str]] = []

    def commit_description(self, item_id: int, html: str) -> None:
        super().commit_description(item_id, html)
        self.commits.append((item_id, html))


@pytest.fixture(scope="function")
def test_db_engine():
    """Create an in-memory SQLite engine shared across threads."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def test_db_session(test_db_engine) -> Generator[Session, None, None]:
    """Create a database session for testing with automatic rollback."""
    TestingSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=test_db_engine,
    )

    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture(scope="function")
def fake_client() -> FakeProductbirdClient:
    return FakeProductbirdClient()


@pytest.fixture(scope="function")
def status_store(test_db_session: Session) -> StatusStore:
    return StatusStore(test_db_session)


@pytest.fixture(scope="function")
def item_store(test_db_session: Session) -> RecordingItemStore:
    return RecordingItemStore(test_db_session)


@pytest.fixture(scope="function")
def engine(status_store: StatusStore, item_store: RecordingItemStore) -> ReconciliationEngine:
    return ReconciliationEngine(status_store, item_store)


@pytest.fixture(scope="function")
def test_client(test_db_session: Session, fake_client: FakeProductbirdClient) -> Generator[TestClient, None, None]:
    """Create a test client with database and API client overrides."""

    def override_get_db() -> Generator[Session, None, None]:
        try:
            yield test_db_session
        finally:
            pass

    async def override_get_api_client():
        yield fake_client

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_api_client] = override_get_api_client

    client = TestClient(app)

    try:
        yield client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def create_user(test_db_session: Session) -> Callable:
    """Factory function to create users directly in the database.

    Returns:
        Function that creates a user and returns (user, token)

    Example:
        ```python
        def test_example(create_user):
            user, token = create_user(role="shop_manager")
            headers = {"Authorization": f"Bearer {token}"}
        ```
    """

    def _create_user(
        email: str = "manager@example.com",
        password: str = "testpassword123",
        name: str = "Store Manager",
        role: str = "shop_manager",
    ) -> tuple[User, str]:
        user = User(
            email=email,
            name=name,
            password_hash=hash_password(password),
            role=role,
            created_at=datetime.now(timezone.utc),
        )
        test_db_session.add(user)
        test_db_session.commit()
        test_db_session.refresh(user)

        token = create_access_token(data={"sub": str(user.id), "role": user.role})
        return user, token

    return _create_user


@pytest.fixture(scope="function")
def auth_headers(create_user: Callable) -> Dict[str, str]:
    """Bearer headers for a shop manager."""
    _, token = create_user()
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
def create_product(test_db_session: Session) -> Callable:
    """Factory function to create catalog products."""

    def _create_product(
        product_id: int,
        name: Optional[str] = None,
        description: Optional[str] = None,
        **fields: Any,
    ) -> Product:
        product = Product(
            id=product_id,
            name=name or f"Product {product_id}",
            description=description,
            **fields,
        )
        test_db_session.add(product)
        test_db_session.commit()
        test_db_session.refresh(product)
        return product

    return _create_product
