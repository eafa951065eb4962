"""FastAPI dependencies shared by the routers."""

import logging
from typing import Annotated, AsyncGenerator, Callable, Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from productbird.config import settings
from productbird.core.api_client import ProductbirdClient
from productbird.core.dispatcher import Dispatcher
from productbird.core.item_store import SqlItemStore
from productbird.core.security import decode_access_token
from productbird.core.status_store import StatusStore
from productbird.database import get_db
from productbird.models.user import User

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

MANAGE_PRODUCTS = "manage_products"


def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
    db: Annotated[Session, Depends(get_db)],
) -> User:
    """Resolve the user from the bearer token.

    Raises:
        HTTPException: 401 if the token is missing, invalid or for an unknown user
    """
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise unauthorized

    payload = decode_access_token(credentials.credentials)
    if payload is None or not payload.get("sub"):
        raise unauthorized

    try:
        user_id = UUID(str(payload["sub"]))
    except ValueError:
        raise unauthorized from None

    user = db.get(User, user_id)
    if user is None:
        raise unauthorized
    return user


def require_capability(capability: str) -> Callable[..., User]:
    """Build a dependency that only admits users holding ``capability``."""

    def check(current_user: Annotated[User, Depends(get_current_user)]) -> User:
        if not current_user.has_capability(capability):
            logger.warning(f"User {current_user.id} lacks capability {capability}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to use this endpoint.",
            )
        return current_user

    return check


async def get_api_client() -> AsyncGenerator[Optional[ProductbirdClient], None]:
    """Yield a Productbird client, or None when no API key is configured."""
    if not settings.productbird_api_key:
        yield None
        return

    client = ProductbirdClient(settings.productbird_api_key)
    try:
        yield client
    finally:
        await client.aclose()


def get_dispatcher(
    db: Annotated[Session, Depends(get_db)],
    client: Annotated[Optional[ProductbirdClient], Depends(get_api_client)],
) -> Dispatcher:
    """Dispatcher bound to the request's database session."""
    return Dispatcher(StatusStore(db), SqlItemStore(db), client)
