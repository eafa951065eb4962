"""Authentication router for store users."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from productbird.core.security import create_access_token, hash_password, verify_password
from productbird.database import get_db
from productbird.models.user import ROLE_CAPABILITIES, User
from productbird.schemas.auth import LoginResponse, UserLogin, UserResponse, UserSignup

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _user_response(user: User) -> UserResponse:
    return UserResponse(
        id=str(user.id),
        email=user.email,
        name=user.name,
        role=user.role,
        capabilities=sorted(ROLE_CAPABILITIES.get(user.role, frozenset())),
        created_at=user.created_at.isoformat(),
    )


@router.post("/signup", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    user_data: UserSignup,
    db: Annotated[Session, Depends(get_db)],
) -> UserResponse:
    """Create a new store user.

    New accounts get the ``user`` role, which grants no capabilities; an
    admin has to promote them before they can manage product descriptions.

    Raises:
        HTTPException: If the email is already registered
    """
    if db.query(User).filter(User.email == user_data.email).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered",
        )

    new_user = User(
        email=user_data.email,
        name=user_data.name,
        password_hash=hash_password(user_data.password),
        role="user",
    )
    db.add(new_user)
    db.commit()
    db.refresh(new_user)

    logger.info(f"Created user {new_user.id}")
    return _user_response(new_user)


@router.post("/login", response_model=LoginResponse, status_code=status.HTTP_200_OK)
async def login(
    user_data: UserLogin,
    db: Annotated[Session, Depends(get_db)],
) -> LoginResponse:
    """Authenticate a store user and return a bearer token.

    Raises:
        HTTPException: If email or password is invalid
    """
    user = db.query(User).filter(User.email == user_data.email).first()
    if user is None or not verify_password(user_data.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    access_token = create_access_token(data={"sub": str(user.id), "role": user.role})
    return LoginResponse(access_token=access_token, token_type="bearer", user=_user_response(user))
