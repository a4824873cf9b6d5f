"""JWT login and auth dependencies (get_current_user, require_role, require_admin)."""

from collections.abc import Callable
from typing import Annotated

import jwt
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.database import get_db
from app.core.security import create_access_token, token_user_id, verify_password
from app.models.user import User
from app.schemas.auth import (
    CurrentUser,
    LoginRequest,
    TokenResponse,
    UserListItem,
    UsersListResponse,
)
from app.store.repository import Repository

router = APIRouter()
security = HTTPBearer(auto_error=False)

# Stands in for a real user when AUTH_ENABLED is false (local runs).
ANONYMOUS_ADMIN = CurrentUser(id=0, username="anonymous", role="admin")


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


@router.post("", response_model=TokenResponse)
def login(
    body: LoginRequest,
    db: Annotated[Session, Depends(get_db)],
) -> TokenResponse:
    """
    Authenticate with username and password; returns a JWT access token.
    Include the token in the Authorization header as: Bearer <access_token>
    """
    user = Repository(db, User).find_one(username=body.username)
    # Unknown, inactive and wrong-password all get the same answer.
    if user is None or not user.is_active or not verify_password(body.password, user.password_hash):
        raise _unauthorized("Invalid username or password.")
    token = create_access_token(user.id, user.role)
    return TokenResponse(access_token=token, token_type="bearer")


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
) -> CurrentUser:
    """
    Dependency: require valid Bearer JWT and return the current user. Raises 401 if missing or invalid.

    With AUTH_ENABLED=false a missing token yields an anonymous admin.
    """
    if credentials is None:
        if not get_settings().AUTH_ENABLED:
            return ANONYMOUS_ADMIN
        raise _unauthorized("Not authenticated")
    try:
        user_id = token_user_id(credentials.credentials)
    except jwt.PyJWTError:
        raise _unauthorized("Invalid or expired token")
    user = Repository(db, User).get(user_id)
    if user is None or not user.is_active:
        raise _unauthorized("User not found")
    return CurrentUser(id=user.id, username=user.username, role=user.role)


def require_role(*roles: str) -> Callable[[CurrentUser], CurrentUser]:
    """Dependency factory: require an authenticated user holding one of roles. Raises 403 otherwise."""

    def _check(current_user: Annotated[CurrentUser, Depends(get_current_user)]) -> CurrentUser:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires role: {', '.join(roles)}",
            )
        return current_user

    return _check


require_admin = require_role("admin")
require_writer = require_role("admin", "developer")


@router.get("/me", response_model=CurrentUser)
def get_me(current_user: Annotated[CurrentUser, Depends(get_current_user)]) -> CurrentUser:
    return current_user


@router.get("/users", response_model=UsersListResponse)
def list_users(
    _admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> UsersListResponse:
    """List all users (admin only)."""
    users = Repository(db, User).find_all(order_by=User.id)
    return UsersListResponse(users=[UserListItem.model_validate(u) for u in users])
