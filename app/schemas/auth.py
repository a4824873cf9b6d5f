"""Login, token and user schemas."""

from pydantic import BaseModel, ConfigDict, Field

from app.core.security import PASSWORD_MAX_LEN, PASSWORD_MIN_LEN, USERNAME_MAX_LEN, USERNAME_MIN_LEN
from app.schemas.common import UserRole


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=USERNAME_MIN_LEN, max_length=USERNAME_MAX_LEN)
    password: str = Field(..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)


class TokenResponse(BaseModel):
    access_token: str = Field(..., description="Send as 'Authorization: Bearer <access_token>'.")
    token_type: str = "bearer"


class CurrentUser(BaseModel):
    """
    The caller as seen by route dependencies and the inbox.

    id 0 is the anonymous admin used when auth is disabled; it has no user row.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    role: UserRole


class UserListItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str | None = None
    role: UserRole
    is_active: bool = True
    notification_preferences: dict[str, bool] = Field(default_factory=dict)


class UsersListResponse(BaseModel):
    users: list[UserListItem]
