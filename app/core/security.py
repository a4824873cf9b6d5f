"""Password hashing and bearer tokens for Stackwatch users."""

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import bcrypt
import jwt

from app.core.config import get_settings

if TYPE_CHECKING:
    from app.core.config import Settings

BCRYPT_ROUNDS = 12
# bcrypt ignores input past 72 bytes.
BCRYPT_MAX_BYTES = 72

TOKEN_ISSUER = "stackwatch"

USERNAME_MIN_LEN = 1
USERNAME_MAX_LEN = 255
PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 128


def _pw_bytes(plain_password: str) -> bytes:
    return plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(plain_password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    return bcrypt.hashpw(_pw_bytes(plain_password), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain_password: str, hashed: str) -> bool:
    """False for a wrong password and for a stored hash bcrypt cannot parse."""
    try:
        return bcrypt.checkpw(_pw_bytes(plain_password), hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def create_access_token(user_id: int, role: str, settings: "Settings | None" = None) -> str:
    """Signed token for a user id and role; expires after JWT_EXPIRE_MINUTES."""
    settings = settings or get_settings()
    now = datetime.now(UTC)
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "role": role,
        "iss": TOKEN_ISSUER,
        "iat": now,
        "exp": now + timedelta(minutes=settings.JWT_EXPIRE_MINUTES),
    }
    return jwt.encode(payload, settings.JWT_SECRET.get_secret_value(), algorithm=settings.JWT_ALGORITHM)


def token_user_id(token: str, settings: "Settings | None" = None) -> int:
    """
    Verify signature, expiry and issuer and return the user id in sub.

    Raises jwt.PyJWTError for any token that does not carry a positive integer user id.
    """
    settings = settings or get_settings()
    payload = jwt.decode(
        token,
        settings.JWT_SECRET.get_secret_value(),
        algorithms=[settings.JWT_ALGORITHM],
        issuer=TOKEN_ISSUER,
        options={"require": ["sub", "exp", "iss"]},
    )
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError) as e:
        raise jwt.InvalidTokenError("Token subject is not a user id") from e
    if user_id < 1:
        raise jwt.InvalidTokenError("Token subject is not a user id")
    return user_id
