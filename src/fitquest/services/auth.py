"""Token codec and credential hashing.

Access and refresh tokens are HS256 JWTs signed with separate secrets.
Secrets sent to users out-of-band (verification links, reset links) and
refresh tokens are only ever stored as their sha256 digest. Passwords are
hashed with bcrypt.
"""

import hashlib
from datetime import UTC, datetime, timedelta
from secrets import token_hex, token_urlsafe
from typing import Any

import bcrypt
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from fitquest.config import settings
from fitquest.models import User

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

# bcrypt only looks at the first 72 bytes of a password
BCRYPT_MAX_BYTES = 72


class AuthError(Exception):
    """Token could not be decoded or does not authenticate a user."""

    pass


def encode_token(claims: dict[str, Any], secret: str, ttl: timedelta) -> str:
    """Sign ``claims`` into a JWT that expires after ``ttl``."""
    now = datetime.now(UTC)
    payload = {**claims, "iat": now, "exp": now + ttl}
    return jwt.encode(payload, secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str, secret: str, expected_type: str | None = None) -> dict[str, Any]:
    """Decode and validate a JWT, checking signature, expiry and token type."""
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        raise AuthError(f"Invalid token: {e}") from e

    if expected_type is not None and payload.get("type") != expected_type:
        raise AuthError("Invalid token: wrong token type")
    if not payload.get("sub"):
        raise AuthError("Invalid token: missing user ID")
    return payload


def create_access_token(user: User) -> str:
    """Create a short-lived access token carrying the user's identity and role."""
    return encode_token(
        {
            "sub": str(user.id),
            "email": user.email,
            "role": user.role,
            "type": ACCESS_TOKEN_TYPE,
        },
        settings.jwt_secret,
        settings.access_token_ttl,
    )


def create_refresh_token(user_id: str) -> tuple[str, datetime]:
    """Create a refresh token and return it along with its expiry."""
    ttl = settings.refresh_token_ttl
    token = encode_token(
        # jti keeps tokens minted within the same second distinct
        {"sub": user_id, "type": REFRESH_TOKEN_TYPE, "jti": token_urlsafe(16)},
        settings.jwt_refresh_secret,
        ttl,
    )
    return token, datetime.now(UTC) + ttl


def decode_access_token(token: str) -> dict[str, Any]:
    return decode_token(token, settings.jwt_secret, ACCESS_TOKEN_TYPE)


def decode_refresh_token(token: str) -> dict[str, Any]:
    return decode_token(token, settings.jwt_refresh_secret, REFRESH_TOKEN_TYPE)


async def verify_token(session: AsyncSession, token: str) -> User:
    """Verify an access token and return the associated user."""
    payload = decode_access_token(token)

    stmt = select(User).where(User.id == payload["sub"])
    result = await session.execute(stmt)
    user = result.scalar_one_or_none()

    if not user:
        raise AuthError("User not found")

    return user


def generate_secret_token() -> str:
    """Generate a 32-byte random token for emailed links."""
    return token_hex(32)


def hash_token(token: str) -> str:
    """One-way digest stored in place of a secret token."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def hash_password(password: str, rounds: int | None = None) -> str:
    """Hash a password with bcrypt."""
    salt = bcrypt.gensalt(rounds=rounds or settings.bcrypt_rounds)
    return bcrypt.hashpw(password.encode("utf-8")[:BCRYPT_MAX_BYTES], salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored bcrypt hash."""
    try:
        return bcrypt.checkpw(
            password.encode("utf-8")[:BCRYPT_MAX_BYTES],
            password_hash.encode("utf-8"),
        )
    except ValueError:
        # Malformed stored hash
        return False
