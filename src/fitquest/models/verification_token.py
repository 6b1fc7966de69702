"""Verification token model for email ownership checks."""

from datetime import datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from fitquest.models.base import CreatedAtMixin, generate_nanoid


class VerificationToken(CreatedAtMixin, SQLModel, table=True):
    """Single-use email verification token.

    Only the sha256 digest of the emailed token is stored. A user holds at
    most one row; issuing a new token replaces the old one.
    """

    __tablename__ = "verification_tokens"

    id: str = Field(default_factory=generate_nanoid, primary_key=True, max_length=21)
    user_id: str = Field(
        foreign_key="users.id",
        ondelete="CASCADE",
        unique=True,
        index=True,
        max_length=21,
    )
    token_hash: str = Field(max_length=64, description="sha256 hex digest of the raw token")
    expires_at: datetime = Field(
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
        description="Token expiration time",
    )
