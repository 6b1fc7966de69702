"""Refresh token model."""

from datetime import datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from fitquest.models.base import CreatedAtMixin, generate_nanoid


class RefreshToken(CreatedAtMixin, SQLModel, table=True):
    """Stored digest of an issued refresh token (one per session/device)."""

    __tablename__ = "refresh_tokens"

    id: str = Field(default_factory=generate_nanoid, primary_key=True, max_length=21)
    user_id: str = Field(foreign_key="users.id", ondelete="CASCADE", index=True, max_length=21)
    token_hash: str = Field(unique=True, index=True, max_length=64)
    expires_at: datetime = Field(
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
    )
