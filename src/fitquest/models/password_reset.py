"""Password reset model."""

from datetime import datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from fitquest.models.base import CreatedAtMixin, generate_nanoid


class PasswordReset(CreatedAtMixin, SQLModel, table=True):
    """Single-use password reset token.

    Once ``used`` is set the row stays behind as a replay guard until the
    user requests another reset.
    """

    __tablename__ = "password_resets"

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
    used: bool = Field(default=False)
