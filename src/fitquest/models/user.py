"""User model."""

from enum import Enum

from sqlalchemy import Column, String
from sqlmodel import Field, SQLModel

from fitquest.models.base import TimestampMixin, generate_nanoid


class UserRole(str, Enum):
    """Role carried in access tokens."""

    USER = "user"
    ADMIN = "admin"


class User(TimestampMixin, SQLModel, table=True):
    """User account model.

    Users start unverified and are flipped to verified exactly once by the
    email verification workflow.
    """

    __tablename__ = "users"

    id: str = Field(default_factory=generate_nanoid, primary_key=True, max_length=21)
    email: str = Field(unique=True, index=True, max_length=255)
    password_hash: str = Field(max_length=255)
    is_verified: bool = Field(default=False)
    role: str = Field(
        default=UserRole.USER.value,
        sa_column=Column(String(20), nullable=False, default=UserRole.USER.value),
    )


class UserRead(SQLModel):
    """Public projection of a user."""

    id: str
    email: str
    role: UserRole
    is_verified: bool
