"""Gamification records created once a user verifies their email."""

from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from fitquest.models.base import TimestampMixin, generate_nanoid


class Avatar(TimestampMixin, SQLModel, table=True):
    """A user's avatar customisation."""

    __tablename__ = "avatars"

    id: str = Field(default_factory=generate_nanoid, primary_key=True, max_length=21)
    user_id: str = Field(
        foreign_key="users.id", ondelete="CASCADE", unique=True, index=True, max_length=21
    )
    appearance: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    unlocked_items: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))


class Progress(TimestampMixin, SQLModel, table=True):
    """XP, level and streak counters."""

    __tablename__ = "progress"

    id: str = Field(default_factory=generate_nanoid, primary_key=True, max_length=21)
    user_id: str = Field(
        foreign_key="users.id", ondelete="CASCADE", unique=True, index=True, max_length=21
    )
    xp_total: int = Field(default=0)
    level: int = Field(default=1)
    points: int = Field(default=0)
    streak_days: int = Field(default=0)


class QuizResponse(TimestampMixin, SQLModel, table=True):
    """Answers to the onboarding quiz; its presence means onboarding is done."""

    __tablename__ = "quiz_responses"

    id: str = Field(default_factory=generate_nanoid, primary_key=True, max_length=21)
    user_id: str = Field(
        foreign_key="users.id", ondelete="CASCADE", unique=True, index=True, max_length=21
    )
    answers: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
