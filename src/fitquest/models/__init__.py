"""SQLModel database models."""

from fitquest.models.base import CreatedAtMixin, TimestampMixin
from fitquest.models.gamification import Avatar, Progress, QuizResponse
from fitquest.models.password_reset import PasswordReset
from fitquest.models.refresh_token import RefreshToken
from fitquest.models.user import User, UserRead, UserRole
from fitquest.models.verification_token import VerificationToken

__all__ = [
    "Avatar",
    "CreatedAtMixin",
    "PasswordReset",
    "Progress",
    "QuizResponse",
    "RefreshToken",
    "TimestampMixin",
    "User",
    "UserRead",
    "UserRole",
    "VerificationToken",
]
