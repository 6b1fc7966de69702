"""Account lifecycle workflows.

Registration, email verification, login, token refresh, logout and
password reset. Each workflow reads and validates state, writes to the
database, optionally sends an email after the transaction commits, and
returns a result or raises one of the ``AccountError`` subclasses below.
"""

import asyncio
import logging
from datetime import UTC, datetime, timedelta
from urllib.parse import urlencode

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel, delete, select
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from fitquest.config import settings
from fitquest.models import (
    PasswordReset,
    QuizResponse,
    RefreshToken,
    User,
    UserRead,
    VerificationToken,
)
from fitquest.schemas import AccessTokenResponse, LoginResponse, RegisterResponse, SuccessResponse
from fitquest.services.auth import (
    AuthError,
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    generate_secret_token,
    hash_password,
    hash_token,
    verify_password,
)
from fitquest.services.email import EmailService
from fitquest.services.events import EventBus, UserVerified

logger = logging.getLogger(__name__)

# Attempts at replacing a user's single active token when a concurrent
# request wins the unique constraint on user_id
MAX_TOKEN_REPLACE_ATTEMPTS = 3

FORGOT_PASSWORD_MESSAGE = (
    "If an account exists with this email, you will receive a password reset link."
)


class AccountError(Exception):
    """Base class for expected, user-facing workflow failures."""

    code = "account_error"
    default_message = "Account error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AlreadyExistsError(AccountError):
    code = "already_exists"
    default_message = "Email already registered"


class NotFoundError(AccountError):
    code = "not_found"
    default_message = "User not found"


class AlreadyVerifiedError(AccountError):
    code = "already_verified"
    default_message = "Email already verified"


class InvalidCredentialsError(AccountError):
    # Shared by unknown email and wrong password
    code = "invalid_credentials"
    default_message = "Invalid credentials"


class EmailNotVerifiedError(AccountError):
    code = "email_not_verified"
    default_message = "Please verify your email before logging in"


class InvalidOrExpiredTokenError(AccountError):
    code = "invalid_or_expired"
    default_message = "Invalid or expired token"


class InvalidTokenError(AccountError):
    code = "invalid_token"
    default_message = "Invalid token"


class InvalidResetTokenError(InvalidTokenError):
    """A password reset was attempted for an unknown account."""

    default_message = "Invalid reset token"


class UserNotFoundError(InvalidTokenError):
    """A refresh token's subject no longer resolves to a user."""

    code = "user_not_found"
    default_message = "Invalid refresh token"


def _now() -> datetime:
    return datetime.now(UTC)


def build_link(path: str, token: str, email: str) -> str:
    """Frontend link carrying a raw token and the account email."""
    query = urlencode({"token": token, "email": email})
    return f"{settings.app_url.rstrip('/')}{path}?{query}"


class AccountService:
    """Auth workflows over one database session.

    The email service and event bus are process-wide collaborators owned by
    the application bootstrap and passed in explicitly.
    """

    def __init__(self, session: AsyncSession, email_service: EmailService, events: EventBus):
        self.session = session
        self.email_service = email_service
        self.events = events

    async def _get_user_by_email(self, email: str) -> User | None:
        result = await self.session.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def _get_user_by_id(self, user_id: str) -> User | None:
        result = await self.session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def _replace_token(
        self,
        model: type[VerificationToken] | type[PasswordReset],
        user_id: str,
        ttl: timedelta,
    ) -> str:
        """Swap the user's single active token for a new one and commit.

        Returns the raw token. ``user_id`` is unique on the token tables, so
        two racing replacements cannot both commit; the loser retries.
        """
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(MAX_TOKEN_REPLACE_ATTEMPTS),
            retry=retry_if_exception_type(IntegrityError),
            reraise=True,
        ):
            with attempt:
                raw_token = generate_secret_token()
                await self.session.execute(delete(model).where(model.user_id == user_id))  # type: ignore[arg-type]
                row: SQLModel = model(
                    user_id=user_id,
                    token_hash=hash_token(raw_token),
                    expires_at=_now() + ttl,
                )
                self.session.add(row)
                try:
                    await self.session.commit()
                except IntegrityError:
                    await self.session.rollback()
                    logger.warning(
                        f"Concurrent {model.__tablename__} write for user {user_id} "
                        f"(attempt {attempt.retry_state.attempt_number}/{MAX_TOKEN_REPLACE_ATTEMPTS})"
                    )
                    raise
                return raw_token
        raise RuntimeError("Unreachable")  # For type checker

    async def _send_verification(self, email: str, raw_token: str) -> None:
        await self.email_service.send_verification_email(email, build_link("/verify", raw_token, email))

    # Registration and verification

    async def register(self, email: str, password: str) -> RegisterResponse:
        """Create an unverified user and email them a verification link."""
        if await self._get_user_by_email(email):
            raise AlreadyExistsError()

        password_hash = await asyncio.to_thread(hash_password, password)
        user = User(email=email, password_hash=password_hash, is_verified=False)
        user_id = user.id
        self.session.add(user)
        try:
            await self.session.flush()
        except IntegrityError as e:
            # Lost a race with a concurrent registration for the same email
            await self.session.rollback()
            raise AlreadyExistsError() from e

        raw_token = generate_secret_token()
        self.session.add(
            VerificationToken(
                user_id=user_id,
                token_hash=hash_token(raw_token),
                expires_at=_now() + settings.verification_token_ttl,
            )
        )
        await self.session.commit()

        logger.info(f"Registered user {user_id}")
        await self._send_verification(email, raw_token)

        return RegisterResponse(
            message="Registration successful. Please check your email to verify your account.",
            user_id=user_id,
        )

    async def verify_email(self, token: str, email: str) -> SuccessResponse:
        """Consume a verification token and mark the user verified."""
        user = await self._get_user_by_email(email)
        if not user:
            raise NotFoundError()
        if user.is_verified:
            raise AlreadyVerifiedError()

        stmt = select(VerificationToken).where(
            VerificationToken.user_id == user.id,
            VerificationToken.token_hash == hash_token(token),
            VerificationToken.expires_at >= _now(),
        )
        verification = (await self.session.execute(stmt)).scalar_one_or_none()
        if not verification:
            raise InvalidOrExpiredTokenError("Invalid or expired verification token")

        user.is_verified = True
        self.session.add(user)
        await self.session.delete(verification)
        await self.events.publish(self.session, UserVerified(user_id=user.id, email=user.email))
        await self.session.commit()

        logger.info(f"Verified email for user {user.id}")
        return SuccessResponse(message="Email verified successfully. You can now log in.")

    async def resend_verification(self, email: str) -> SuccessResponse:
        """Invalidate outstanding verification tokens and email a new one."""
        user = await self._get_user_by_email(email)
        if not user:
            raise NotFoundError()
        if user.is_verified:
            raise AlreadyVerifiedError()

        user_email = user.email
        raw_token = await self._replace_token(
            VerificationToken,
            user.id,
            settings.verification_token_ttl,
        )
        await self._send_verification(user_email, raw_token)

        return SuccessResponse(message="Verification email sent. Please check your inbox.")

    # Sessions

    async def login(self, email: str, password: str) -> LoginResponse:
        """Check credentials and start a new session."""
        user = await self._get_user_by_email(email)
        if not user:
            raise InvalidCredentialsError()
        if not user.is_verified:
            raise EmailNotVerifiedError()

        if not await asyncio.to_thread(verify_password, password, user.password_hash):
            raise InvalidCredentialsError()

        access_token = create_access_token(user)
        refresh_token, refresh_expires = create_refresh_token(user.id)
        self.session.add(
            RefreshToken(
                user_id=user.id,
                token_hash=hash_token(refresh_token),
                expires_at=refresh_expires,
            )
        )

        quiz = await self.session.execute(
            select(QuizResponse.id).where(QuizResponse.user_id == user.id)
        )
        needs_quiz = quiz.first() is None
        user_read = UserRead.model_validate(user)

        await self.session.commit()
        logger.info(f"User {user_read.id} logged in")

        return LoginResponse(
            access_token=access_token,
            refresh_token=refresh_token,
            user=user_read,
            needs_quiz=needs_quiz,
        )

    async def refresh_access_token(self, refresh_token: str) -> AccessTokenResponse:
        """Mint a new access token from a valid, unrevoked refresh token."""
        try:
            payload = decode_refresh_token(refresh_token)
        except AuthError as e:
            raise InvalidTokenError("Invalid refresh token") from e

        stmt = select(RefreshToken).where(
            RefreshToken.token_hash == hash_token(refresh_token),
            RefreshToken.expires_at >= _now(),
        )
        stored = (await self.session.execute(stmt)).scalar_one_or_none()
        if not stored:
            raise InvalidTokenError("Invalid refresh token")

        user = await self._get_user_by_id(payload["sub"])
        if not user:
            raise UserNotFoundError()

        return AccessTokenResponse(access_token=create_access_token(user))

    async def logout(self, refresh_token: str) -> SuccessResponse:
        """Revoke a refresh token. Unknown tokens are ignored."""
        await self.session.execute(
            delete(RefreshToken).where(RefreshToken.token_hash == hash_token(refresh_token))  # type: ignore[arg-type]
        )
        await self.session.commit()
        return SuccessResponse(message="Logged out successfully")

    # Password reset

    async def forgot_password(self, email: str) -> SuccessResponse:
        """Email a reset link if the account exists; the response is the same either way."""
        user = await self._get_user_by_email(email)
        if not user:
            logger.info("Password reset requested for unknown email")
            return SuccessResponse(message=FORGOT_PASSWORD_MESSAGE)

        user_email = user.email
        raw_token = await self._replace_token(
            PasswordReset,
            user.id,
            settings.password_reset_ttl,
        )
        await self.email_service.send_password_reset_email(
            user_email, build_link("/reset-password", raw_token, user_email)
        )

        return SuccessResponse(message=FORGOT_PASSWORD_MESSAGE)

    async def reset_password(self, email: str, token: str, new_password: str) -> SuccessResponse:
        """Set a new password with a reset token and end every session."""
        user = await self._get_user_by_email(email)
        if not user:
            raise InvalidResetTokenError()

        stmt = select(PasswordReset).where(
            PasswordReset.user_id == user.id,
            PasswordReset.token_hash == hash_token(token),
            PasswordReset.used == False,  # noqa: E712
            PasswordReset.expires_at >= _now(),
        )
        reset = (await self.session.execute(stmt)).scalar_one_or_none()
        if not reset:
            raise InvalidOrExpiredTokenError("Invalid or expired reset token")

        user.password_hash = await asyncio.to_thread(hash_password, new_password)
        reset.used = True
        self.session.add(user)
        self.session.add(reset)
        await self.session.execute(
            delete(RefreshToken).where(RefreshToken.user_id == user.id)  # type: ignore[arg-type]
        )
        await self.session.commit()

        logger.info(f"Password reset for user {user.id}; all sessions revoked")
        return SuccessResponse(
            message="Password reset successfully. Please log in with your new password."
        )
