"""Authentication endpoints."""

from typing import cast

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, EmailStr, Field

from fitquest.api.deps import AccountServiceDep, AuthRateLimit, CurrentUser, EmailRateLimit
from fitquest.models.user import UserRead
from fitquest.schemas import (
    AccessTokenResponse,
    ErrorResponse,
    LoginResponse,
    RegisterResponse,
    SuccessResponse,
)
from fitquest.services.accounts import (
    AccountError,
    AlreadyExistsError,
    AlreadyVerifiedError,
    EmailNotVerifiedError,
    InvalidCredentialsError,
    InvalidOrExpiredTokenError,
    InvalidResetTokenError,
    InvalidTokenError,
    NotFoundError,
)

router = APIRouter()

# Most specific class first; subclasses inherit their parent's status
ACCOUNT_ERROR_STATUS: list[tuple[type[AccountError], int]] = [
    (AlreadyExistsError, status.HTTP_409_CONFLICT),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (AlreadyVerifiedError, status.HTTP_400_BAD_REQUEST),
    (InvalidOrExpiredTokenError, status.HTTP_400_BAD_REQUEST),
    (InvalidResetTokenError, status.HTTP_400_BAD_REQUEST),
    (InvalidCredentialsError, status.HTTP_401_UNAUTHORIZED),
    (EmailNotVerifiedError, status.HTTP_401_UNAUTHORIZED),
    (InvalidTokenError, status.HTTP_401_UNAUTHORIZED),
]

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 72


def status_for_error(error: AccountError) -> int:
    """HTTP status code for a workflow failure."""
    for error_type, status_code in ACCOUNT_ERROR_STATUS:
        if isinstance(error, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


async def account_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    """Render an ``AccountError`` as a JSON error response."""
    error = cast(AccountError, exc)
    body = ErrorResponse(detail=error.message, code=error.code)
    status_code = status_for_error(error)
    return JSONResponse(status_code=status_code, content=body.model_dump())


class RegisterRequest(BaseModel):
    """Request body for registration."""

    email: EmailStr
    password: str = Field(min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH)


class VerifyEmailRequest(BaseModel):
    """Request body for email verification."""

    token: str = Field(min_length=1)
    email: EmailStr


class EmailRequest(BaseModel):
    """Request body carrying only an email address."""

    email: EmailStr


class LoginRequest(BaseModel):
    """Request body for login."""

    email: EmailStr
    password: str = Field(min_length=1)


class RefreshTokenRequest(BaseModel):
    """Request body carrying a refresh token."""

    refresh_token: str = Field(min_length=1)


class ResetPasswordRequest(BaseModel):
    """Request body for completing a password reset."""

    email: EmailStr
    token: str = Field(min_length=1)
    new_password: str = Field(min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH)


ERROR_RESPONSES: dict[int | str, dict] = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
}


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
)
async def register(request: RegisterRequest, accounts: AccountServiceDep, _rate_limit: AuthRateLimit):
    """Create an account and send a verification email."""
    return await accounts.register(request.email, request.password)


@router.post(
    "/verify-email",
    response_model=SuccessResponse,
    responses={**ERROR_RESPONSES, 404: {"model": ErrorResponse}},
)
async def verify_email(request: VerifyEmailRequest, accounts: AccountServiceDep):
    """Confirm an email address with the token from the verification link."""
    return await accounts.verify_email(request.token, request.email)


@router.post(
    "/resend-verification",
    response_model=SuccessResponse,
    responses={**ERROR_RESPONSES, 404: {"model": ErrorResponse}},
)
async def resend_verification(
    request: EmailRequest, accounts: AccountServiceDep, _rate_limit: EmailRateLimit
):
    """Send a new verification link, invalidating earlier ones."""
    return await accounts.resend_verification(request.email)


@router.post("/login", response_model=LoginResponse, responses=ERROR_RESPONSES)
async def login(request: LoginRequest, accounts: AccountServiceDep, _rate_limit: AuthRateLimit):
    """Exchange credentials for an access token and a refresh token."""
    return await accounts.login(request.email, request.password)


@router.post("/refresh", response_model=AccessTokenResponse, responses=ERROR_RESPONSES)
async def refresh(
    request: RefreshTokenRequest, accounts: AccountServiceDep, _rate_limit: AuthRateLimit
):
    """Mint a new access token from a refresh token."""
    return await accounts.refresh_access_token(request.refresh_token)


@router.post("/logout", response_model=SuccessResponse)
async def logout(request: RefreshTokenRequest, accounts: AccountServiceDep):
    """Revoke a refresh token. Always succeeds."""
    return await accounts.logout(request.refresh_token)


@router.post("/forgot-password", response_model=SuccessResponse)
async def forgot_password(
    request: EmailRequest, accounts: AccountServiceDep, _rate_limit: EmailRateLimit
):
    """Email a password reset link.

    The response does not reveal whether the account exists.
    """
    return await accounts.forgot_password(request.email)


@router.post("/reset-password", response_model=SuccessResponse, responses=ERROR_RESPONSES)
async def reset_password(
    request: ResetPasswordRequest, accounts: AccountServiceDep, _rate_limit: AuthRateLimit
):
    """Set a new password using a reset token and sign out every session."""
    return await accounts.reset_password(request.email, request.token, request.new_password)


@router.get("/me", response_model=UserRead)
async def get_current_user_info(user: CurrentUser):
    """Get current authenticated user info."""
    return UserRead.model_validate(user)
