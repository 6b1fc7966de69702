"""Pydantic schemas for API requests/responses."""

from fitquest.schemas.auth import AccessTokenResponse, LoginResponse, RegisterResponse
from fitquest.schemas.common import ErrorResponse, SuccessResponse

__all__ = [
    "AccessTokenResponse",
    "ErrorResponse",
    "LoginResponse",
    "RegisterResponse",
    "SuccessResponse",
]
