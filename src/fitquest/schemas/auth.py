"""Results returned by the account workflows."""

from pydantic import BaseModel

from fitquest.models.user import UserRead
from fitquest.schemas.common import SuccessResponse


class RegisterResponse(SuccessResponse):
    """Result of a successful registration."""

    user_id: str


class LoginResponse(BaseModel):
    """Tokens and profile returned on login."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserRead
    needs_quiz: bool


class AccessTokenResponse(BaseModel):
    """A freshly minted access token."""

    access_token: str
    token_type: str = "bearer"
