"""FastAPI dependencies for dependency injection."""

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from fitquest.database import get_session
from fitquest.models import User
from fitquest.services.accounts import AccountService
from fitquest.services.auth import AuthError, verify_token
from fitquest.services.email import EmailService
from fitquest.services.events import EventBus
from fitquest.services.rate_limit import RateLimitType, get_client_ip, get_rate_limiter

logger = logging.getLogger(__name__)

# Type alias for database session dependency
SessionDep = Annotated[AsyncSession, Depends(get_session)]

# Security scheme
security = HTTPBearer(auto_error=False)


def get_email_service(request: Request) -> EmailService:
    """The email service built by the application bootstrap."""
    return request.app.state.email_service


def get_event_bus(request: Request) -> EventBus:
    """The event bus built by the application bootstrap."""
    return request.app.state.event_bus


def get_account_service(
    session: SessionDep,
    email_service: Annotated[EmailService, Depends(get_email_service)],
    events: Annotated[EventBus, Depends(get_event_bus)],
) -> AccountService:
    """Account workflows bound to the request's session."""
    return AccountService(session, email_service, events)


AccountServiceDep = Annotated[AccountService, Depends(get_account_service)]


async def get_current_user(
    session: SessionDep,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> User:
    """Get current authenticated user or raise 401."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return await verify_token(session, credentials.credentials)
    except AuthError as e:
        logger.debug(f"Access token rejected: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


CurrentUser = Annotated[User, Depends(get_current_user)]


class RateLimitDependency:
    """Throttle an endpoint per client IP, answering 429 once over the limit."""

    def __init__(self, limit_type: RateLimitType) -> None:
        self.limit_type = limit_type

    async def __call__(self, request: Request) -> None:
        client = get_client_ip(request) or "unknown"
        result = await get_rate_limiter().hit(self.limit_type, client)
        if result.allowed:
            return

        headers = result.headers()
        logger.info(f"Rate limited {self.limit_type.value} request from {client}")
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Rate limit exceeded. Please try again in {headers['Retry-After']} seconds.",
            headers=headers,
        )


AuthRateLimit = Annotated[None, Depends(RateLimitDependency(RateLimitType.AUTH))]
EmailRateLimit = Annotated[None, Depends(RateLimitDependency(RateLimitType.EMAIL))]
