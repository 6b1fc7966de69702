"""In-process domain events.

Handlers run inside the publishing request's database transaction: they
receive the same session and their writes commit (or roll back) together
with the workflow that published the event.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserVerified:
    """A user confirmed ownership of their email address."""

    user_id: str
    email: str


EventHandler = Callable[[AsyncSession, Any], Awaitable[None]]


class EventBus:
    """Dispatches events to handlers subscribed by event type."""

    def __init__(self) -> None:
        self._handlers: dict[type, list[EventHandler]] = {}

    def subscribe(self, event_type: type, handler: EventHandler) -> None:
        self._handlers.setdefault(event_type, []).append(handler)

    def handlers_for(self, event_type: type) -> list[EventHandler]:
        return list(self._handlers.get(event_type, []))

    async def publish(self, session: AsyncSession, event: Any) -> None:
        """Run every handler subscribed to the event's type, in order."""
        handlers = self._handlers.get(type(event), [])
        logger.debug(f"Publishing {type(event).__name__} to {len(handlers)} handler(s)")
        for handler in handlers:
            await handler(session, event)


def create_event_bus() -> EventBus:
    """Build the application event bus with the default subscribers."""
    # Import here to avoid circular imports
    from fitquest.services.gamification import initialize_user_gamification

    bus = EventBus()
    bus.subscribe(UserVerified, initialize_user_gamification)
    return bus
