"""
Event read operations used by the booking assistant.
"""

import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ticketdesk.cache import get_cache, CacheKeyBuilder, CacheTTL
from ticketdesk.models import Event
from ticketdesk.utils.clock import utc_now

logger = logging.getLogger(__name__)


class EventService:
    """Service class for event lookups."""

    def __init__(self, db: AsyncSession):
        """Initialize the event service with database session."""
        self.db = db
        self.cache = get_cache()

    async def get_upcoming_events(self, limit: int = 5) -> List[Dict[str, Any]]:
        """
        Get published events that have not started yet, soonest first.

        Args:
            limit: Maximum number of events

        Returns:
            List of summaries with ``id``, ``title``, ``start_date_time``,
            ``location`` and ``min_price`` (0 when the event has no tickets)
        """
        cache_key = CacheKeyBuilder.upcoming_events(limit)
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return cached

        result = await self.db.execute(
            select(Event)
            .options(selectinload(Event.ticket_types))
            .where(Event.is_published.is_(True), Event.start_date_time > utc_now())
            .order_by(Event.start_date_time.asc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        events = result.scalars().all()

        summaries = [
            {
                "id": str(event.id),
                "title": event.title,
                "start_date_time": event.start_date_time.isoformat(),
                "location": event.location,
                "min_price": min((float(t.price) for t in event.ticket_types), default=0.0),
            }
            for event in events
        ]

        await self.cache.set(cache_key, summaries, CacheTTL.UPCOMING_EVENTS)
        return summaries

    async def find_event_in_message(self, message: str) -> Optional[Event]:
        """
        Find an upcoming published event whose title appears in the message.

        Matching is case-insensitive; the longest matching title wins.
        """
        lowered = message.lower()
        result = await self.db.execute(
            select(Event)
            .where(
                Event.is_published.is_(True),
                Event.start_date_time > utc_now()
            )
        )

        matches = [event for event in result.scalars().all() if event.title.lower() in lowered]
        if not matches:
            return None

        best = max(matches, key=lambda event: len(event.title))
        return await self.get_event_with_ticket_types(best.id)

    async def get_event_with_ticket_types(self, event_id: UUID) -> Optional[Event]:
        """Get an event with its ticket types freshly loaded."""
        result = await self.db.execute(
            select(Event)
            .options(selectinload(Event.ticket_types))
            .where(Event.id == event_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()
