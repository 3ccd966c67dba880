"""
Waitlist service for queueing users on sold-out events and ticket types.
"""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, delete, func, desc, asc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..models.event import Event
from ..models.ticket_type import TicketType
from ..models.waitlist import Waitlist, WaitlistStatus
from ..utils.exceptions import (
    AlreadyOnWaitlistError,
    EventNotFoundError,
    TicketTypeNotFoundError,
    ValidationError,
    WaitlistEntryNotFoundError,
)
from ..utils.logging_config import log_business_event

logger = logging.getLogger(__name__)


def _ticket_type_clause(ticket_type_id: Optional[UUID]):
    """Match a waitlist group; a NULL ticket type means the whole event."""
    if ticket_type_id is None:
        return Waitlist.ticket_type_id.is_(None)
    return Waitlist.ticket_type_id == ticket_type_id


class WaitlistService:
    """Service for managing event waitlists."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def join(
        self,
        user_id: UUID,
        event_id: UUID,
        ticket_type_id: Optional[UUID] = None
    ) -> Waitlist:
        """
        Add a user to the waitlist of an event, optionally for one ticket type.

        Positions are dense within an (event, ticket type) group and start
        at 1. Two concurrent joins of the same group may compute the same
        position; the queue order then falls back to ``joined_at``.

        Args:
            user_id: ID of the user joining the waitlist
            event_id: ID of the event
            ticket_type_id: Optional ticket type the user is waiting for

        Returns:
            Created waitlist entry

        Raises:
            EventNotFoundError: When the event does not exist
            TicketTypeNotFoundError: When the ticket type does not exist
            ValidationError: When the ticket type belongs to another event
            AlreadyOnWaitlistError: When the user is already queued in this group
        """
        logger.info(f"User {user_id} joining waitlist for event {event_id}, ticket type {ticket_type_id}")

        try:
            event = await self.session.get(Event, event_id)
            if not event:
                raise EventNotFoundError(str(event_id))

            if ticket_type_id is not None:
                ticket_type = await self.session.get(TicketType, ticket_type_id)
                if not ticket_type:
                    raise TicketTypeNotFoundError(str(ticket_type_id))
                if ticket_type.event_id != event_id:
                    raise ValidationError("Ticket type does not belong to this event")

            existing = await self.session.execute(
                select(Waitlist.id).where(
                    Waitlist.user_id == user_id,
                    Waitlist.event_id == event_id,
                    _ticket_type_clause(ticket_type_id)
                )
            )
            if existing.first():
                raise AlreadyOnWaitlistError(str(event_id))

            next_position = await self._get_next_position(event_id, ticket_type_id)

            entry = Waitlist(
                user_id=user_id,
                event_id=event_id,
                ticket_type_id=ticket_type_id,
                position=next_position,
                status=WaitlistStatus.WAITING
            )
            self.session.add(entry)
            await self.session.flush()
            await self.session.commit()

        except IntegrityError:
            await self.session.rollback()
            raise AlreadyOnWaitlistError(str(event_id))
        except Exception:
            await self.session.rollback()
            raise

        log_business_event(
            "waitlist_joined",
            {
                "event_id": str(event_id),
                "ticket_type_id": str(ticket_type_id) if ticket_type_id else None,
                "position": next_position,
            },
            user_id=str(user_id)
        )

        return await self._get_entry_with_relations(entry.id)

    async def leave(
        self,
        user_id: UUID,
        event_id: UUID,
        ticket_type_id: Optional[UUID] = None
    ) -> int:
        """
        Remove a user from an event's waitlist.

        Remaining entries keep their positions. Without a ticket type every
        entry of the user for the event is removed.

        Returns:
            Number of entries removed

        Raises:
            WaitlistEntryNotFoundError: When no entry matched
        """
        conditions = [Waitlist.user_id == user_id, Waitlist.event_id == event_id]
        if ticket_type_id is not None:
            conditions.append(Waitlist.ticket_type_id == ticket_type_id)

        try:
            result = await self.session.execute(delete(Waitlist).where(*conditions))
            if result.rowcount == 0:
                raise WaitlistEntryNotFoundError(str(event_id))
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        log_business_event(
            "waitlist_left",
            {
                "event_id": str(event_id),
                "ticket_type_id": str(ticket_type_id) if ticket_type_id else None,
                "removed": result.rowcount,
            },
            user_id=str(user_id)
        )
        return result.rowcount

    async def get_user_waitlists(self, user_id: UUID) -> List[Waitlist]:
        """Get all waitlist entries of a user, newest first."""
        result = await self.session.execute(
            select(Waitlist)
            .options(selectinload(Waitlist.event), selectinload(Waitlist.ticket_type))
            .where(Waitlist.user_id == user_id)
            .order_by(desc(Waitlist.joined_at))
        )
        return list(result.scalars().all())

    async def peek_waiting(
        self,
        event_id: UUID,
        ticket_type_id: Optional[UUID],
        limit: int
    ) -> List[Waitlist]:
        """
        Read the head of a waitlist group without changing it.

        Returns up to ``limit`` WAITING entries ordered by position.
        """
        if limit < 1:
            return []

        result = await self.session.execute(
            select(Waitlist)
            .where(
                Waitlist.event_id == event_id,
                _ticket_type_clause(ticket_type_id),
                Waitlist.status == WaitlistStatus.WAITING
            )
            .order_by(asc(Waitlist.position), asc(Waitlist.joined_at))
            .limit(limit)
        )
        return list(result.scalars().all())

    async def _get_next_position(self, event_id: UUID, ticket_type_id: Optional[UUID]) -> int:
        """Get the next position in a waitlist group."""
        result = await self.session.execute(
            select(func.max(Waitlist.position)).where(
                Waitlist.event_id == event_id,
                _ticket_type_clause(ticket_type_id)
            )
        )
        max_position = result.scalar()
        return (max_position or 0) + 1

    async def _get_entry_with_relations(self, entry_id: UUID) -> Waitlist:
        result = await self.session.execute(
            select(Waitlist)
            .options(selectinload(Waitlist.event), selectinload(Waitlist.ticket_type))
            .where(Waitlist.id == entry_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()
