"""
Booking service with pessimistic locking over the ticket-type ledger.
"""

import logging
from dataclasses import dataclass
from typing import List
from uuid import UUID

from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.sql import Select

from ..models.booking import Booking, BookingStatus, generate_booking_reference
from ..models.event import Event
from ..models.ticket_type import TicketType
from ..utils.clock import utc_now
from ..utils.exceptions import (
    BookingNotFoundError,
    EventNotFoundError,
    InsufficientCapacityError,
    InvalidBookingStateError,
    TicketTypeNotFoundError,
    ValidationError,
)
from ..utils.logging_config import log_business_event
from .dynamic_pricing_service import DynamicPricingService
from .waitlist_service import WaitlistService

logger = logging.getLogger(__name__)


def ticket_type_lock_query(ticket_type_id: UUID) -> Select:
    """SELECT ... FOR UPDATE on one ticket-type row, refreshing any cached copy."""
    return (
        select(TicketType)
        .where(TicketType.id == ticket_type_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )


def booking_lock_query(user_id: UUID, booking_id: UUID) -> Select:
    """SELECT ... FOR UPDATE on a booking owned by ``user_id``."""
    return (
        select(Booking)
        .options(selectinload(Booking.event))
        .where(Booking.id == booking_id, Booking.user_id == user_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )


@dataclass
class CancellationResult:
    """Outcome of a cancellation."""

    booking: Booking
    waitlist_notified: int


class BookingService:
    """Service for creating, cancelling and attending bookings."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.pricing = DynamicPricingService()

    async def book_ticket(
        self,
        user_id: UUID,
        event_id: UUID,
        ticket_type_id: UUID,
        quantity: int
    ) -> Booking:
        """
        Book tickets of one ticket type in a single transaction.

        The ticket-type row is locked before availability is read, so the
        check and the ``sold`` increment cannot interleave with another
        booking or cancellation of the same ticket type.

        Args:
            user_id: ID of the user making the booking
            event_id: ID of the event to book
            ticket_type_id: ID of the ticket type to book
            quantity: Number of tickets to book

        Returns:
            Created booking with event and ticket type loaded

        Raises:
            ValidationError: For bad quantity, unavailable event or closed sales window
            InsufficientCapacityError: When fewer than ``quantity`` tickets remain
            EventNotFoundError: When the event does not exist
            TicketTypeNotFoundError: When the ticket type does not exist
        """
        logger.info(
            f"Booking {quantity} tickets for user {user_id}, event {event_id}, ticket type {ticket_type_id}"
        )

        if quantity is None or quantity < 1:
            raise ValidationError("Quantity must be at least 1")

        try:
            result = await self.session.execute(ticket_type_lock_query(ticket_type_id))
            ticket_type = result.scalar_one_or_none()
            if not ticket_type:
                raise TicketTypeNotFoundError(str(ticket_type_id))

            event = await self.session.get(Event, event_id)
            if not event:
                raise EventNotFoundError(str(event_id))

            now = utc_now()
            if not event.is_published:
                raise ValidationError("This event is not available for booking")
            if event.has_started(now):
                raise ValidationError("Cannot book tickets for past events")

            if ticket_type.event_id != event.id:
                raise ValidationError("Ticket type does not belong to this event")

            window_error = ticket_type.sales_window_error(now)
            if window_error:
                raise ValidationError(window_error)

            if ticket_type.available < quantity:
                raise InsufficientCapacityError(
                    requested=quantity,
                    available=ticket_type.available,
                    ticket_type_id=str(ticket_type.id)
                )

            total_price = self.pricing.total_price(ticket_type, quantity, now)

            booking = Booking(
                user_id=user_id,
                event_id=event.id,
                ticket_type_id=ticket_type.id,
                quantity=quantity,
                total_price=total_price,
                status=BookingStatus.CONFIRMED,
                booking_reference=generate_booking_reference(now),
                booked_at=now
            )
            self.session.add(booking)
            ticket_type.sold += quantity

            await self.session.flush()
            await self.session.commit()

        except Exception:
            await self.session.rollback()
            raise

        logger.info(f"Booking {booking.booking_reference} created for user {user_id}")
        log_business_event(
            "booking_created",
            {
                "booking_id": str(booking.id),
                "booking_reference": booking.booking_reference,
                "event_id": str(event_id),
                "ticket_type_id": str(ticket_type_id),
                "quantity": quantity,
                "total_price": str(total_price),
            },
            user_id=str(user_id)
        )

        return await self._get_booking_with_relations(booking.id)

    async def cancel_booking(self, user_id: UUID, booking_id: UUID) -> CancellationResult:
        """
        Cancel a confirmed booking and return its tickets to the ledger.

        Locks are taken booking first, then ticket type. Waiting users are
        only counted, never promoted.

        Raises:
            BookingNotFoundError: When the booking does not exist or is not owned
            ValidationError: When already cancelled or the event has started
            InvalidBookingStateError: When the booking was attended
        """
        logger.info(f"Cancelling booking {booking_id} for user {user_id}")

        try:
            result = await self.session.execute(booking_lock_query(user_id, booking_id))
            booking = result.scalar_one_or_none()
            if not booking:
                raise BookingNotFoundError(str(booking_id))

            if booking.status == BookingStatus.CANCELLED:
                raise ValidationError("Booking is already cancelled")
            if booking.status == BookingStatus.ATTENDED:
                raise InvalidBookingStateError(
                    "Cannot cancel a booking that has been attended",
                    booking_id=str(booking.id),
                    current_state=booking.status.value
                )

            now = utc_now()
            if booking.event.has_started(now):
                raise ValidationError("Cannot cancel booking for events that have already started")

            result = await self.session.execute(ticket_type_lock_query(booking.ticket_type_id))
            ticket_type = result.scalar_one()

            booking.status = BookingStatus.CANCELLED
            booking.cancelled_at = now
            ticket_type.sold -= booking.quantity

            waiting = await WaitlistService(self.session).peek_waiting(
                booking.event_id,
                booking.ticket_type_id,
                limit=booking.quantity
            )

            await self.session.flush()
            await self.session.commit()

        except Exception:
            await self.session.rollback()
            raise

        log_business_event(
            "booking_cancelled",
            {
                "booking_id": str(booking.id),
                "booking_reference": booking.booking_reference,
                "quantity": booking.quantity,
                "waitlist_notified": len(waiting),
            },
            user_id=str(user_id)
        )

        booking = await self._get_booking_with_relations(booking.id)
        return CancellationResult(booking=booking, waitlist_notified=len(waiting))

    async def mark_attendance(self, user_id: UUID, booking_id: UUID) -> Booking:
        """
        Mark a confirmed booking as attended once its event has started.

        Raises:
            BookingNotFoundError: When the booking does not exist or is not owned
            ValidationError: When cancelled or the event has not started
            InvalidBookingStateError: When already attended
        """
        try:
            result = await self.session.execute(booking_lock_query(user_id, booking_id))
            booking = result.scalar_one_or_none()
            if not booking:
                raise BookingNotFoundError(str(booking_id))

            if booking.status == BookingStatus.CANCELLED:
                raise ValidationError("Cannot mark attendance for cancelled booking")
            if booking.status == BookingStatus.ATTENDED:
                raise InvalidBookingStateError(
                    "Attendance already marked for this booking",
                    booking_id=str(booking.id),
                    current_state=booking.status.value
                )

            now = utc_now()
            if booking.event.start_date_time > now:
                raise ValidationError("Event has not started yet")

            booking.status = BookingStatus.ATTENDED
            booking.attended_at = now

            await self.session.flush()
            await self.session.commit()

        except Exception:
            await self.session.rollback()
            raise

        log_business_event(
            "booking_attended",
            {"booking_id": str(booking.id), "event_id": str(booking.event_id)},
            user_id=str(user_id)
        )

        return await self._get_booking_with_relations(booking.id)

    async def get_user_bookings(self, user_id: UUID) -> List[Booking]:
        """Get all bookings of a user, newest first."""
        result = await self.session.execute(
            select(Booking)
            .options(selectinload(Booking.event), selectinload(Booking.ticket_type))
            .where(Booking.user_id == user_id)
            .order_by(desc(Booking.booked_at))
        )
        return list(result.scalars().all())

    async def get_booking(self, user_id: UUID, booking_id: UUID) -> Booking:
        """Get one booking owned by the user."""
        result = await self.session.execute(
            select(Booking)
            .options(selectinload(Booking.event), selectinload(Booking.ticket_type))
            .where(Booking.id == booking_id, Booking.user_id == user_id)
        )
        booking = result.scalar_one_or_none()
        if not booking:
            raise BookingNotFoundError(str(booking_id))
        return booking

    async def _get_booking_with_relations(self, booking_id: UUID) -> Booking:
        result = await self.session.execute(
            select(Booking)
            .options(selectinload(Booking.event), selectinload(Booking.ticket_type))
            .where(Booking.id == booking_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()
