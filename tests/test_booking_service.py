"""
Booking service tests.

Covers the ticket ledger invariants:
1. sold never exceeds capacity and moves only with confirmed bookings
2. a failed booking leaves no trace
3. cancellation and attendance follow the booking lifecycle
"""

import re
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql

from ticketdesk.models import Booking, BookingStatus, TicketType
from ticketdesk.services.booking_service import (
    BookingService,
    booking_lock_query,
    ticket_type_lock_query,
)
from ticketdesk.services.waitlist_service import WaitlistService
from ticketdesk.utils.clock import utc_now
from ticketdesk.utils.exceptions import (
    BookingNotFoundError,
    EventNotFoundError,
    InsufficientCapacityError,
    InvalidBookingStateError,
    TicketTypeNotFoundError,
    ValidationError,
)

REFERENCE_PATTERN = re.compile(r"^EVT-\d{8}-[0-9A-F]{6}$")


async def _booking_count(session) -> int:
    result = await session.execute(select(func.count(Booking.id)))
    return result.scalar_one()


class TestBookTicket:

    async def test_booking_updates_ledger_and_prices_tickets(
        self, session, make_user, make_event, make_ticket_type
    ):
        # Given
        user = await make_user()
        event = await make_event()
        ticket_type = await make_ticket_type(event, price="25.00", capacity=10)

        # When
        booking = await BookingService(session).book_ticket(user.id, event.id, ticket_type.id, 3)

        # Then
        assert booking.status == BookingStatus.CONFIRMED
        assert booking.quantity == 3
        assert booking.total_price == Decimal("75.00")
        assert REFERENCE_PATTERN.match(booking.booking_reference)
        assert booking.event.id == event.id
        assert booking.ticket_type.sold == 3

    async def test_references_are_unique(self, session, make_user, make_event, make_ticket_type):
        # Given
        user = await make_user()
        event = await make_event()
        ticket_type = await make_ticket_type(event, capacity=50)
        service = BookingService(session)

        # When
        references = {
            (await service.book_ticket(user.id, event.id, ticket_type.id, 1)).booking_reference
            for _ in range(10)
        }

        # Then
        assert len(references) == 10

    async def test_booking_last_tickets_then_sold_out(
        self, session, make_user, make_event, make_ticket_type, reload
    ):
        # Given
        user = await make_user()
        event = await make_event()
        ticket_type = await make_ticket_type(event, capacity=5, sold=3)
        user_id, event_id, ticket_type_id = user.id, event.id, ticket_type.id
        service = BookingService(session)

        # When
        await service.book_ticket(user_id, event_id, ticket_type_id, 2)
        with pytest.raises(InsufficientCapacityError) as exc_info:
            await service.book_ticket(user_id, event_id, ticket_type_id, 1)

        # Then
        assert exc_info.value.available == 0
        assert exc_info.value.requested == 1
        refreshed = await reload(TicketType, ticket_type_id)
        assert refreshed.sold == refreshed.capacity == 5

    async def test_insufficient_capacity_leaves_state_unchanged(
        self, session, make_user, make_event, make_ticket_type, reload
    ):
        # Given
        user = await make_user()
        event = await make_event()
        ticket_type = await make_ticket_type(event, capacity=2)
        user_id, event_id, ticket_type_id = user.id, event.id, ticket_type.id

        # When
        with pytest.raises(InsufficientCapacityError) as exc_info:
            await BookingService(session).book_ticket(user_id, event_id, ticket_type_id, 3)

        # Then
        assert exc_info.value.message == "Only 2 tickets available. Cannot book 3 tickets."
        assert (await reload(TicketType, ticket_type_id)).sold == 0
        assert await _booking_count(session) == 0

    @pytest.mark.parametrize("quantity", [0, -1])
    async def test_quantity_must_be_positive(
        self, quantity, session, make_user, make_event, make_ticket_type
    ):
        # Given
        user = await make_user()
        event = await make_event()
        ticket_type = await make_ticket_type(event)

        # When / Then
        with pytest.raises(ValidationError, match="Quantity must be at least 1"):
            await BookingService(session).book_ticket(user.id, event.id, ticket_type.id, quantity)

    async def test_unknown_ticket_type(self, session, make_user, make_event):
        # Given
        user = await make_user()
        event = await make_event()
        user_id, event_id = user.id, event.id

        # When / Then
        with pytest.raises(TicketTypeNotFoundError):
            await BookingService(session).book_ticket(user_id, event_id, event_id, 1)

    async def test_unknown_event(self, session, make_user, make_event, make_ticket_type):
        # Given
        user = await make_user()
        event = await make_event()
        ticket_type = await make_ticket_type(event)
        user_id, ticket_type_id = user.id, ticket_type.id

        # When / Then
        with pytest.raises(EventNotFoundError):
            await BookingService(session).book_ticket(user_id, user_id, ticket_type_id, 1)

    async def test_unpublished_event_is_not_bookable(
        self, session, make_user, make_event, make_ticket_type
    ):
        # Given
        user = await make_user()
        event = await make_event(is_published=False)
        ticket_type = await make_ticket_type(event)

        # When / Then
        with pytest.raises(ValidationError, match="not available for booking"):
            await BookingService(session).book_ticket(user.id, event.id, ticket_type.id, 1)

    async def test_past_event_is_not_bookable(self, session, make_user, make_event, make_ticket_type):
        # Given
        user = await make_user()
        event = await make_event(starts_in=timedelta(hours=-1))
        ticket_type = await make_ticket_type(event)

        # When / Then
        with pytest.raises(ValidationError, match="Cannot book tickets for past events"):
            await BookingService(session).book_ticket(user.id, event.id, ticket_type.id, 1)

    async def test_ticket_type_must_belong_to_event(
        self, session, make_user, make_event, make_ticket_type, reload
    ):
        # Given
        user = await make_user()
        event = await make_event(title="Jazz Night")
        other_event = await make_event(title="Rock Night")
        foreign_ticket = await make_ticket_type(other_event)
        user_id, event_id, ticket_type_id = user.id, event.id, foreign_ticket.id

        # When
        with pytest.raises(ValidationError, match="does not belong to this event"):
            await BookingService(session).book_ticket(user_id, event_id, ticket_type_id, 1)

        # Then
        assert (await reload(TicketType, ticket_type_id)).sold == 0

    async def test_sales_window_not_open_yet(self, session, make_user, make_event, make_ticket_type):
        # Given
        user = await make_user()
        event = await make_event()
        ticket_type = await make_ticket_type(event, sales_start_date=utc_now() + timedelta(days=1))

        # When / Then
        with pytest.raises(ValidationError, match="Ticket sales have not started yet"):
            await BookingService(session).book_ticket(user.id, event.id, ticket_type.id, 1)

    async def test_sales_window_closed(self, session, make_user, make_event, make_ticket_type):
        # Given
        user = await make_user()
        event = await make_event()
        ticket_type = await make_ticket_type(event, sales_end_date=utc_now() - timedelta(days=1))

        # When / Then
        with pytest.raises(ValidationError, match="Ticket sales have ended"):
            await BookingService(session).book_ticket(user.id, event.id, ticket_type.id, 1)

    async def test_expired_early_bird_charges_original_price(
        self, session, make_user, make_event, make_ticket_type
    ):
        # Given
        user = await make_user()
        event = await make_event()
        ticket_type = await make_ticket_type(
            event,
            price="20.00",
            dynamic_pricing={
                "type": "early_bird",
                "endDate": (utc_now() - timedelta(days=1)).isoformat() + "Z",
                "originalPrice": 30,
            },
        )

        # When
        booking = await BookingService(session).book_ticket(user.id, event.id, ticket_type.id, 2)

        # Then
        assert booking.total_price == Decimal("60.00")


class TestCancelBooking:

    async def test_cancel_returns_tickets_and_counts_waiting_users(
        self, session, make_user, make_event, make_ticket_type
    ):
        # Given
        user = await make_user()
        waiters = [await make_user() for _ in range(3)]
        event = await make_event()
        ticket_type = await make_ticket_type(event, capacity=2)
        service = BookingService(session)
        booking = await service.book_ticket(user.id, event.id, ticket_type.id, 2)
        for waiter in waiters:
            await WaitlistService(session).join(waiter.id, event.id, ticket_type.id)

        # When
        result = await service.cancel_booking(user.id, booking.id)

        # Then
        assert result.booking.status == BookingStatus.CANCELLED
        assert result.booking.cancelled_at is not None
        assert result.booking.ticket_type.sold == 0
        assert result.waitlist_notified == 2

    async def test_cancel_without_waitlist_notifies_nobody(
        self, session, make_user, make_event, make_ticket_type
    ):
        # Given
        user = await make_user()
        event = await make_event()
        ticket_type = await make_ticket_type(event)
        service = BookingService(session)
        booking = await service.book_ticket(user.id, event.id, ticket_type.id, 1)

        # When
        result = await service.cancel_booking(user.id, booking.id)

        # Then
        assert result.waitlist_notified == 0

    async def test_double_cancel_fails_without_touching_ledger(
        self, session, make_user, make_event, make_ticket_type, reload
    ):
        # Given
        user = await make_user()
        event = await make_event()
        ticket_type = await make_ticket_type(event, capacity=10)
        service = BookingService(session)
        await service.book_ticket(user.id, event.id, ticket_type.id, 4)
        booking = await service.book_ticket(user.id, event.id, ticket_type.id, 2)
        user_id, booking_id, ticket_type_id = user.id, booking.id, ticket_type.id
        await service.cancel_booking(user_id, booking_id)

        # When
        with pytest.raises(ValidationError, match="already cancelled"):
            await service.cancel_booking(user_id, booking_id)

        # Then
        assert (await reload(TicketType, ticket_type_id)).sold == 4

    async def test_cannot_cancel_after_event_started(
        self, session, make_user, make_event, make_ticket_type, move_event_start, reload
    ):
        # Given
        user = await make_user()
        event = await make_event()
        ticket_type = await make_ticket_type(event)
        booking = await BookingService(session).book_ticket(user.id, event.id, ticket_type.id, 1)
        user_id, booking_id, ticket_type_id = user.id, booking.id, ticket_type.id
        await move_event_start(event.id, timedelta(minutes=-5))

        # When
        with pytest.raises(ValidationError, match="already started"):
            await BookingService(session).cancel_booking(user_id, booking_id)

        # Then
        assert (await reload(Booking, booking_id)).status == BookingStatus.CONFIRMED
        assert (await reload(TicketType, ticket_type_id)).sold == 1

    async def test_cannot_cancel_someone_elses_booking(
        self, session, make_user, make_event, make_ticket_type
    ):
        # Given
        owner = await make_user()
        stranger = await make_user()
        event = await make_event()
        ticket_type = await make_ticket_type(event)
        booking = await BookingService(session).book_ticket(owner.id, event.id, ticket_type.id, 1)

        # When / Then
        with pytest.raises(BookingNotFoundError):
            await BookingService(session).cancel_booking(stranger.id, booking.id)


class TestMarkAttendance:

    async def test_attendance_after_start(
        self, session, make_user, make_event, make_ticket_type, move_event_start
    ):
        # Given
        user = await make_user()
        event = await make_event()
        ticket_type = await make_ticket_type(event)
        service = BookingService(session)
        booking = await service.book_ticket(user.id, event.id, ticket_type.id, 1)
        await move_event_start(event.id, timedelta(minutes=-5))

        # When
        attended = await service.mark_attendance(user.id, booking.id)

        # Then
        assert attended.status == BookingStatus.ATTENDED
        assert attended.attended_at is not None

    async def test_attendance_before_start_fails(
        self, session, make_user, make_event, make_ticket_type
    ):
        # Given
        user = await make_user()
        event = await make_event()
        ticket_type = await make_ticket_type(event)
        booking = await BookingService(session).book_ticket(user.id, event.id, ticket_type.id, 1)

        # When / Then
        with pytest.raises(ValidationError, match="Event has not started yet"):
            await BookingService(session).mark_attendance(user.id, booking.id)

    async def test_attendance_twice_fails(
        self, session, make_user, make_event, make_ticket_type, move_event_start
    ):
        # Given
        user = await make_user()
        event = await make_event()
        ticket_type = await make_ticket_type(event)
        service = BookingService(session)
        booking = await service.book_ticket(user.id, event.id, ticket_type.id, 1)
        user_id, booking_id = user.id, booking.id
        await move_event_start(event.id, timedelta(minutes=-5))
        await service.mark_attendance(user_id, booking_id)

        # When / Then
        with pytest.raises(InvalidBookingStateError, match="already marked"):
            await service.mark_attendance(user_id, booking_id)

    async def test_cancelled_booking_cannot_be_attended(
        self, session, make_user, make_event, make_ticket_type, move_event_start
    ):
        # Given
        user = await make_user()
        event = await make_event()
        ticket_type = await make_ticket_type(event)
        service = BookingService(session)
        booking = await service.book_ticket(user.id, event.id, ticket_type.id, 1)
        user_id, booking_id = user.id, booking.id
        await service.cancel_booking(user_id, booking_id)
        await move_event_start(event.id, timedelta(minutes=-5))

        # When / Then
        with pytest.raises(ValidationError, match="cancelled booking"):
            await service.mark_attendance(user_id, booking_id)

    async def test_attended_booking_cannot_be_cancelled(
        self, session, make_user, make_event, make_ticket_type, move_event_start, reload
    ):
        # Given
        user = await make_user()
        event = await make_event()
        ticket_type = await make_ticket_type(event)
        service = BookingService(session)
        booking = await service.book_ticket(user.id, event.id, ticket_type.id, 1)
        user_id, booking_id, ticket_type_id = user.id, booking.id, ticket_type.id
        await move_event_start(event.id, timedelta(minutes=-5))
        await service.mark_attendance(user_id, booking_id)

        # When
        with pytest.raises(InvalidBookingStateError):
            await service.cancel_booking(user_id, booking_id)

        # Then
        assert (await reload(TicketType, ticket_type_id)).sold == 1


class TestBookingQueries:

    async def test_user_bookings_are_scoped_and_newest_first(
        self, session, make_user, make_event, make_ticket_type
    ):
        # Given
        user = await make_user()
        other = await make_user()
        event = await make_event()
        ticket_type = await make_ticket_type(event)
        service = BookingService(session)
        first = await service.book_ticket(user.id, event.id, ticket_type.id, 1)
        second = await service.book_ticket(user.id, event.id, ticket_type.id, 2)
        await service.book_ticket(other.id, event.id, ticket_type.id, 1)

        # When
        bookings = await service.get_user_bookings(user.id)

        # Then
        assert {b.id for b in bookings} == {first.id, second.id}
        assert bookings[0].booked_at >= bookings[1].booked_at

    async def test_get_booking_of_other_user_is_not_found(
        self, session, make_user, make_event, make_ticket_type
    ):
        # Given
        owner = await make_user()
        stranger = await make_user()
        event = await make_event()
        ticket_type = await make_ticket_type(event)
        booking = await BookingService(session).book_ticket(owner.id, event.id, ticket_type.id, 1)

        # When / Then
        with pytest.raises(BookingNotFoundError):
            await BookingService(session).get_booking(stranger.id, booking.id)


class TestLockQueries:
    """Row locks are only rendered by dialects that support them, so compile for PostgreSQL."""

    def test_ticket_type_lock_is_for_update(self):
        compiled = str(ticket_type_lock_query(ticket_type_id=None).compile(dialect=postgresql.dialect()))
        assert "FOR UPDATE" in compiled
        assert "ticket_types" in compiled

    def test_booking_lock_is_for_update(self):
        compiled = str(booking_lock_query(user_id=None, booking_id=None).compile(dialect=postgresql.dialect()))
        assert "FOR UPDATE" in compiled
        assert "bookings" in compiled
