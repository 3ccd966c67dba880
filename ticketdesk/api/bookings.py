"""
FastAPI routes for attendee bookings.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.user import User
from ..schemas.booking import (
    AttendBookingResponse,
    BookingCreateRequest,
    BookingDetailResponse,
    BookingListResponse,
    BookingResponse,
    CancelBookingResponse,
    CreateBookingResponse,
)
from ..services.booking_service import BookingService
from ..utils.dependencies import require_attendee

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/attendee/bookings", tags=["bookings"])


@router.post("", response_model=CreateBookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    request: BookingCreateRequest,
    current_user: User = Depends(require_attendee),
    db: AsyncSession = Depends(get_db)
):
    """
    Book tickets of one ticket type.

    Availability is checked and the ticket count updated under a row lock
    on the ticket type, so concurrent requests cannot oversell.

    - **eventId**: ID of the event to book
    - **ticketTypeId**: ID of the ticket type
    - **quantity**: Number of tickets (at least 1)
    """
    booking = await BookingService(db).book_ticket(
        user_id=current_user.id,
        event_id=request.event_id,
        ticket_type_id=request.ticket_type_id,
        quantity=request.quantity
    )

    return CreateBookingResponse(
        booking=BookingResponse.model_validate(booking),
        message="Booking created successfully"
    )


@router.get("", response_model=BookingListResponse)
async def get_my_bookings(
    current_user: User = Depends(require_attendee),
    db: AsyncSession = Depends(get_db)
):
    """Get the current user's bookings, newest first."""
    bookings = await BookingService(db).get_user_bookings(current_user.id)

    return BookingListResponse(
        bookings=[BookingResponse.model_validate(booking) for booking in bookings],
        total=len(bookings)
    )


@router.get("/{booking_id}", response_model=BookingDetailResponse)
async def get_booking(
    booking_id: UUID,
    current_user: User = Depends(require_attendee),
    db: AsyncSession = Depends(get_db)
):
    """Get one of the current user's bookings."""
    booking = await BookingService(db).get_booking(current_user.id, booking_id)
    return BookingDetailResponse(booking=BookingResponse.model_validate(booking))


@router.delete("/{booking_id}", response_model=CancelBookingResponse)
async def cancel_booking(
    booking_id: UUID,
    current_user: User = Depends(require_attendee),
    db: AsyncSession = Depends(get_db)
):
    """
    Cancel a booking before its event starts.

    The response reports how many waiting users could take the released
    tickets; nobody is promoted automatically.
    """
    result = await BookingService(db).cancel_booking(current_user.id, booking_id)

    return CancelBookingResponse(
        booking=BookingResponse.model_validate(result.booking),
        message="Booking cancelled successfully",
        waitlist_notified=result.waitlist_notified
    )


@router.post("/{booking_id}/attend", response_model=AttendBookingResponse)
async def mark_attendance(
    booking_id: UUID,
    current_user: User = Depends(require_attendee),
    db: AsyncSession = Depends(get_db)
):
    """Mark a confirmed booking as attended once the event has started."""
    booking = await BookingService(db).mark_attendance(current_user.id, booking_id)
    return AttendBookingResponse(booking=BookingResponse.model_validate(booking))
