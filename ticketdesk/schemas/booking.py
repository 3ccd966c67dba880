"""
Pydantic schemas for booking-related API requests and responses.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import Field

from ..models.booking import BookingStatus
from .common import CamelModel


class BookingCreateRequest(CamelModel):
    """Schema for creating a new booking."""

    event_id: UUID = Field(..., description="ID of the event to book")
    ticket_type_id: UUID = Field(..., description="ID of the ticket type to book")
    quantity: int = Field(..., ge=1, description="Number of tickets to book")


class EventSummary(CamelModel):
    """Event fields embedded in booking and waitlist responses."""

    id: UUID
    title: str
    location: str
    start_date_time: datetime
    end_date_time: Optional[datetime] = None


class TicketTypeSummary(CamelModel):
    """Ticket type fields embedded in booking and waitlist responses."""

    id: UUID
    name: str
    price: float


class BookingResponse(CamelModel):
    """Schema for booking responses."""

    id: UUID
    user_id: UUID
    event_id: UUID
    ticket_type_id: UUID
    quantity: int
    total_price: float
    status: BookingStatus
    booking_reference: str
    booked_at: datetime
    cancelled_at: Optional[datetime] = None
    attended_at: Optional[datetime] = None

    # Related data
    event: Optional[EventSummary] = None
    ticket_type: Optional[TicketTypeSummary] = None


class BookingDetailResponse(CamelModel):
    """Single booking wrapper."""

    booking: BookingResponse


class BookingListResponse(CamelModel):
    """Schema for booking list responses."""

    bookings: List[BookingResponse]
    total: int


class CreateBookingResponse(CamelModel):
    """Response for successful booking creation."""

    booking: BookingResponse
    message: str = "Booking created successfully"


class CancelBookingResponse(CamelModel):
    """Response for successful booking cancellation."""

    booking: BookingResponse
    message: str = "Booking cancelled successfully"
    waitlist_notified: int = Field(0, description="Waiting users that could take the released tickets")


class AttendBookingResponse(CamelModel):
    """Response for marking attendance."""

    booking: BookingResponse
    message: str = "Attendance marked successfully"
