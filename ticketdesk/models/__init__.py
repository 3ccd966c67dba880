"""
Database models for the TicketDesk platform.
"""

from .base import Base
from .user import User, UserRole, UserStatus
from .event import Event
from .ticket_type import TicketType
from .booking import Booking, BookingStatus, generate_booking_reference
from .waitlist import Waitlist, WaitlistStatus
from .review import Review

__all__ = [
    "Base",
    "User",
    "UserRole",
    "UserStatus",
    "Event",
    "TicketType",
    "Booking",
    "BookingStatus",
    "generate_booking_reference",
    "Waitlist",
    "WaitlistStatus",
    "Review",
]
