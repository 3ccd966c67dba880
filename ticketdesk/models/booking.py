"""
Booking model for ticket purchases.
"""

import enum
import secrets
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional, TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, Integer, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base
from ..utils.clock import utc_now

if TYPE_CHECKING:
    from .user import User
    from .event import Event
    from .ticket_type import TicketType


class BookingStatus(enum.Enum):
    """Booking lifecycle: CONFIRMED -> CANCELLED | ATTENDED, both terminal."""
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    ATTENDED = "attended"


def generate_booking_reference(now: Optional[datetime] = None) -> str:
    """Build a shareable reference such as ``EVT-20261019-3FA9C1``."""
    now = now or utc_now()
    return f"EVT-{now:%Y%m%d}-{secrets.token_hex(3).upper()}"


class Booking(Base):
    """Booking model. Mutated only by cancel and attend operations."""

    __tablename__ = "bookings"

    # Foreign key relationships
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    ticket_type_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("ticket_types.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Booking details
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    total_price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal('0.00')
    )

    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus),
        default=BookingStatus.CONFIRMED,
        nullable=False,
        index=True
    )

    booking_reference: Mapped[str] = mapped_column(
        String(32),
        unique=True,
        nullable=False,
        default=generate_booking_reference
    )

    # Lifecycle timestamps
    booked_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    attended_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="bookings")
    event: Mapped["Event"] = relationship("Event", back_populates="bookings")
    ticket_type: Mapped["TicketType"] = relationship("TicketType", back_populates="bookings")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_bookings_quantity_positive"),
        CheckConstraint("total_price >= 0", name="ck_bookings_total_price_non_negative"),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in (BookingStatus.CANCELLED, BookingStatus.ATTENDED)

    def __repr__(self) -> str:
        """String representation of the booking."""
        return (
            f"<Booking(id={self.id}, reference={self.booking_reference}, "
            f"quantity={self.quantity}, status={self.status.value})>"
        )
