"""
Event model. Capacity is tracked per ticket type.
"""

import uuid
from datetime import datetime
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:
    from .booking import Booking
    from .review import Review
    from .ticket_type import TicketType
    from .waitlist import Waitlist


class Event(Base):
    """Event model owning a set of ticket types."""

    __tablename__ = "events"

    organizer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=True,
        index=True
    )

    # Event basic information
    title: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    location: Mapped[str] = mapped_column(String(255), nullable=False)

    # Event timing (naive UTC)
    start_date_time: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        index=True
    )
    end_date_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_published: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)

    # Relationships
    ticket_types: Mapped[List["TicketType"]] = relationship(
        "TicketType",
        back_populates="event",
        cascade="all, delete-orphan",
        order_by="[TicketType.price, TicketType.name]"
    )

    bookings: Mapped[List["Booking"]] = relationship(
        "Booking",
        back_populates="event",
        cascade="all, delete-orphan"
    )

    waitlist_entries: Mapped[List["Waitlist"]] = relationship(
        "Waitlist",
        back_populates="event",
        cascade="all, delete-orphan"
    )

    reviews: Mapped[List["Review"]] = relationship(
        "Review",
        back_populates="event",
        cascade="all, delete-orphan"
    )

    def has_started(self, now: datetime) -> bool:
        """Check whether the event start lies in the past."""
        return self.start_date_time < now

    def __repr__(self) -> str:
        """String representation of the event."""
        return (
            f"<Event(id={self.id}, title='{self.title}', "
            f"start={self.start_date_time}, published={self.is_published})>"
        )
