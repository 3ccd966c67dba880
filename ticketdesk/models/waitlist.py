"""
Waitlist model for users waiting on sold-out ticket types.
"""

import enum
import uuid
from datetime import datetime
from typing import Optional, TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, Integer, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base
from ..utils.clock import utc_now

if TYPE_CHECKING:
    from .user import User
    from .event import Event
    from .ticket_type import TicketType


class WaitlistStatus(enum.Enum):
    """Enumeration for waitlist status."""
    WAITING = "waiting"
    NOTIFIED = "notified"
    CONVERTED = "converted"
    EXPIRED = "expired"


class Waitlist(Base):
    """One user's place in the queue of an (event, ticket type) group."""

    __tablename__ = "waitlists"

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

    # NULL means "any ticket type of the event"
    ticket_type_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("ticket_types.id", ondelete="CASCADE"),
        nullable=True,
        index=True
    )

    position: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    status: Mapped[WaitlistStatus] = mapped_column(
        Enum(WaitlistStatus),
        default=WaitlistStatus.WAITING,
        nullable=False,
        index=True
    )

    joined_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    notified_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="waitlist_entries")
    event: Mapped["Event"] = relationship("Event", back_populates="waitlist_entries")
    ticket_type: Mapped[Optional["TicketType"]] = relationship("TicketType")

    __table_args__ = (
        UniqueConstraint(
            "user_id", "event_id", "ticket_type_id",
            name="uq_waitlists_user_event_ticket_type"
        ),
        CheckConstraint("position > 0", name="ck_waitlists_position_positive"),
    )

    @property
    def is_waiting(self) -> bool:
        return self.status == WaitlistStatus.WAITING

    def __repr__(self) -> str:
        """String representation of the waitlist entry."""
        return (
            f"<Waitlist(id={self.id}, user_id={self.user_id}, "
            f"event_id={self.event_id}, position={self.position}, status={self.status.value})>"
        )
