"""
TicketType model: the capacity/sold ledger of one purchasable category.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, JSONType

if TYPE_CHECKING:
    from .booking import Booking
    from .event import Event


class TicketType(Base):
    """Ticket category within an event with its own capacity and price."""

    __tablename__ = "ticket_types"

    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal('0.00')
    )

    # Ledger counters
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    sold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Tagged pricing policy, e.g. {"type": "early_bird", "endDate": ..., "originalPrice": ...}
    dynamic_pricing: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType, nullable=True)

    # Optional sales window, either bound may be open
    sales_start_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    sales_end_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Relationships
    event: Mapped["Event"] = relationship("Event", back_populates="ticket_types")

    bookings: Mapped[List["Booking"]] = relationship(
        "Booking",
        back_populates="ticket_type"
    )

    __table_args__ = (
        CheckConstraint("capacity > 0", name="ck_ticket_types_capacity_positive"),
        CheckConstraint("sold >= 0", name="ck_ticket_types_sold_non_negative"),
        CheckConstraint("sold <= capacity", name="ck_ticket_types_sold_within_capacity"),
        CheckConstraint("price >= 0", name="ck_ticket_types_price_non_negative"),
    )

    @property
    def available(self) -> int:
        """Tickets still available for sale."""
        return self.capacity - self.sold

    @property
    def is_sold_out(self) -> bool:
        return self.available <= 0

    def sales_window_error(self, now: datetime) -> Optional[str]:
        """Return a reason when ``now`` lies outside the sales window."""
        if self.sales_start_date and self.sales_start_date > now:
            return "Ticket sales have not started yet"
        if self.sales_end_date and self.sales_end_date < now:
            return "Ticket sales have ended"
        return None

    def __repr__(self) -> str:
        """String representation of the ticket type."""
        return (
            f"<TicketType(id={self.id}, name='{self.name}', "
            f"sold={self.sold}/{self.capacity})>"
        )
