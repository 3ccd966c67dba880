"""
Review model. One review per (user, event), attendees only.
"""

import uuid
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Integer, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, JSONType

if TYPE_CHECKING:
    from .user import User
    from .event import Event


class Review(Base):
    """A verified attendee's rating of an event."""

    __tablename__ = "reviews"

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

    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    media_files: Mapped[Optional[List[str]]] = mapped_column(JSONType, nullable=True)

    is_verified_attendee: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="reviews")
    event: Mapped["Event"] = relationship("Event", back_populates="reviews")

    __table_args__ = (
        UniqueConstraint("user_id", "event_id", name="uq_reviews_user_event"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_reviews_rating_range"),
    )

    def __repr__(self) -> str:
        """String representation of the review."""
        return f"<Review(id={self.id}, event_id={self.event_id}, rating={self.rating})>"
