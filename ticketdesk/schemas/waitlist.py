"""
Pydantic schemas for waitlist-related API requests and responses.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import Field

from ..models.waitlist import WaitlistStatus
from .booking import EventSummary, TicketTypeSummary
from .common import CamelModel


class WaitlistJoinRequest(CamelModel):
    """Schema for joining a waitlist."""

    ticket_type_id: Optional[UUID] = Field(None, description="Ticket type to wait for; omit for any")


class WaitlistResponse(CamelModel):
    """Schema for waitlist entry responses."""

    id: UUID
    user_id: UUID
    event_id: UUID
    ticket_type_id: Optional[UUID] = None
    position: int
    status: WaitlistStatus
    joined_at: datetime
    notified_at: Optional[datetime] = None

    event: Optional[EventSummary] = None
    ticket_type: Optional[TicketTypeSummary] = None


class WaitlistJoinResponse(CamelModel):
    """Schema for a successful waitlist join."""

    waitlist: WaitlistResponse
    position: int
    message: str = "Added to waitlist successfully"


class WaitlistLeaveResponse(CamelModel):
    """Schema for leaving a waitlist."""

    message: str = "Removed from waitlist successfully"
    removed: int


class WaitlistListResponse(CamelModel):
    """Schema for a user's waitlist entries."""

    waitlists: List[WaitlistResponse]
    total: int
