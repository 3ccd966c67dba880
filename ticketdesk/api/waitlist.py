"""
FastAPI routes for attendee waitlists.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.user import User
from ..schemas.waitlist import (
    WaitlistJoinRequest,
    WaitlistJoinResponse,
    WaitlistLeaveResponse,
    WaitlistListResponse,
    WaitlistResponse,
)
from ..services.waitlist_service import WaitlistService
from ..utils.dependencies import require_attendee

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/attendee", tags=["waitlist"])


@router.post(
    "/events/{event_id}/waitlist",
    response_model=WaitlistJoinResponse,
    status_code=status.HTTP_201_CREATED
)
async def join_waitlist(
    event_id: UUID,
    request: Optional[WaitlistJoinRequest] = Body(None),
    current_user: User = Depends(require_attendee),
    db: AsyncSession = Depends(get_db)
):
    """
    Join the waitlist of an event.

    - **ticketTypeId**: Optional ticket type; omit to wait for any ticket of the event
    """
    ticket_type_id = request.ticket_type_id if request else None
    entry = await WaitlistService(db).join(current_user.id, event_id, ticket_type_id)

    return WaitlistJoinResponse(
        waitlist=WaitlistResponse.model_validate(entry),
        position=entry.position,
        message=f"Added to waitlist at position {entry.position}"
    )


@router.delete("/events/{event_id}/waitlist", response_model=WaitlistLeaveResponse)
async def leave_waitlist(
    event_id: UUID,
    ticket_type_id: Optional[UUID] = Query(None, alias="ticketTypeId"),
    current_user: User = Depends(require_attendee),
    db: AsyncSession = Depends(get_db)
):
    """Leave the waitlist of an event, for one ticket type or all of them."""
    removed = await WaitlistService(db).leave(current_user.id, event_id, ticket_type_id)
    return WaitlistLeaveResponse(message="Removed from waitlist successfully", removed=removed)


@router.get("/waitlist", response_model=WaitlistListResponse)
async def get_my_waitlists(
    current_user: User = Depends(require_attendee),
    db: AsyncSession = Depends(get_db)
):
    """Get the current user's waitlist entries."""
    entries = await WaitlistService(db).get_user_waitlists(current_user.id)
    return WaitlistListResponse(
        waitlists=[WaitlistResponse.model_validate(entry) for entry in entries],
        total=len(entries)
    )
