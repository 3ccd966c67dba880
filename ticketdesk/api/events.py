"""
Public event routes.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..schemas.review import EventReviewsResponse
from ..services.review_service import ReviewService

router = APIRouter(prefix="/events", tags=["events"])


@router.get("/{event_id}/reviews", response_model=EventReviewsResponse)
async def get_event_reviews(
    event_id: UUID,
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(10, ge=1, le=100, description="Reviews per page"),
    db: AsyncSession = Depends(get_db)
):
    """Get an event's reviews, newest first, with the average rating of all reviews."""
    payload = await ReviewService(db).get_event_reviews(event_id, page=page, limit=limit)
    return EventReviewsResponse.model_validate(payload)
