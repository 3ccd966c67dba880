"""
FastAPI routes for attendee reviews.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.user import User
from ..schemas.common import MessageResponse
from ..schemas.review import (
    ReviewCreateRequest,
    ReviewDetailResponse,
    ReviewResponse,
    ReviewUpdateRequest,
)
from ..services.review_service import ReviewService
from ..utils.dependencies import require_attendee

router = APIRouter(prefix="/attendee", tags=["reviews"])


@router.post(
    "/events/{event_id}/reviews",
    response_model=ReviewDetailResponse,
    status_code=status.HTTP_201_CREATED
)
async def create_review(
    event_id: UUID,
    request: ReviewCreateRequest,
    current_user: User = Depends(require_attendee),
    db: AsyncSession = Depends(get_db)
):
    """
    Review an attended event.

    Only users with an attended booking for the event may review it, once.
    """
    review = await ReviewService(db).create_review(
        user_id=current_user.id,
        event_id=event_id,
        rating=request.rating,
        comment=request.comment,
        media_files=request.media_files
    )
    return ReviewDetailResponse(
        review=ReviewResponse.model_validate(review),
        message="Review created successfully"
    )


@router.put("/reviews/{review_id}", response_model=ReviewDetailResponse)
async def update_review(
    review_id: UUID,
    request: ReviewUpdateRequest,
    current_user: User = Depends(require_attendee),
    db: AsyncSession = Depends(get_db)
):
    """Update one of the current user's reviews."""
    review = await ReviewService(db).update_review(
        current_user.id,
        review_id,
        **request.model_dump(exclude_unset=True)
    )
    return ReviewDetailResponse(
        review=ReviewResponse.model_validate(review),
        message="Review updated successfully"
    )


@router.delete("/reviews/{review_id}", response_model=MessageResponse)
async def delete_review(
    review_id: UUID,
    current_user: User = Depends(require_attendee),
    db: AsyncSession = Depends(get_db)
):
    """Delete one of the current user's reviews."""
    await ReviewService(db).delete_review(current_user.id, review_id)
    return MessageResponse(message="Review deleted successfully")
