"""
Pydantic schemas for review-related API requests and responses.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import Field

from .common import CamelModel, PaginationInfo


class ReviewCreateRequest(CamelModel):
    """Schema for creating a review. Range checks are enforced by the service."""

    rating: int = Field(..., description="Rating from 1 to 5")
    comment: Optional[str] = Field(None, description="Free-text comment")
    media_files: Optional[List[str]] = Field(None, description="Attached media URLs")


class ReviewUpdateRequest(CamelModel):
    """Schema for updating a review; omitted fields are left unchanged."""

    rating: Optional[int] = None
    comment: Optional[str] = None
    media_files: Optional[List[str]] = None


class ReviewerInfo(CamelModel):
    id: UUID
    first_name: str
    last_name: str


class ReviewResponse(CamelModel):
    """Schema for review responses."""

    id: UUID
    event_id: UUID
    rating: int
    comment: Optional[str] = None
    media_files: Optional[List[str]] = None
    is_verified_attendee: bool
    user: Optional[ReviewerInfo] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ReviewDetailResponse(CamelModel):
    """Single review wrapper with a status message."""

    review: ReviewResponse
    message: str


class EventReviewsResponse(CamelModel):
    """One page of an event's reviews with the overall average."""

    reviews: List[ReviewResponse]
    pagination: PaginationInfo
    average_rating: float
