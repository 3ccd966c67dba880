"""
Review service gating reviews on attended bookings.
"""

import logging
import math
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select, func, desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..cache import CacheKeyBuilder, CacheTTL, get_cache
from ..config import get_settings
from ..models.booking import Booking, BookingStatus
from ..models.event import Event
from ..models.review import Review
from ..utils.exceptions import (
    AlreadyReviewedError,
    EventNotFoundError,
    NotAttendedError,
    ReviewNotFoundError,
    ValidationError,
)
from ..utils.logging_config import log_business_event

logger = logging.getLogger(__name__)

_UNSET = object()


class ReviewService:
    """Service for event reviews."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.settings = get_settings()
        self.cache = get_cache()

    async def create_review(
        self,
        user_id: UUID,
        event_id: UUID,
        rating: int,
        comment: Optional[str] = None,
        media_files: Optional[List[str]] = None
    ) -> Review:
        """
        Create a review for an event the user attended.

        Raises:
            ValidationError: When rating or comment is out of range
            AlreadyReviewedError: When the user already reviewed the event
            NotAttendedError: When the user has no attended booking for the event
        """
        self._validate_rating(rating)
        self._validate_comment(comment)

        try:
            existing = await self.session.execute(
                select(Review.id).where(Review.user_id == user_id, Review.event_id == event_id)
            )
            if existing.first():
                raise AlreadyReviewedError(str(event_id))

            attended = await self.session.execute(
                select(Booking.id).where(
                    Booking.user_id == user_id,
                    Booking.event_id == event_id,
                    Booking.status == BookingStatus.ATTENDED
                ).limit(1)
            )
            if not attended.first():
                raise NotAttendedError(str(event_id))

            review = Review(
                user_id=user_id,
                event_id=event_id,
                rating=rating,
                comment=comment,
                media_files=media_files,
                is_verified_attendee=True
            )
            self.session.add(review)
            await self.session.flush()
            await self.session.commit()

        except IntegrityError:
            await self.session.rollback()
            raise AlreadyReviewedError(str(event_id))
        except Exception:
            await self.session.rollback()
            raise

        await self.cache.delete_pattern(CacheKeyBuilder.event_reviews_pattern(str(event_id)))
        log_business_event(
            "review_created",
            {"review_id": str(review.id), "event_id": str(event_id), "rating": rating},
            user_id=str(user_id)
        )

        return await self._get_review_with_user(review.id)

    async def update_review(
        self,
        user_id: UUID,
        review_id: UUID,
        rating: Any = _UNSET,
        comment: Any = _UNSET,
        media_files: Any = _UNSET
    ) -> Review:
        """Update fields of a review owned by the user. Omitted fields are kept."""
        try:
            review = await self._get_owned_review(user_id, review_id)

            if rating is not _UNSET and rating is not None:
                self._validate_rating(rating)
                review.rating = rating
            if comment is not _UNSET:
                self._validate_comment(comment)
                review.comment = comment
            if media_files is not _UNSET:
                review.media_files = media_files

            await self.session.flush()
            await self.session.commit()

        except Exception:
            await self.session.rollback()
            raise

        await self.cache.delete_pattern(CacheKeyBuilder.event_reviews_pattern(str(review.event_id)))
        return await self._get_review_with_user(review.id)

    async def delete_review(self, user_id: UUID, review_id: UUID) -> None:
        """Delete a review owned by the user."""
        try:
            review = await self._get_owned_review(user_id, review_id)
            event_id = review.event_id
            await self.session.delete(review)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        await self.cache.delete_pattern(CacheKeyBuilder.event_reviews_pattern(str(event_id)))
        logger.info(f"Review {review_id} deleted by user {user_id}")

    async def get_event_reviews(self, event_id: UUID, page: int = 1, limit: int = 10) -> Dict[str, Any]:
        """
        Get one page of an event's reviews, newest first.

        The average rating covers every review of the event, not only the
        returned page.

        Returns:
            Dictionary with ``reviews``, ``pagination`` and ``average_rating``
        """
        cache_key = CacheKeyBuilder.event_reviews(str(event_id), page, limit)
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return cached

        event = await self.session.get(Event, event_id)
        if not event:
            raise EventNotFoundError(str(event_id))

        stats = await self.session.execute(
            select(func.count(Review.id), func.avg(Review.rating)).where(Review.event_id == event_id)
        )
        total, average = stats.one()

        result = await self.session.execute(
            select(Review)
            .options(selectinload(Review.user))
            .where(Review.event_id == event_id)
            .order_by(desc(Review.created_at))
            .offset((page - 1) * limit)
            .limit(limit)
        )
        reviews = result.scalars().all()

        payload = {
            "reviews": [self._serialize_review(review) for review in reviews],
            "pagination": {
                "total": total,
                "page": page,
                "limit": limit,
                "total_pages": math.ceil(total / limit) if limit else 0,
            },
            "average_rating": round(float(average), 2) if average is not None else 0.0,
        }

        await self.cache.set(cache_key, payload, ttl=CacheTTL.EVENT_REVIEWS)
        return payload

    def _validate_rating(self, rating: Any) -> None:
        if not isinstance(rating, int) or isinstance(rating, bool) or rating < 1 or rating > 5:
            raise ValidationError(
                "Rating must be between 1 and 5",
                field_errors={"rating": ["Rating must be between 1 and 5"]}
            )

    def _validate_comment(self, comment: Optional[str]) -> None:
        max_length = self.settings.max_review_comment_length
        if comment and len(comment) > max_length:
            raise ValidationError(
                f"Comment must not exceed {max_length} characters",
                field_errors={"comment": [f"Comment must not exceed {max_length} characters"]}
            )

    async def _get_owned_review(self, user_id: UUID, review_id: UUID) -> Review:
        result = await self.session.execute(
            select(Review).where(Review.id == review_id, Review.user_id == user_id)
        )
        review = result.scalar_one_or_none()
        if not review:
            raise ReviewNotFoundError(str(review_id))
        return review

    async def _get_review_with_user(self, review_id: UUID) -> Review:
        result = await self.session.execute(
            select(Review)
            .options(selectinload(Review.user))
            .where(Review.id == review_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    @staticmethod
    def _serialize_review(review: Review) -> Dict[str, Any]:
        return {
            "id": str(review.id),
            "event_id": str(review.event_id),
            "rating": review.rating,
            "comment": review.comment,
            "media_files": review.media_files,
            "is_verified_attendee": review.is_verified_attendee,
            "user": {
                "id": str(review.user.id),
                "first_name": review.user.first_name,
                "last_name": review.user.last_name,
            },
            "created_at": review.created_at.isoformat() if review.created_at else None,
            "updated_at": review.updated_at.isoformat() if review.updated_at else None,
        }
