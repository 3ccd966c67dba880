"""Business logic services for the TicketDesk platform."""

from .booking_service import BookingService, CancellationResult
from .chatbot_service import ChatbotService
from .dynamic_pricing_service import DynamicPricingService
from .event_service import EventService
from .review_service import ReviewService
from .waitlist_service import WaitlistService

__all__ = [
    "BookingService",
    "CancellationResult",
    "ChatbotService",
    "DynamicPricingService",
    "EventService",
    "ReviewService",
    "WaitlistService",
]
