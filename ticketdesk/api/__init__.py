"""API endpoints for the TicketDesk platform."""

from fastapi import APIRouter
from .bookings import router as bookings_router
from .reviews import router as reviews_router
from .waitlist import router as waitlist_router
from .events import router as events_router
from .chatbot import router as chatbot_router

# Create main API router
api_router = APIRouter(prefix="/api")

# Include all routers
api_router.include_router(bookings_router)
api_router.include_router(reviews_router)
api_router.include_router(waitlist_router)
api_router.include_router(events_router)
api_router.include_router(chatbot_router)

__all__ = ["api_router"]
