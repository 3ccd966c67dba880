"""FastAPI application setup and configuration."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from ticketdesk.config import settings
from ticketdesk.api import api_router
from ticketdesk.database import init_database, close_database
from ticketdesk.middleware import (
    ErrorHandlerMiddleware,
    LoggingMiddleware,
    request_validation_exception_handler,
)
from ticketdesk.utils.logging_config import setup_logging

# Set up logging
setup_logging(
    log_level="DEBUG" if settings.debug else settings.log_level,
    log_file=settings.log_file or ("logs/ticketdesk.log" if settings.environment == "production" else None),
    enable_json_logging=settings.enable_json_logging or settings.environment == "production",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    logger.info("Starting TicketDesk")
    await init_database()
    yield
    logger.info("Shutting down TicketDesk")
    await close_database()


app = FastAPI(
    title="TicketDesk API",
    description="""
    ## TicketDesk

    Event ticketing with concurrency-safe booking and a conversational booking assistant.

    ### Key Features

    * **Ticket Booking**: Per-ticket-type inventory guarded by row locks, so tickets are never oversold
    * **Waitlists**: Queue for sold-out events or ticket types
    * **Reviews**: Verified-attendee reviews with average ratings
    * **Booking Assistant**: Multi-turn chat that searches events and books tickets

    ### Authentication

    Protected endpoints expect `Authorization: Bearer <access_token>`.
    Booking, review and waitlist endpoints require the attendee role.

    ### Error Handling

    Errors share one envelope:

    ```json
    {
      "error": {
        "error_code": "INSUFFICIENT_CAPACITY",
        "message": "Only 2 tickets available. Cannot book 3 tickets.",
        "details": {"requested": 3, "available": 2},
        "suggestions": ["Try booking fewer tickets"]
      },
      "error_id": "...",
      "timestamp": "..."
    }
    ```
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {
            "name": "bookings",
            "description": "Ticket booking, cancellation and attendance"
        },
        {
            "name": "reviews",
            "description": "Reviews of attended events"
        },
        {
            "name": "waitlist",
            "description": "Waitlists for sold-out events"
        },
        {
            "name": "events",
            "description": "Public event information"
        },
        {
            "name": "chatbot",
            "description": "Conversational booking assistant"
        },
        {
            "name": "health",
            "description": "Liveness endpoints"
        }
    ],
    lifespan=lifespan,
)

# Middleware order: the last added runs first

# 1. Error handling middleware (innermost, catches route and dependency errors)
app.add_middleware(
    ErrorHandlerMiddleware,
    debug=settings.debug
)

# 2. Logging middleware (wraps error responses so they are logged with a request ID)
app.add_middleware(LoggingMiddleware)

# 3. CORS middleware
if settings.debug:
    cors_origins = ["*"]
    cors_allow_credentials = False  # Cannot use credentials with wildcard origins
else:
    cors_origins = settings.cors_origins
    cors_allow_credentials = settings.cors_allow_credentials

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
    expose_headers=settings.cors_expose_headers
)

app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

# Include API routes
app.include_router(api_router)


@app.get("/", tags=["health"])
async def root():
    """Root endpoint with basic API information."""
    return {
        "message": "TicketDesk API",
        "version": "1.0.0",
        "docs_url": "/docs",
        "status": "operational"
    }


@app.get("/health", tags=["health"])
async def health_check():
    """Basic health check endpoint for uptime monitoring."""
    return {"status": "healthy", "service": "ticketdesk"}
