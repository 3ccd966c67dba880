"""
Custom exceptions for the TicketDesk platform.
"""

from typing import Any, Dict, Optional, List
from enum import Enum


class ErrorCode(str, Enum):
    """Standard error codes for the platform."""

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    CONFLICT = "CONFLICT"

    # Business logic errors
    INSUFFICIENT_CAPACITY = "INSUFFICIENT_CAPACITY"
    INVALID_BOOKING_STATE = "INVALID_BOOKING_STATE"
    NOT_ATTENDED = "NOT_ATTENDED"
    ALREADY_REVIEWED = "ALREADY_REVIEWED"
    ALREADY_ON_WAITLIST = "ALREADY_ON_WAITLIST"

    # External service errors
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"


class TicketDeskError(Exception):
    """Base exception class for the TicketDesk platform."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
    ):
        """Initialize the exception with comprehensive error information."""
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.suggestions = suggestions or []
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        result = {
            "error_code": self.error_code.value,
            "message": self.message,
        }

        if self.details:
            result["details"] = self.details

        if self.suggestions:
            result["suggestions"] = self.suggestions

        return result


class ValidationError(TicketDeskError):
    """Exception raised for malformed or out-of-policy input."""

    def __init__(
        self,
        message: str,
        field_errors: Optional[Dict[str, List[str]]] = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_ERROR,
        details: Optional[Dict[str, Any]] = None,
        **kwargs
    ):
        if field_errors:
            details = {**(details or {}), "field_errors": field_errors}
        super().__init__(message, error_code=error_code, details=details, **kwargs)
        self.field_errors = field_errors or {}


class NotFoundError(TicketDeskError):
    """Base exception for resource not found errors."""

    def __init__(self, message: str, resource_type: Optional[str] = None, resource_id: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": resource_id} if resource_type else None,
            **kwargs
        )


class EventNotFoundError(NotFoundError):
    """Exception raised when an event is not found."""

    def __init__(self, event_id: str, **kwargs):
        super().__init__(
            "Event not found",
            resource_type="event",
            resource_id=str(event_id),
            suggestions=["Check the event ID", "Browse available events"],
            **kwargs
        )


class TicketTypeNotFoundError(NotFoundError):
    """Exception raised when a ticket type is not found."""

    def __init__(self, ticket_type_id: str, **kwargs):
        super().__init__(
            "Ticket type not found",
            resource_type="ticket_type",
            resource_id=str(ticket_type_id),
            **kwargs
        )


class BookingNotFoundError(NotFoundError):
    """Exception raised when a booking is not found or not owned by the caller."""

    def __init__(self, booking_id: str, **kwargs):
        super().__init__(
            "Booking not found",
            resource_type="booking",
            resource_id=str(booking_id),
            suggestions=["Check the booking ID", "View your bookings"],
            **kwargs
        )


class ReviewNotFoundError(NotFoundError):
    """Exception raised when a review is not found or not owned by the caller."""

    def __init__(self, review_id: str, **kwargs):
        super().__init__(
            "Review not found or you do not have permission",
            resource_type="review",
            resource_id=str(review_id),
            **kwargs
        )


class WaitlistEntryNotFoundError(NotFoundError):
    """Exception raised when the caller has no matching waitlist entry."""

    def __init__(self, event_id: str, **kwargs):
        super().__init__(
            "Waitlist entry not found",
            resource_type="waitlist",
            resource_id=str(event_id),
            **kwargs
        )


class UnauthorizedError(TicketDeskError):
    """Exception raised for authentication failures."""

    def __init__(self, message: str = "Authentication failed", **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.UNAUTHORIZED,
            suggestions=["Check your credentials", "Login again"],
            **kwargs
        )


class ForbiddenError(TicketDeskError):
    """Exception raised when an authenticated user is not entitled to an action."""

    def __init__(
        self,
        message: str = "Access denied",
        required_permission: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.FORBIDDEN,
        **kwargs
    ):
        super().__init__(
            message,
            error_code=error_code,
            details={"required_permission": required_permission} if required_permission else None,
            **kwargs
        )


class ConflictError(TicketDeskError):
    """Exception raised for uniqueness violations."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.CONFLICT, **kwargs):
        super().__init__(message, error_code=error_code, **kwargs)


class InsufficientCapacityError(ValidationError):
    """Exception raised when a ticket type cannot cover the requested quantity."""

    def __init__(self, requested: int, available: int, ticket_type_id: Optional[str] = None, **kwargs):
        super().__init__(
            f"Only {available} tickets available. Cannot book {requested} tickets.",
            error_code=ErrorCode.INSUFFICIENT_CAPACITY,
            details={
                "requested": requested,
                "available": available,
                "ticket_type_id": ticket_type_id,
            },
            suggestions=["Try booking fewer tickets", "Join the waitlist"],
            **kwargs
        )
        self.requested = requested
        self.available = available


class InvalidBookingStateError(ValidationError):
    """Exception raised when a booking is in the wrong state for an operation."""

    def __init__(self, message: str, booking_id: str, current_state: str, **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.INVALID_BOOKING_STATE,
            details={"booking_id": str(booking_id), "current_state": current_state},
            **kwargs
        )


class NotAttendedError(ForbiddenError):
    """Exception raised when reviewing an event without an attended booking."""

    def __init__(self, event_id: str, **kwargs):
        super().__init__(
            "You can only review events you have attended. Please mark your attendance first.",
            error_code=ErrorCode.NOT_ATTENDED,
            **kwargs
        )
        self.details = {"event_id": str(event_id)}


class AlreadyReviewedError(ConflictError):
    """Exception raised when a user reviews the same event twice."""

    def __init__(self, event_id: str, **kwargs):
        super().__init__(
            "You have already reviewed this event",
            error_code=ErrorCode.ALREADY_REVIEWED,
            details={"event_id": str(event_id)},
            suggestions=["Update your existing review instead"],
            **kwargs
        )


class AlreadyOnWaitlistError(ConflictError):
    """Exception raised when a user joins the same waitlist twice."""

    def __init__(self, event_id: str, **kwargs):
        super().__init__(
            "You are already on the waitlist for this event/ticket",
            error_code=ErrorCode.ALREADY_ON_WAITLIST,
            details={"event_id": str(event_id)},
            **kwargs
        )


class ExternalServiceError(TicketDeskError):
    """Exception raised for external service failures."""

    def __init__(self, service_name: str, message: str, **kwargs):
        super().__init__(
            f"{service_name} service error: {message}",
            error_code=ErrorCode.EXTERNAL_SERVICE_ERROR,
            details={"service_name": service_name},
            suggestions=["Try again later", "Contact support if problem persists"],
            **kwargs
        )
