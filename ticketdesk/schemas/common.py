"""
Common schemas for API responses and error handling.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema serialized with camelCase keys; snake_case accepted on input."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ErrorDetail(BaseModel):
    """Schema for detailed error information."""

    error_code: str = Field(..., description="Error code for programmatic handling")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error context")
    suggestions: Optional[List[str]] = Field(None, description="Helpful suggestions for resolving the error")


class ErrorResponse(BaseModel):
    """Schema for API error responses."""

    error: ErrorDetail
    error_id: str
    timestamp: str

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "error": {
                        "error_code": "INSUFFICIENT_CAPACITY",
                        "message": "Only 2 tickets available. Cannot book 3 tickets.",
                        "details": {"requested": 3, "available": 2},
                        "suggestions": ["Try booking fewer tickets", "Join the waitlist"]
                    },
                    "error_id": "3f1c2b7e-0a4d-4f7e-9b7a-1c2d3e4f5a6b",
                    "timestamp": "2026-10-19T12:00:00.000000Z"
                }
            ]
        }
    )


class MessageResponse(CamelModel):
    """Schema for simple message responses."""

    message: str = Field(..., description="Success message")


class PaginationInfo(CamelModel):
    """Schema for pagination information."""

    total: int = Field(..., description="Total number of items")
    page: int = Field(..., description="Current page number")
    limit: int = Field(..., description="Number of items per page")
    total_pages: int = Field(..., description="Total number of pages")
