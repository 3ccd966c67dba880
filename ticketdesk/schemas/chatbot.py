"""
Pydantic schemas for the conversational booking assistant.

``ConversationState`` is owned by the caller: it is returned with every
reply and must be sent back unchanged on the next turn.
"""

import enum
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import Field

from .common import CamelModel


class ChatIntent(str, enum.Enum):
    BOOKING = "booking"
    SEARCH = "search"
    CANCEL = "cancel"
    INFO = "info"


class BookingStep(str, enum.Enum):
    """Slot-filling steps of the booking dialogue, in order."""
    SELECT_EVENT = "select_event"
    SELECT_TICKET_TYPE = "select_ticket_type"
    SELECT_QUANTITY = "select_quantity"
    CONFIRM_BOOKING = "confirm_booking"


class SearchResultItem(CamelModel):
    """An event (``title``) or ticket type (``name``, ``price``) offered for selection."""

    id: UUID
    title: Optional[str] = None
    name: Optional[str] = None
    price: Optional[float] = None

    @property
    def label(self) -> str:
        return self.title or self.name or ""


class ConversationState(CamelModel):
    """Serializable progress through the booking dialogue."""

    intent: Optional[ChatIntent] = None
    step: Optional[BookingStep] = None
    event_id: Optional[UUID] = None
    event_name: Optional[str] = None
    ticket_type_id: Optional[UUID] = None
    ticket_type_name: Optional[str] = None
    quantity: Optional[int] = None
    total_price: Optional[float] = None
    search_results: List[SearchResultItem] = Field(default_factory=list)


class ChatAction(CamelModel):
    """Navigation hint for the UI."""

    type: str = "navigate"
    label: str
    target: str


class ChatRequest(CamelModel):
    """Schema for one chat turn. Length limits are enforced by the service."""

    message: str
    conversation_history: List[Dict[str, Any]] = Field(default_factory=list)
    conversation_state: Optional[ConversationState] = None


class ChatResponse(CamelModel):
    """Schema for the assistant's reply."""

    message: str
    conversation_state: Optional[ConversationState] = None
    suggestions: List[str] = Field(default_factory=list)
    actions: List[ChatAction] = Field(default_factory=list)


class ChatHealthResponse(CamelModel):
    status: str
    service: str = "chatbot"
