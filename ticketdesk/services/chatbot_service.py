"""
Keyword-driven booking assistant.

Every turn is handled from ``(message, conversation_state, user_id)`` alone;
nothing is kept server-side between turns. The only turn that writes to the
database is a confirmed booking, which goes through ``BookingService``.
"""

import logging
import re
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Union
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..models.event import Event
from ..models.ticket_type import TicketType
from ..schemas.chatbot import (
    BookingStep,
    ChatAction,
    ChatIntent,
    ChatResponse,
    ConversationState,
    SearchResultItem,
)
from ..utils.exceptions import TicketDeskError, ValidationError
from ..utils.logging_config import log_security_event
from .booking_service import BookingService
from .dynamic_pricing_service import DynamicPricingService
from .event_service import EventService

logger = logging.getLogger(__name__)

REFUSAL_MESSAGE = "I can only answer questions about the Event Management System."

INJECTION_PATTERNS = [
    re.compile(r"ignore (previous|above) (instructions|prompts)", re.IGNORECASE),
    re.compile(r"you are now", re.IGNORECASE),
    re.compile(r"new (instructions|role|system)", re.IGNORECASE),
    re.compile(r"forget (everything|all|previous)", re.IGNORECASE),
    re.compile(r"system:|assistant:|user:", re.IGNORECASE),
    re.compile(r"act as|pretend to be", re.IGNORECASE),
]

CANCEL_KEYWORDS = ("cancel booking", "cancel ticket", "cancel reservation")
BOOKING_KEYWORDS = ("book", "buy ticket", "purchase", "reserve", "get ticket", "attend", "book tickets")
SEARCH_KEYWORDS = ("find", "search", "show", "list", "what events", "upcoming", "events", "browse")

NUMBER_PATTERN = re.compile(r"\b(\d+)\b")
DECLINE_PATTERN = re.compile(r"\b(no|nope|cancel|stop)\b", re.IGNORECASE)
CONFIRM_PATTERN = re.compile(r"\b(yes|yep|yeah|confirm|book)\b", re.IGNORECASE)

DEFAULT_SUGGESTIONS = ["Show me events", "Help"]
QUANTITY_SUGGESTIONS = ["1", "2", "4"]
CONFIRM_SUGGESTIONS = ["Yes, book it!", "Cancel"]


def _nav(label: str, target: str) -> ChatAction:
    return ChatAction(type="navigate", label=label, target=target)


def _mentions(text: str, keywords) -> bool:
    return any(keyword in text for keyword in keywords)


def _format_price(value: Union[Decimal, float, int]) -> str:
    amount = float(value)
    if amount == 0:
        return "Free"
    return f"${amount:,.2f}"


class ChatbotService:
    """Conversational front end over event search and booking."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.settings = get_settings()
        self.events = EventService(session)
        self.pricing = DynamicPricingService()

    async def chat(
        self,
        message: str,
        conversation_history: Optional[List[dict]] = None,
        conversation_state: Optional[ConversationState] = None,
        user_id: Optional[UUID] = None
    ) -> ChatResponse:
        """
        Handle one chat turn.

        Args:
            message: The user's message
            conversation_history: Previous turns, accepted for API compatibility
            conversation_state: State returned by the previous turn, if any
            user_id: Authenticated user, or None for anonymous callers

        Returns:
            Reply with the next conversation state, suggestions and actions

        Raises:
            ValidationError: When the message is empty or too long
        """
        if not message or not message.strip():
            raise ValidationError("Message cannot be empty")

        max_length = self.settings.chatbot_max_message_length
        if len(message) > max_length:
            raise ValidationError(f"Message too long. Please keep it under {max_length} characters.")

        if self.contains_prompt_injection(message):
            log_security_event(
                "prompt_injection_refused",
                {"user_id": str(user_id) if user_id else None, "message_length": len(message)}
            )
            return ChatResponse(
                message=REFUSAL_MESSAGE,
                conversation_state=conversation_state,
                suggestions=list(DEFAULT_SUGGESTIONS)
            )

        state = conversation_state
        if state and state.intent == ChatIntent.BOOKING and state.step:
            return await self._continue_booking_flow(message, state, user_id)

        intent = self.detect_intent(message)
        logger.debug(f"Chat intent detected: {intent.value}")

        if intent == ChatIntent.BOOKING:
            return await self._handle_booking_intent(message, user_id)
        if intent == ChatIntent.SEARCH:
            return await self._handle_search_intent()
        if intent == ChatIntent.CANCEL:
            return self._cancellation_help(user_id)

        return self._knowledge_response(message, user_id)

    @staticmethod
    def contains_prompt_injection(message: str) -> bool:
        return any(pattern.search(message) for pattern in INJECTION_PATTERNS)

    @staticmethod
    def detect_intent(message: str) -> ChatIntent:
        """Classify a message by keyword; cancel wins over booking over search."""
        lowered = message.lower()

        if _mentions(lowered, CANCEL_KEYWORDS):
            return ChatIntent.CANCEL
        if _mentions(lowered, BOOKING_KEYWORDS) and "how" not in lowered:
            return ChatIntent.BOOKING
        if _mentions(lowered, SEARCH_KEYWORDS):
            return ChatIntent.SEARCH
        return ChatIntent.INFO

    # Search and event presentation

    async def _handle_search_intent(self) -> ChatResponse:
        try:
            events = await self.events.get_upcoming_events(self.settings.chatbot_search_limit)
        except SQLAlchemyError as e:
            logger.error(f"Failed to load upcoming events for chat: {e}")
            return ChatResponse(
                message="Sorry, I had trouble fetching events.\n\nPlease try again or visit the Events page.",
                suggestions=["Try again", "Help"],
                actions=[_nav("Go to Events", "/events")]
            )

        if not events:
            return ChatResponse(
                message="There are no upcoming events at the moment.\n\nCheck back later or create your own event!",
                suggestions=["Help", "How do I create an event?"],
                actions=[_nav("Browse Events", "/events")]
            )

        lines = ["**Upcoming Events**", ""]
        for index, event in enumerate(events, start=1):
            starts = datetime.fromisoformat(event["start_date_time"])
            lines.append(f"**{index}. {event['title']}**")
            lines.append(f"{starts:%a, %b %d} - {event['location']}")
            lines.append(f"Tickets: {_format_price(event['min_price'])}")
            lines.append("")
        lines.append("Say an event name or number to book!")

        return ChatResponse(
            message="\n".join(lines),
            conversation_state=ConversationState(
                intent=ChatIntent.BOOKING,
                step=BookingStep.SELECT_EVENT,
                search_results=[
                    SearchResultItem(id=event["id"], title=event["title"]) for event in events
                ]
            ),
            suggestions=[event["title"] for event in events[:3]],
            actions=[_nav("View All Events", "/events")]
        )

    async def _handle_booking_intent(self, message: str, user_id: Optional[UUID]) -> ChatResponse:
        if not user_id:
            return ChatResponse(
                message=(
                    "**Login Required**\n\nTo book tickets, you need to be logged in.\n\n"
                    "Please sign in to your account to continue booking."
                ),
                suggestions=["Show me events", "How do I register?"],
                actions=[_nav("Sign In", "/login"), _nav("Create Account", "/register")]
            )

        event = await self.events.find_event_in_message(message)
        if event:
            return self._show_event_for_booking(event)

        return await self._handle_search_intent()

    def _show_event_for_booking(self, event: Event) -> ChatResponse:
        available_tickets = [ticket for ticket in event.ticket_types if ticket.available > 0]

        if not available_tickets:
            return ChatResponse(
                message=f"**{event.title}** is sold out.\n\nWould you like to see other upcoming events?",
                suggestions=list(DEFAULT_SUGGESTIONS),
                actions=[_nav("Browse Events", "/events")]
            )

        prices = {ticket.id: self.pricing.effective_unit_price(ticket) for ticket in available_tickets}

        lines = [
            f"**{event.title}**",
            "",
            f"{event.start_date_time:%A, %B %d, %Y} at {event.start_date_time:%H:%M}",
            event.location,
            "",
            "**Available Tickets:**",
            "",
        ]
        for index, ticket in enumerate(available_tickets, start=1):
            lines.append(f"**{index}. {ticket.name}** - {_format_price(prices[ticket.id])}")
            lines.append(f"   {ticket.available} tickets left")
            lines.append("")
        lines.append("Which ticket type would you like?")

        return ChatResponse(
            message="\n".join(lines),
            conversation_state=ConversationState(
                intent=ChatIntent.BOOKING,
                step=BookingStep.SELECT_TICKET_TYPE,
                event_id=event.id,
                event_name=event.title,
                search_results=[
                    SearchResultItem(id=ticket.id, name=ticket.name, price=float(prices[ticket.id]))
                    for ticket in available_tickets
                ]
            ),
            suggestions=[ticket.name for ticket in available_tickets[:3]]
        )

    # Booking flow

    async def _continue_booking_flow(
        self,
        message: str,
        state: ConversationState,
        user_id: Optional[UUID]
    ) -> ChatResponse:
        if not user_id:
            return ChatResponse(
                message="You need to be logged in to continue booking.",
                suggestions=["Show me events"],
                actions=[_nav("Sign In", "/login")]
            )

        if state.step == BookingStep.SELECT_EVENT:
            return await self._handle_event_selection(message, state)
        if state.step == BookingStep.SELECT_TICKET_TYPE:
            return self._handle_ticket_type_selection(message, state)
        if state.step == BookingStep.SELECT_QUANTITY:
            return await self._handle_quantity_selection(message, state)
        return await self._handle_booking_confirmation(message, state, user_id)

    @staticmethod
    def _resolve_choice(message: str, options: List[SearchResultItem]) -> Optional[SearchResultItem]:
        """Pick an option by 1-based number, else by case-insensitive name."""
        number = NUMBER_PATTERN.search(message)
        if number:
            index = int(number.group(1)) - 1
            if 0 <= index < len(options):
                return options[index]

        lowered = message.lower()
        named = [option for option in options if option.label and option.label.lower() in lowered]
        if named:
            return max(named, key=lambda option: len(option.label))
        return None

    async def _handle_event_selection(self, message: str, state: ConversationState) -> ChatResponse:
        choice = self._resolve_choice(message, state.search_results)
        if choice:
            event = await self.events.get_event_with_ticket_types(choice.id)
            if event:
                return self._show_event_for_booking(event)

        return ChatResponse(
            message="I couldn't find that event.\n\nPlease say the event name or number from the list.",
            conversation_state=state,
            suggestions=[item.label for item in state.search_results[:3]]
        )

    def _handle_ticket_type_selection(self, message: str, state: ConversationState) -> ChatResponse:
        choice = self._resolve_choice(message, state.search_results)
        if not choice:
            return ChatResponse(
                message="I couldn't find that ticket type.\n\nPlease say the ticket name or number.",
                conversation_state=state,
                suggestions=[item.label for item in state.search_results[:3]]
            )

        price_text = _format_price(choice.price or 0)
        return ChatResponse(
            message=(
                f"**{choice.name}** selected ({price_text} each)\n\n"
                f"How many tickets would you like?\n\n"
                f"(Enter a number from 1-{self.settings.max_booking_quantity})"
            ),
            conversation_state=state.model_copy(update={
                "step": BookingStep.SELECT_QUANTITY,
                "ticket_type_id": choice.id,
                "ticket_type_name": choice.name,
            }),
            suggestions=list(QUANTITY_SUGGESTIONS)
        )

    async def _handle_quantity_selection(self, message: str, state: ConversationState) -> ChatResponse:
        max_quantity = self.settings.max_booking_quantity
        number = NUMBER_PATTERN.search(message)
        if not number:
            return ChatResponse(
                message=f"Please enter a number (1-{max_quantity}) for how many tickets you want.",
                conversation_state=state,
                suggestions=list(QUANTITY_SUGGESTIONS)
            )

        quantity = int(number.group(1))
        if quantity < 1 or quantity > max_quantity:
            return ChatResponse(
                message=f"Please select between 1 and {max_quantity} tickets.",
                conversation_state=state,
                suggestions=list(QUANTITY_SUGGESTIONS)
            )

        ticket_type = None
        if state.ticket_type_id:
            ticket_type = await self.session.get(TicketType, state.ticket_type_id, populate_existing=True)
        if not ticket_type:
            return ChatResponse(
                message="That ticket type is no longer available.",
                suggestions=["Show me events"]
            )

        available = ticket_type.available
        if quantity > available:
            return ChatResponse(
                message=f"Only {available} tickets available. Please choose fewer.",
                conversation_state=state,
                suggestions=[str(n) for n in range(1, min(available, 2) + 1)] or ["Show me events"]
            )

        total_price = self.pricing.total_price(ticket_type, quantity)
        total_text = "Free!" if total_price == 0 else _format_price(total_price)

        return ChatResponse(
            message=(
                "**Booking Summary**\n\n"
                f"**Event:** {state.event_name}\n"
                f"**Ticket:** {state.ticket_type_name}\n"
                f"**Quantity:** {quantity}\n"
                f"**Total:** {total_text}\n\n"
                "Ready to confirm?"
            ),
            conversation_state=state.model_copy(update={
                "step": BookingStep.CONFIRM_BOOKING,
                "quantity": quantity,
                "total_price": float(total_price),
            }),
            suggestions=list(CONFIRM_SUGGESTIONS)
        )

    async def _handle_booking_confirmation(
        self,
        message: str,
        state: ConversationState,
        user_id: UUID
    ) -> ChatResponse:
        if DECLINE_PATTERN.search(message):
            return ChatResponse(
                message="No problem! Booking cancelled.\n\nWhat else can I help you with?",
                suggestions=list(DEFAULT_SUGGESTIONS)
            )

        if not CONFIRM_PATTERN.search(message):
            return ChatResponse(
                message="Would you like to confirm this booking?",
                conversation_state=state,
                suggestions=list(CONFIRM_SUGGESTIONS)
            )

        if not (state.event_id and state.ticket_type_id and state.quantity):
            return ChatResponse(
                message="Something is missing from this booking. Let's start again.",
                suggestions=list(DEFAULT_SUGGESTIONS)
            )

        try:
            booking = await BookingService(self.session).book_ticket(
                user_id=user_id,
                event_id=state.event_id,
                ticket_type_id=state.ticket_type_id,
                quantity=state.quantity
            )
        except (TicketDeskError, SQLAlchemyError) as e:
            reason = e.message if isinstance(e, TicketDeskError) else "Please try again."
            logger.warning(f"Chat booking failed for user {user_id}: {e}")
            return ChatResponse(
                message=(
                    f"**Booking Failed**\n\n{reason}\n\n"
                    "You can also book directly from the event page."
                ),
                suggestions=["Try again", "Show me events"],
                actions=[_nav("Go to Events", "/events")]
            )

        return ChatResponse(
            message=(
                "**Booking Confirmed!**\n\n"
                f"Your tickets for **{state.event_name}** are booked!\n\n"
                f"**Reference:** {booking.booking_reference}\n\n"
                'You can view your booking in "My Bookings".\n\n'
                "Anything else I can help with?"
            ),
            suggestions=list(DEFAULT_SUGGESTIONS),
            actions=[_nav("View My Bookings", "/bookings")]
        )

    # Knowledge base

    def _cancellation_help(self, user_id: Optional[UUID]) -> ChatResponse:
        if not user_id:
            return ChatResponse(
                message="You need to be logged in to manage bookings.",
                actions=[_nav("Sign In", "/login")]
            )
        return ChatResponse(
            message=(
                "**Cancel a Booking**\n\nTo cancel a booking:\n\n"
                '1. Go to "My Bookings"\n2. Find your booking\n3. Click "Cancel Booking"\n\n'
                "Bookings can be cancelled until the event starts."
            ),
            suggestions=list(DEFAULT_SUGGESTIONS),
            actions=[_nav("My Bookings", "/bookings")]
        )

    def _knowledge_response(self, message: str, user_id: Optional[UUID]) -> ChatResponse:
        lowered = message.lower()

        if _mentions(lowered, ("hello", "hi", "hey", "hola", "greetings")):
            return ChatResponse(
                message=(
                    "Hello! I'm your event assistant.\n\nI can help you:\n"
                    "- Book tickets\n- Find events\n- Answer questions\n\nWhat would you like to do?"
                ),
                suggestions=["Show me events", "Book tickets", "Help"]
            )

        if _mentions(lowered, ("help", "what can you do", "commands", "options")):
            return ChatResponse(
                message=(
                    "**I can help you with:**\n\n"
                    '**Booking** - "Book tickets" or "I want to attend"\n'
                    '**Search** - "Show me events" or "Find concerts"\n'
                    '**Cancel** - "Cancel my booking"\n'
                    "**Questions** - Ask me anything!"
                ),
                suggestions=["Show me events", "Book tickets", "How do I register?"]
            )

        if _mentions(lowered, ("register", "sign up", "create account", "new account")):
            return ChatResponse(
                message=(
                    "**How to Create an Account**\n\n"
                    '1. Click "Create Account" below\n2. Choose your role (Attendee or Organizer)\n'
                    "3. Fill in your details\n4. You're ready to book events!"
                ),
                suggestions=list(DEFAULT_SUGGESTIONS),
                actions=[_nav("Create Account", "/register"), _nav("Sign In", "/login")]
            )

        if _mentions(lowered, ("login", "log in", "sign in", "signin")):
            return ChatResponse(
                message=(
                    "**Sign In**\n\nClick below to sign in to your account.\n\n"
                    "Forgot your password? Use the reset option on the login page."
                ),
                suggestions=["Show me events", "How do I register?"],
                actions=[_nav("Sign In", "/login")]
            )

        if _mentions(lowered, ("cancel", "cancellation")) and _mentions(lowered, ("booking", "ticket", "reservation")):
            return self._cancellation_help(user_id)

        if _mentions(lowered, ("create event", "organize", "host event", "make event")):
            return ChatResponse(
                message=(
                    "**Create an Event**\n\n1. Sign up as an Organizer\n2. Go to your Dashboard\n"
                    '3. Click "Create Event"\n4. Add ticket types, set capacity and publish!'
                ),
                suggestions=["Show me events", "How do I register?"],
                actions=[_nav("Go to Dashboard", "/dashboard")] if user_id else [_nav("Sign In", "/login")]
            )

        if _mentions(lowered, ("my booking", "my ticket", "my reservation", "booked")):
            if not user_id:
                return ChatResponse(
                    message="Sign in to view your bookings.",
                    actions=[_nav("Sign In", "/login")]
                )
            return ChatResponse(
                message='**Your Bookings**\n\nView all your tickets and booking history in "My Bookings".',
                suggestions=list(DEFAULT_SUGGESTIONS),
                actions=[_nav("View My Bookings", "/bookings")]
            )

        if _mentions(lowered, ("thank", "thx", "awesome", "great")):
            return ChatResponse(
                message="You're welcome! Happy to help.\n\nAnything else you'd like to know?",
                suggestions=list(DEFAULT_SUGGESTIONS)
            )

        return ChatResponse(
            message=(
                "I'm not sure about that.\n\nI can help you with:\n"
                "- Finding and booking events\n- Creating an account\n- Managing your bookings"
            ),
            suggestions=["Show me events", "Book tickets", "Help"],
            actions=[_nav("Browse Events", "/events")]
        )
