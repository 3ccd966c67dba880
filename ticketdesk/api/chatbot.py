"""
Routes for the conversational booking assistant.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.user import User
from ..schemas.chatbot import ChatHealthResponse, ChatRequest, ChatResponse
from ..services.chatbot_service import ChatbotService
from ..utils.dependencies import get_optional_user

router = APIRouter(prefix="/chatbot", tags=["chatbot"])


@router.post("/chat", response_model=ChatResponse)
async def chat(
    request: ChatRequest,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Handle one chat turn.

    The caller must send back the ``conversationState`` of the previous
    reply; no conversation is stored server-side. Anonymous callers can
    search but are asked to sign in before booking.
    """
    return await ChatbotService(db).chat(
        message=request.message,
        conversation_history=request.conversation_history,
        conversation_state=request.conversation_state,
        user_id=current_user.id if current_user else None
    )


@router.get("/health", response_model=ChatHealthResponse)
async def chatbot_health():
    """Chatbot liveness check."""
    return ChatHealthResponse(status="ok")
