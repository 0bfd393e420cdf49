"""Conversation routes."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from mentoring.api.deps import (
    get_assistant_service,
    get_conversation_service,
    get_message_service,
)
from mentoring.domain.assistant.services import AssistantService
from mentoring.domain.chat.models import Conversation, ConversationSummary, Message
from mentoring.domain.chat.services import ConversationService, MessageService

logger = logging.getLogger(__name__)

router = APIRouter()


class CreateConversationRequest(BaseModel):
    """Create conversation request model."""
    relationship_id: str
    title: Optional[str] = None


class MarkConversationReadRequest(BaseModel):
    reader_id: str


class MarkConversationReadResponse(BaseModel):
    conversation_id: str
    marked: int


class AssistantReplyRequest(BaseModel):
    """Prompt for the assistant; the reply is posted into the conversation."""
    prompt: str


@router.post("", response_model=Conversation, status_code=status.HTTP_201_CREATED)
async def create_conversation(
    request: CreateConversationRequest,
    service: ConversationService = Depends(get_conversation_service),
):
    """Open a conversation on a relationship."""
    return await service.create_conversation(request.relationship_id, title=request.title)


@router.get("", response_model=list[ConversationSummary])
async def list_conversations(
    identity: str,
    service: ConversationService = Depends(get_conversation_service),
):
    """Inbox for an identity, most recently active first."""
    return await service.list_conversations(identity)


@router.get("/{conversation_id}", response_model=Conversation)
async def get_conversation(
    conversation_id: str,
    service: ConversationService = Depends(get_conversation_service),
):
    return await service.get_conversation(conversation_id)


@router.post("/{conversation_id}/read", response_model=MarkConversationReadResponse)
async def mark_conversation_read(
    conversation_id: str,
    request: MarkConversationReadRequest,
    service: MessageService = Depends(get_message_service),
):
    """Mark every message from the other party as read."""
    marked = await service.mark_conversation_read(conversation_id, request.reader_id)
    return MarkConversationReadResponse(conversation_id=conversation_id, marked=marked)


@router.post(
    "/{conversation_id}/assistant-reply",
    response_model=Message,
    status_code=status.HTTP_201_CREATED,
)
async def assistant_reply(
    conversation_id: str,
    request: AssistantReplyRequest,
    service: AssistantService = Depends(get_assistant_service),
):
    """Generate a reply and post it as the assistant identity."""
    logger.info(f"🤖 [SERVER] Assistant reply requested for conversation {conversation_id}")
    return await service.reply(conversation_id, request.prompt)
