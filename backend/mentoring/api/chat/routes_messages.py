"""Message routes."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from mentoring.api.deps import get_message_service
from mentoring.domain.chat.models import Message, MessageType
from mentoring.domain.chat.services import MessageService

logger = logging.getLogger(__name__)

router = APIRouter()


class SendMessageRequest(BaseModel):
    """Send message request model."""
    conversation_id: str
    sender_id: str
    content: str
    message_type: MessageType = MessageType.TEXT


class MarkReadRequest(BaseModel):
    reader_id: str


class UnreadCountResponse(BaseModel):
    identity_id: str
    unread_count: int


@router.post("", response_model=Message, status_code=status.HTTP_201_CREATED)
async def send_message(
    request: SendMessageRequest,
    service: MessageService = Depends(get_message_service),
):
    """Persist a message and deliver it to the conversation's subscribers."""
    return await service.send_message(
        request.conversation_id,
        request.sender_id,
        request.content,
        request.message_type,
    )


@router.get("", response_model=list[Message])
async def list_messages(
    conversation: str,
    limit: Optional[int] = Query(default=None),
    service: MessageService = Depends(get_message_service),
):
    """Latest messages of a conversation, oldest first."""
    return await service.list_messages(conversation, limit=limit)


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    identity: str,
    service: MessageService = Depends(get_message_service),
):
    count = await service.count_unread(identity)
    return UnreadCountResponse(identity_id=identity, unread_count=count)


@router.patch("/{message_id}/read", response_model=Message)
async def mark_message_read(
    message_id: str,
    request: MarkReadRequest,
    service: MessageService = Depends(get_message_service),
):
    """Mark a message read. Repeating the call changes nothing."""
    return await service.mark_read(message_id, request.reader_id)
