"""Conversation and message API routes."""
from fastapi import APIRouter

from mentoring.api.chat import routes_conversations, routes_messages

router = APIRouter()

router.include_router(routes_conversations.router, prefix="/conversations", tags=["conversations"])
router.include_router(routes_messages.router, prefix="/messages", tags=["messages"])
