from typing import Optional

from fastapi import APIRouter, Depends, Query

from toolchat.api.deps import get_storage
from toolchat.core.errors import ValidationError
from toolchat.schemas.message import MessageListResponse
from toolchat.services.storage import ChatStorage

router = APIRouter()


@router.get("", response_model=MessageListResponse)
async def list_messages(
    conversation_id: Optional[int] = Query(None, alias="conversationId"),
    storage: ChatStorage = Depends(get_storage),
):
    """Messages of a conversation in insertion order."""
    if not conversation_id:
        raise ValidationError("Conversation ID is required")
    messages = await storage.list_messages(conversation_id)
    return {"messages": messages}
