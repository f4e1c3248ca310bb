from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from toolchat.api.deps import get_assembler, get_storage, resolve_user_id
from toolchat.schemas.conversation import (
    ConversationCreate,
    ConversationEnvelope,
    ConversationListResponse,
    ConversationToolsUpdate,
    ConversationUpdate,
)
from toolchat.services.chat_service import ConversationAssembler
from toolchat.services.storage import ChatStorage

router = APIRouter()


@router.get("", response_model=ConversationListResponse)
async def list_conversations(
    user_id: Optional[int] = Query(None, alias="userId"),
    storage: ChatStorage = Depends(get_storage),
):
    """All conversations of a user, most recent first."""
    conversations = await storage.list_conversations(resolve_user_id(user_id))
    return {"conversations": conversations}


@router.post("", response_model=ConversationEnvelope, status_code=status.HTTP_201_CREATED)
async def create_conversation(
    data: ConversationCreate,
    storage: ChatStorage = Depends(get_storage),
):
    """Create a conversation attached to the user's default system prompt."""
    user_id = resolve_user_id(data.user_id)
    default_prompt = await storage.get_default_system_prompt(user_id)
    conversation = await storage.create_conversation(
        user_id=user_id,
        title=data.title or "New Conversation",
        system_prompt_id=default_prompt.id if default_prompt else None,
    )
    return {"conversation": conversation}


@router.patch("/{conversation_id}", response_model=ConversationEnvelope)
async def update_conversation(
    conversation_id: int,
    data: ConversationUpdate,
    storage: ChatStorage = Depends(get_storage),
):
    conversation = await storage.update_conversation_title(conversation_id, data.title)
    return {"conversation": conversation}


@router.delete("/{conversation_id}")
async def delete_conversation(
    conversation_id: int,
    storage: ChatStorage = Depends(get_storage),
):
    """Delete a conversation and all its messages."""
    await storage.delete_conversation(conversation_id)
    return {"success": True}


@router.patch("/{conversation_id}/tools", response_model=ConversationEnvelope)
async def update_conversation_tools(
    conversation_id: int,
    data: ConversationToolsUpdate,
    assembler: ConversationAssembler = Depends(get_assembler),
):
    """Replace the conversation's enabled tool ids."""
    conversation = await assembler.update_conversation_tools(conversation_id, data.enabled_tools)
    return {"conversation": conversation}
