from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from toolchat.api.deps import get_storage, get_tool_caller, resolve_user_id
from toolchat.schemas.mcp_tool import (
    McpToolCallRequest,
    McpToolCallResponse,
    McpToolCreate,
    McpToolEnvelope,
    McpToolListResponse,
    McpToolToggle,
    McpToolUpdate,
)
from toolchat.services.chat_service import DirectToolCaller
from toolchat.services.storage import ChatStorage

router = APIRouter()


@router.get("", response_model=McpToolListResponse)
async def list_tools(
    user_id: Optional[int] = Query(None, alias="userId"),
    storage: ChatStorage = Depends(get_storage),
):
    tools = await storage.list_tools(resolve_user_id(user_id))
    return {"tools": tools}


@router.get("/enabled", response_model=McpToolListResponse)
async def list_enabled_tools(
    user_id: Optional[int] = Query(None, alias="userId"),
    storage: ChatStorage = Depends(get_storage),
):
    tools = await storage.list_tools(resolve_user_id(user_id), enabled_only=True)
    return {"tools": tools}


@router.post("", response_model=McpToolEnvelope, status_code=status.HTTP_201_CREATED)
async def create_tool(
    data: McpToolCreate,
    storage: ChatStorage = Depends(get_storage),
):
    tool = await storage.create_tool(
        user_id=resolve_user_id(data.user_id),
        name=data.name,
        description=data.description,
        icon=data.icon or "tool",
        configuration=data.configuration,
        is_enabled=data.is_enabled,
    )
    return {"tool": tool}


@router.post("/call", response_model=McpToolCallResponse)
async def call_tool(
    data: McpToolCallRequest,
    caller: DirectToolCaller = Depends(get_tool_caller),
):
    """
    Execute a tool directly and record the call in the conversation.

    - **toolId**: Stored tool id (must be enabled)
    - **conversationId**: Conversation the tool message is appended to
    - **parameters**: Arguments passed to the tool
    """
    result = await caller.call(
        tool_id=data.tool_id,
        conversation_id=data.conversation_id,
        parameters=data.parameters,
        user_id=data.user_id,
    )
    return {"result": result}


@router.get("/{tool_id}", response_model=McpToolEnvelope)
async def get_tool(
    tool_id: int,
    storage: ChatStorage = Depends(get_storage),
):
    tool = await storage.require_tool(tool_id)
    return {"tool": tool}


@router.patch("/{tool_id}", response_model=McpToolEnvelope)
async def update_tool(
    tool_id: int,
    data: McpToolUpdate,
    storage: ChatStorage = Depends(get_storage),
):
    tool = await storage.update_tool(tool_id, **data.model_dump(exclude_unset=True))
    return {"tool": tool}


@router.delete("/{tool_id}")
async def delete_tool(
    tool_id: int,
    storage: ChatStorage = Depends(get_storage),
):
    await storage.delete_tool(tool_id)
    return {"success": True}


@router.post("/{tool_id}/toggle", response_model=McpToolEnvelope)
async def toggle_tool(
    tool_id: int,
    data: McpToolToggle,
    storage: ChatStorage = Depends(get_storage),
):
    tool = await storage.set_tool_enabled(tool_id, data.is_enabled)
    return {"tool": tool}
