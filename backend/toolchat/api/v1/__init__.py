from fastapi import APIRouter

from toolchat.api.v1 import chat, conversations, mcp_tools, messages, system_prompts

api_router = APIRouter()
api_router.include_router(chat.router, tags=["chat"])
api_router.include_router(conversations.router, prefix="/conversations", tags=["conversations"])
api_router.include_router(messages.router, prefix="/messages", tags=["messages"])
api_router.include_router(system_prompts.router, prefix="/system-prompts", tags=["system-prompts"])
api_router.include_router(mcp_tools.router, prefix="/mcp-tools", tags=["mcp-tools"])
