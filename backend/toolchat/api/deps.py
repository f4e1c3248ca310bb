from typing import AsyncGenerator, Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from toolchat.core.config import settings
from toolchat.db.session import AsyncSessionLocal
from toolchat.services.chat_service import ConversationAssembler, DirectToolCaller
from toolchat.services.runtime import ToolRuntime
from toolchat.services.storage import ChatStorage


async def get_db() -> AsyncGenerator:
    async with AsyncSessionLocal() as session:
        yield session


def get_storage(db: AsyncSession = Depends(get_db)) -> ChatStorage:
    return ChatStorage(db)


def get_runtime(request: Request) -> ToolRuntime:
    return request.app.state.runtime


def get_assembler(
    storage: ChatStorage = Depends(get_storage),
    runtime: ToolRuntime = Depends(get_runtime),
) -> ConversationAssembler:
    return ConversationAssembler(storage, runtime.gateway, runtime.orchestrator, settings)


def get_tool_caller(
    storage: ChatStorage = Depends(get_storage),
    runtime: ToolRuntime = Depends(get_runtime),
) -> DirectToolCaller:
    return DirectToolCaller(storage, runtime.orchestrator, runtime.executor, settings)


def resolve_user_id(user_id: Optional[int] = None) -> int:
    """Requests without a userId act as the demo user."""
    return user_id or settings.MOCK_USER_ID
