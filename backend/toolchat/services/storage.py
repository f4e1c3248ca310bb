"""
Persistence for users, conversations, messages, system prompts and MCP tools.

All reads and writes for a request go through one ChatStorage bound to the
request's AsyncSession. Each mutating call commits on its own.
"""

from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from toolchat.core.errors import NotFoundError
from toolchat.models import Conversation, McpTool, Message, SystemPrompt, User


class ChatStorage:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_user(self, user_id: int) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def require_user(self, user_id: int) -> User:
        user = await self.get_user(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user

    async def get_user_by_username(self, username: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    async def create_user(self, username: str, password: str, user_id: Optional[int] = None) -> User:
        user = User(id=user_id, username=username, password=password)
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)
        return user

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    async def create_conversation(
        self,
        user_id: int,
        title: str,
        system_prompt_id: Optional[int] = None,
        enabled_tools: Optional[List[int]] = None,
    ) -> Conversation:
        """Create a new conversation"""
        conversation = Conversation(
            user_id=user_id,
            title=title,
            system_prompt_id=system_prompt_id,
            enabled_tools=list(enabled_tools or []),
        )
        self.db.add(conversation)
        await self.db.commit()
        await self.db.refresh(conversation)
        return conversation

    async def get_conversation(self, conversation_id: int) -> Optional[Conversation]:
        return await self.db.get(Conversation, conversation_id)

    async def require_conversation(self, conversation_id: int) -> Conversation:
        conversation = await self.get_conversation(conversation_id)
        if conversation is None:
            raise NotFoundError(f"Conversation {conversation_id} not found")
        return conversation

    async def list_conversations(self, user_id: int) -> List[Conversation]:
        """Most recent first"""
        result = await self.db.execute(
            select(Conversation)
            .where(Conversation.user_id == user_id)
            .order_by(Conversation.timestamp.desc(), Conversation.id.desc())
        )
        return list(result.scalars().all())

    async def update_conversation_title(self, conversation_id: int, title: str) -> Conversation:
        conversation = await self.require_conversation(conversation_id)
        conversation.title = title
        await self.db.commit()
        await self.db.refresh(conversation)
        return conversation

    async def update_conversation_tools(self, conversation_id: int, tool_ids: Iterable[int]) -> Conversation:
        conversation = await self.require_conversation(conversation_id)
        # Reassign so the JSON column is flagged dirty
        conversation.enabled_tools = [int(tool_id) for tool_id in tool_ids]
        await self.db.commit()
        await self.db.refresh(conversation)
        return conversation

    async def delete_conversation(self, conversation_id: int) -> None:
        """Delete a conversation and all its messages"""
        conversation = await self.require_conversation(conversation_id)
        await self.db.delete(conversation)
        await self.db.commit()

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def add_message(
        self,
        conversation_id: int,
        role: str,
        content: str,
        user_id: Optional[int] = None,
        tool_call: Optional[Dict[str, Any]] = None,
        tool_result: Any = None,
    ) -> Message:
        """Append a message. Messages are never updated afterwards."""
        message = Message(
            conversation_id=conversation_id,
            role=role,
            content=content,
            user_id=user_id,
            tool_call=tool_call,
            tool_result=tool_result,
        )
        self.db.add(message)
        await self.db.commit()
        await self.db.refresh(message)
        return message

    async def list_messages(self, conversation_id: int, limit: Optional[int] = None) -> List[Message]:
        """
        Messages in insertion (id) order. With ``limit`` only the most recent
        ``limit`` messages are returned, still oldest first.
        """
        query = select(Message).where(Message.conversation_id == conversation_id)
        if limit:
            query = query.order_by(Message.id.desc()).limit(limit)
            result = await self.db.execute(query)
            return list(reversed(result.scalars().all()))

        result = await self.db.execute(query.order_by(Message.id.asc()))
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # System prompts
    # ------------------------------------------------------------------

    async def list_system_prompts(self, user_id: int) -> List[SystemPrompt]:
        result = await self.db.execute(
            select(SystemPrompt)
            .where(SystemPrompt.user_id == user_id)
            .order_by(SystemPrompt.timestamp.desc(), SystemPrompt.id.desc())
        )
        return list(result.scalars().all())

    async def get_system_prompt(self, prompt_id: int) -> Optional[SystemPrompt]:
        return await self.db.get(SystemPrompt, prompt_id)

    async def require_system_prompt(self, prompt_id: int) -> SystemPrompt:
        prompt = await self.get_system_prompt(prompt_id)
        if prompt is None:
            raise NotFoundError(f"System prompt {prompt_id} not found")
        return prompt

    async def get_default_system_prompt(self, user_id: int) -> Optional[SystemPrompt]:
        """The prompt flagged default, else the user's most recent prompt."""
        result = await self.db.execute(
            select(SystemPrompt)
            .where(SystemPrompt.user_id == user_id, SystemPrompt.is_default.is_(True))
            .order_by(SystemPrompt.id.desc())
            .limit(1)
        )
        prompt = result.scalar_one_or_none()
        if prompt is not None:
            return prompt

        result = await self.db.execute(
            select(SystemPrompt)
            .where(SystemPrompt.user_id == user_id)
            .order_by(SystemPrompt.timestamp.desc(), SystemPrompt.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _clear_default(self, user_id: int, keep_id: Optional[int] = None) -> None:
        statement = (
            update(SystemPrompt)
            .where(SystemPrompt.user_id == user_id, SystemPrompt.is_default.is_(True))
            .values(is_default=False)
        )
        if keep_id is not None:
            statement = statement.where(SystemPrompt.id != keep_id)
        await self.db.execute(statement.execution_options(synchronize_session="fetch"))

    async def create_system_prompt(
        self,
        user_id: int,
        title: str,
        content: str,
        is_default: bool = False,
    ) -> SystemPrompt:
        if is_default:
            await self._clear_default(user_id)
        prompt = SystemPrompt(user_id=user_id, title=title, content=content, is_default=is_default)
        self.db.add(prompt)
        await self.db.commit()
        await self.db.refresh(prompt)
        return prompt

    async def update_system_prompt(
        self,
        prompt_id: int,
        title: Optional[str] = None,
        content: Optional[str] = None,
        is_default: Optional[bool] = None,
    ) -> SystemPrompt:
        prompt = await self.require_system_prompt(prompt_id)
        if title is not None:
            prompt.title = title
        if content is not None:
            prompt.content = content
        if is_default is not None:
            if is_default:
                await self._clear_default(prompt.user_id, keep_id=prompt.id)
            prompt.is_default = is_default
        await self.db.commit()
        await self.db.refresh(prompt)
        return prompt

    async def set_default_system_prompt(self, prompt_id: int) -> SystemPrompt:
        """Flag one prompt default; the user's previous default is cleared in the same commit."""
        return await self.update_system_prompt(prompt_id, is_default=True)

    async def delete_system_prompt(self, prompt_id: int) -> None:
        prompt = await self.require_system_prompt(prompt_id)
        await self.db.delete(prompt)
        await self.db.commit()

    # ------------------------------------------------------------------
    # MCP tools
    # ------------------------------------------------------------------

    async def list_tools(self, user_id: int, enabled_only: bool = False) -> List[McpTool]:
        query = select(McpTool).where(McpTool.user_id == user_id)
        if enabled_only:
            query = query.where(McpTool.is_enabled.is_(True))
        result = await self.db.execute(query.order_by(McpTool.id.asc()))
        return list(result.scalars().all())

    async def get_tool(self, tool_id: int) -> Optional[McpTool]:
        return await self.db.get(McpTool, tool_id)

    async def require_tool(self, tool_id: int) -> McpTool:
        tool = await self.get_tool(tool_id)
        if tool is None:
            raise NotFoundError(f"Tool {tool_id} not found")
        return tool

    async def get_enabled_tools_by_ids(self, tool_ids: Iterable[Any]) -> List[McpTool]:
        """
        Existing, enabled tools among ``tool_ids``, in the given order.

        Ids that no longer exist or point at disabled tools are skipped.
        """
        ids = []
        for tool_id in tool_ids or []:
            try:
                ids.append(int(tool_id))
            except (TypeError, ValueError):
                continue
        if not ids:
            return []

        result = await self.db.execute(
            select(McpTool).where(McpTool.id.in_(ids), McpTool.is_enabled.is_(True))
        )
        by_id = {tool.id: tool for tool in result.scalars().all()}
        seen = set()
        ordered = []
        for tool_id in ids:
            if tool_id in by_id and tool_id not in seen:
                ordered.append(by_id[tool_id])
                seen.add(tool_id)
        return ordered

    async def create_tool(
        self,
        user_id: int,
        name: str,
        description: str,
        icon: str = "tool",
        configuration: Optional[Dict[str, Any]] = None,
        is_enabled: bool = True,
    ) -> McpTool:
        tool = McpTool(
            user_id=user_id,
            name=name,
            description=description,
            icon=icon,
            configuration=configuration,
            is_enabled=is_enabled,
        )
        self.db.add(tool)
        await self.db.commit()
        await self.db.refresh(tool)
        return tool

    async def update_tool(self, tool_id: int, **fields: Any) -> McpTool:
        tool = await self.require_tool(tool_id)
        for key in ("name", "description", "icon", "configuration", "is_enabled"):
            if key in fields and fields[key] is not None:
                setattr(tool, key, fields[key])
        await self.db.commit()
        await self.db.refresh(tool)
        return tool

    async def set_tool_enabled(self, tool_id: int, is_enabled: bool) -> McpTool:
        return await self.update_tool(tool_id, is_enabled=is_enabled)

    async def delete_tool(self, tool_id: int) -> None:
        tool = await self.require_tool(tool_id)
        await self.db.delete(tool)
        await self.db.commit()
