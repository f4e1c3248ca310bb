"""
Conversation assembly for chat turns.

A turn resolves (or creates) the conversation, persists the user message
before any model call, builds the message sequence (system prompt, tool
block, history), hands it to the orchestrator or straight to the completion
gateway, and persists what came back.
"""

from typing import Any, Dict, List, Optional, Sequence
import json

from toolchat.core.config import Settings, settings as default_settings
from toolchat.core.errors import CompletionUnavailable, ValidationError
from toolchat.core.logging_config import get_logger
from toolchat.models import Conversation, McpTool, Message
from toolchat.schemas.chat import ChatRequest, ChatResponse, ToolCallInfo
from toolchat.services.completion import CompletionGateway
from toolchat.services.storage import ChatStorage
from toolchat.services.tools.executor import ToolExecutor
from toolchat.services.tools.orchestrator import OrchestrationResult, ToolBindings, ToolOrchestrator
from toolchat.services.tools.text_marker import format_tool_usage_block

TITLE_MAX_LENGTH = 50


def conversation_title(message: str) -> str:
    """First 50 characters of the opening message, with "..." when cut."""
    if len(message) > TITLE_MAX_LENGTH:
        return message[:TITLE_MAX_LENGTH] + "..."
    return message


def tool_message_content(tool_name: str, payload: Any) -> str:
    return f'Tool "{tool_name}" returned: {json.dumps(payload, ensure_ascii=False, default=str)}'


def history_to_messages(history: Sequence[Message]) -> List[Dict[str, Any]]:
    return [{"role": message.role, "content": message.content} for message in history]


class ConversationAssembler:
    """
    Handles one chat turn against storage, the orchestrator and the gateway.

    Usage:
        assembler = ConversationAssembler(storage, gateway, orchestrator)
        response = await assembler.submit_turn(ChatRequest(message="hello"))
    """

    def __init__(
        self,
        storage: ChatStorage,
        gateway: CompletionGateway,
        orchestrator: ToolOrchestrator,
        config: Optional[Settings] = None,
    ):
        self.storage = storage
        self.gateway = gateway
        self.orchestrator = orchestrator
        self.config = config or default_settings
        self.logger = get_logger(__name__)

    async def submit_turn(self, request: ChatRequest) -> ChatResponse:
        """
        Process one user message.

        Raises:
            ValidationError: empty message
            NotFoundError: unknown user, conversation or system prompt
            CompletionUnavailable: the model could not be reached; the user
                message is already persisted and ``conversationId`` is in
                the error details
        """
        message = request.message if isinstance(request.message, str) else ""
        if not message.strip():
            raise ValidationError("Message must be a non-empty string")

        user_id = request.user_id or self.config.MOCK_USER_ID

        # Resolved up front so a bad id fails before anything is written
        await self.storage.require_user(user_id)
        request_prompt = None
        if request.system_prompt_id is not None:
            request_prompt = await self.storage.require_system_prompt(request.system_prompt_id)

        conversation = await self._resolve_conversation(request.conversation_id, user_id, message)
        self.logger.set_context(conversation_id=conversation.id, user_id=user_id)

        await self.storage.add_message(
            conversation_id=conversation.id,
            role="user",
            content=message,
            user_id=user_id,
        )

        history = await self.storage.list_messages(conversation.id, limit=self.config.CHATBOT_MAX_HISTORY)

        system_content = None
        if request_prompt is not None:
            system_content = request_prompt.content
        elif conversation.system_prompt_id is not None:
            prompt = await self.storage.get_system_prompt(conversation.system_prompt_id)
            system_content = prompt.content if prompt else None

        enabled_tools: List[McpTool] = []
        if request.use_tool:
            enabled_tools = await self.storage.get_enabled_tools_by_ids(conversation.enabled_tools or [])
            if enabled_tools and self.orchestrator.capabilities.requires_text_markers:
                block = format_tool_usage_block(enabled_tools)
                system_content = f"{system_content}\n\n{block}" if system_content else block

        messages = history_to_messages(history)
        if system_content:
            messages.insert(0, {"role": "system", "content": system_content})

        available_tools = [tool.name for tool in enabled_tools]
        self.logger.info(
            f"Turn started: {len(history)} history messages, tools={available_tools or 'none'}"
        )

        try:
            if enabled_tools:
                result = await self.orchestrator.run(messages, enabled_tools)
            else:
                completion = await self.gateway.complete(messages)
                result = OrchestrationResult(final_text=completion.text, lead_in_text=completion.text)
        except CompletionUnavailable as e:
            self.logger.error(f"Completion unavailable: {e.message}")
            raise CompletionUnavailable(
                e.message,
                details={"conversationId": conversation.id},
            ) from e

        return await self._persist_result(conversation, user_id, result, available_tools)

    async def _resolve_conversation(
        self,
        conversation_id: Optional[int],
        user_id: int,
        message: str,
    ) -> Conversation:
        if conversation_id:
            return await self.storage.require_conversation(conversation_id)

        default_prompt = await self.storage.get_default_system_prompt(user_id)
        return await self.storage.create_conversation(
            user_id=user_id,
            title=conversation_title(message),
            system_prompt_id=default_prompt.id if default_prompt else None,
            enabled_tools=[],
        )

    async def _persist_result(
        self,
        conversation: Conversation,
        user_id: int,
        result: OrchestrationResult,
        available_tools: List[str],
    ) -> ChatResponse:
        record = result.tool_call
        if record is None:
            await self.storage.add_message(
                conversation_id=conversation.id,
                role="assistant",
                content=result.final_text,
                user_id=user_id,
            )
            return ChatResponse(
                content=result.final_text,
                conversation_id=conversation.id,
                available_tools=available_tools,
            )

        tool_call = record.to_tool_call_payload()
        await self.storage.add_message(
            conversation_id=conversation.id,
            role="assistant",
            content=result.lead_in_text,
            user_id=user_id,
            tool_call=tool_call,
        )
        await self.storage.add_message(
            conversation_id=conversation.id,
            role="tool",
            content=tool_message_content(record.name, record.result),
            user_id=user_id,
            tool_call=tool_call,
            tool_result=record.result,
        )
        # When the second pass failed and the lead-in became the answer, it is already stored
        if result.second_pass_completed or "second_pass_lead_in" not in result.fallbacks:
            await self.storage.add_message(
                conversation_id=conversation.id,
                role="assistant",
                content=result.final_text,
                user_id=user_id,
            )

        self.logger.info(f"Turn finished with tool {record.name} (success={record.success})")
        return ChatResponse(
            content=result.final_text,
            conversation_id=conversation.id,
            tool_call=ToolCallInfo(
                tool_id=record.tool_id,
                tool_name=record.name,
                parameters=record.arguments,
            ),
            tool_result=record.result,
        )

    async def update_conversation_tools(self, conversation_id: int, enabled_tools: Any) -> Conversation:
        if not isinstance(enabled_tools, list):
            raise ValidationError("enabledTools must be an array of tool IDs")
        try:
            tool_ids = [int(tool_id) for tool_id in enabled_tools]
        except (TypeError, ValueError) as e:
            raise ValidationError("enabledTools must be an array of tool IDs") from e
        return await self.storage.update_conversation_tools(conversation_id, tool_ids)


class DirectToolCaller:
    """Runs one stored tool outside a chat turn and records the call as a tool message."""

    def __init__(
        self,
        storage: ChatStorage,
        orchestrator: ToolOrchestrator,
        executor: ToolExecutor,
        config: Optional[Settings] = None,
    ):
        self.storage = storage
        self.orchestrator = orchestrator
        self.executor = executor
        self.config = config or default_settings
        self.logger = get_logger(__name__)

    async def call(
        self,
        tool_id: int,
        conversation_id: int,
        parameters: Any,
        user_id: Optional[int] = None,
    ) -> Any:
        """
        Raises:
            NotFoundError: unknown user, tool or conversation
            ValidationError: the tool is disabled
        """
        user_id = user_id or self.config.MOCK_USER_ID
        await self.storage.require_user(user_id)
        tool = await self.storage.require_tool(tool_id)
        if not tool.is_enabled:
            raise ValidationError("Tool is disabled")
        await self.storage.require_conversation(conversation_id)

        binding = ToolBindings([tool], self.orchestrator.registry).bindings[0]
        tool_result = await self.executor.execute(binding.execute_name, parameters)
        payload = tool_result.to_payload()

        self.logger.set_context(conversation_id=conversation_id, user_id=user_id)
        self.logger.info(f"Direct call of tool {tool.name} (success={tool_result.success})")

        content = tool_message_content(tool.name, payload) if tool_result.success else f'Tool "{tool.name}" call failed'
        await self.storage.add_message(
            conversation_id=conversation_id,
            role="tool",
            content=content,
            user_id=user_id,
            tool_call={"toolId": tool.id, "name": tool.name, "parameters": parameters},
            tool_result=payload,
        )
        return payload
