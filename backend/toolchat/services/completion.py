"""
Completion gateway: one round trip to the OpenAI-compatible LLM provider.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence
import asyncio
import json
import logging

from openai import AsyncOpenAI

from toolchat.core.config import Settings, settings as default_settings
from toolchat.core.errors import CompletionUnavailable
from toolchat.services.tools.schema import RequestedToolCall, ToolCallSource

logger = logging.getLogger(__name__)

PROVIDER_ROLES = {"system", "user", "assistant"}
TOOL_RESULT_PREFIX = "Tool result: "


@dataclass
class CompletionResult:
    """Text answer and/or the tool calls the model asked for"""
    text: str
    tool_calls: List[RequestedToolCall] = field(default_factory=list)
    assistant_message: Dict[str, Any] = field(default_factory=dict)
    usage: Dict[str, Any] = field(default_factory=dict)

    @property
    def wants_tools(self) -> bool:
        return bool(self.tool_calls)


def map_roles(messages: Sequence[Dict[str, Any]], tool_round: bool = False) -> List[Dict[str, Any]]:
    """
    Map role-tagged messages onto what the provider accepts.

    Only the immediate tool-result exchange of a second pass (``tool_round``
    set, and the tool message answering a ``tool_call_id``) keeps the ``tool``
    role. Every other tool message is sent as a system message prefixed with
    "Tool result:".
    """
    formatted: List[Dict[str, Any]] = []
    for msg in messages:
        role = msg.get("role")
        content = msg.get("content") or ""

        if role == "tool":
            if tool_round and msg.get("tool_call_id"):
                formatted.append({
                    "role": "tool",
                    "tool_call_id": msg["tool_call_id"],
                    "content": content,
                })
            else:
                formatted.append({"role": "system", "content": f"{TOOL_RESULT_PREFIX}{content}"})
            continue

        if role not in PROVIDER_ROLES:
            logger.warning(f"Dropping message with unsupported role: {role}")
            continue

        entry: Dict[str, Any] = {"role": role, "content": content}
        if role == "assistant" and tool_round and msg.get("tool_calls"):
            entry["tool_calls"] = msg["tool_calls"]
        formatted.append(entry)

    return formatted


def parse_native_tool_calls(raw_calls: Optional[Sequence[Any]]) -> List[RequestedToolCall]:
    """Convert the provider's tool_calls into RequestedToolCall objects."""
    calls: List[RequestedToolCall] = []
    for i, tc in enumerate(raw_calls or []):
        function = getattr(tc, "function", None)
        if function is None:
            continue
        raw_arguments = function.arguments or "{}"
        try:
            arguments = json.loads(raw_arguments) if isinstance(raw_arguments, str) else raw_arguments
        except json.JSONDecodeError:
            logger.warning(f"Tool call {function.name} had non-JSON arguments")
            arguments = raw_arguments
        calls.append(RequestedToolCall(
            id=getattr(tc, "id", None) or f"call_{i}",
            name=function.name,
            arguments=arguments,
            source=ToolCallSource.NATIVE,
        ))
    return calls


class CompletionGateway:
    """
    Wraps the chat completions API.

    Any transport or API failure surfaces as CompletionUnavailable; there is
    no retry and no silent empty answer at this layer.
    """

    def __init__(self, config: Optional[Settings] = None, client: Optional[AsyncOpenAI] = None):
        self.config = config or default_settings
        self._client = client

    @property
    def model(self) -> str:
        return self.config.LLM_MODEL

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self.config.OPENAI_API_KEY:
                raise CompletionUnavailable("OPENAI_API_KEY not configured")
            self._client = AsyncOpenAI(
                api_key=self.config.OPENAI_API_KEY,
                base_url=self.config.OPENAI_BASE_URL,
                timeout=self.config.LLM_REQUEST_TIMEOUT,
                max_retries=0,
            )
        return self._client

    async def complete(
        self,
        messages: Sequence[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        tool_choice: Optional[str] = None,
        temperature: Optional[float] = None,
        tool_round: bool = False,
    ) -> CompletionResult:
        """
        Send one completion request.

        Args:
            messages: Ordered role-tagged messages
            tools: Tool declarations in OpenAI format
            tool_choice: "auto" or "none"; only sent together with tools
            temperature: Overrides LLM_TEMPERATURE for this call
            tool_round: True for the second pass that answers a tool call

        Raises:
            CompletionUnavailable: provider unreachable or returned an error
        """
        client = self._get_client()

        request_kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": map_roles(messages, tool_round=tool_round),
            "temperature": self.config.LLM_TEMPERATURE if temperature is None else temperature,
        }
        if tools:
            request_kwargs["tools"] = tools
            request_kwargs["tool_choice"] = tool_choice or "auto"

        try:
            response = await client.chat.completions.create(**request_kwargs)
        except asyncio.TimeoutError as e:
            raise CompletionUnavailable(
                f"LLM API error: Request timed out after {self.config.LLM_REQUEST_TIMEOUT}s"
            ) from e
        except Exception as e:
            error_type = type(e).__name__
            logger.error(f"Completion request failed: [{error_type}] {e}")
            raise CompletionUnavailable(f"LLM API error: [{error_type}] {e}") from e

        if not response.choices:
            raise CompletionUnavailable("LLM API error: response contained no choices")

        message = response.choices[0].message
        content = message.content or ""
        tool_calls = parse_native_tool_calls(message.tool_calls)

        assistant_message: Dict[str, Any] = {"role": "assistant", "content": content}
        if tool_calls:
            assistant_message["tool_calls"] = [tc.to_openai_format() for tc in tool_calls]

        usage = response.usage
        return CompletionResult(
            text=content,
            tool_calls=tool_calls,
            assistant_message=assistant_message,
            usage={
                "model": self.model,
                "tokens_used": usage.total_tokens if usage else None,
                "prompt_tokens": usage.prompt_tokens if usage else None,
                "completion_tokens": usage.completion_tokens if usage else None,
            },
        )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
