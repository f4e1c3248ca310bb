"""
Test doubles for the completion provider.
"""
from typing import Any, Dict, List, Optional, Sequence

from toolchat.core.errors import CompletionUnavailable
from toolchat.services.completion import CompletionResult
from toolchat.services.tools.schema import RequestedToolCall, ToolCallSource


class FakeCompletionGateway:
    """
    Scripted stand-in for CompletionGateway.

    Each ``complete`` call pops the next scripted item: a CompletionResult is
    returned, an exception is raised. Once the script runs out every call
    answers with ``default_text``.
    """

    def __init__(self, script: Optional[Sequence[Any]] = None, default_text: str = "ok"):
        self.script: List[Any] = list(script or [])
        self.default_text = default_text
        self.calls: List[Dict[str, Any]] = []

    def queue(self, *items: Any) -> None:
        self.script.extend(items)

    async def complete(self, messages, tools=None, tool_choice=None, temperature=None, tool_round=False):
        self.calls.append({
            "messages": [dict(m) for m in messages],
            "tools": tools,
            "tool_choice": tool_choice,
            "temperature": temperature,
            "tool_round": tool_round,
        })
        if not self.script:
            return text_result(self.default_text)
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def aclose(self) -> None:
        pass


def text_result(text: str) -> CompletionResult:
    return CompletionResult(text=text, assistant_message={"role": "assistant", "content": text})


def native_call_result(
    name: str,
    arguments: Dict[str, Any],
    text: str = "",
    call_id: str = "call_1",
) -> CompletionResult:
    call = RequestedToolCall(id=call_id, name=name, arguments=arguments, source=ToolCallSource.NATIVE)
    return CompletionResult(
        text=text,
        tool_calls=[call],
        assistant_message={"role": "assistant", "content": text, "tool_calls": [call.to_openai_format()]},
    )


def unavailable(message: str = "LLM API error: [APIConnectionError] Connection error.") -> CompletionUnavailable:
    return CompletionUnavailable(message)
