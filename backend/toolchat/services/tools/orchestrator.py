"""
Tool Orchestrator - the two-pass tool calling cycle for one chat turn

1. First pass: send the assembled messages plus the conversation's tool
   declarations to the model (tool_choice="auto").
2. If the model answers directly, that text is the turn's answer.
3. Otherwise take the first requested tool call, execute it, and send the
   result back in a second pass to get the final answer.

Native structured tool calls and ``[USE_TOOL:...]`` text markers are both
turned into RequestedToolCall before dispatch, so the state machine does not
care which style the provider used.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence
import json
import logging
import re

from toolchat.core.config import settings
from toolchat.core.errors import CompletionUnavailable
from toolchat.services.completion import CompletionGateway, CompletionResult
from toolchat.services.tools.executor import ToolExecutor
from toolchat.services.tools.provider_adapter import get_provider_capabilities
from toolchat.services.tools.registry import ToolRegistry
from toolchat.services.tools.schema import (
    RequestedToolCall,
    ToolCallSource,
    ToolResult,
    ToolSchema,
)
from toolchat.services.tools.text_marker import parse_tool_marker

logger = logging.getLogger(__name__)

# At most one tool call is processed per turn, even when the provider asks for several.
MAX_TOOL_CALLS_PER_TURN = 1

_INVALID_FUNCTION_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


class OrchestratorState(str, Enum):
    START = "start"
    FIRST_PASS = "first_pass"
    DIRECT_ANSWER = "direct_answer"
    TOOL_REQUESTED = "tool_requested"
    EXECUTING_TOOL = "executing_tool"
    SECOND_PASS = "second_pass"
    DONE = "done"


@dataclass
class ToolBinding:
    """One enabled McpTool row and the name it is declared and executed under"""
    record: Any
    declared_name: str
    registry_name: Optional[str]

    @property
    def tool_id(self) -> int:
        return self.record.id

    @property
    def execute_name(self) -> str:
        return self.registry_name or self.record.name


class ToolBindings:
    """
    Lookup table between the conversation's enabled tools and what the model sees.

    Built once per turn. Requested calls resolve by stored id (text markers),
    then by exact declared or stored name. A substring match on name or
    description is kept only as a last resort for older tool rows whose names
    do not match a registered tool.
    """

    def __init__(self, enabled_tools: Sequence[Any], registry: ToolRegistry):
        self.registry = registry
        self.bindings: List[ToolBinding] = []
        self._by_id: Dict[int, ToolBinding] = {}
        self._by_name: Dict[str, ToolBinding] = {}

        used_names = set()
        for record in enabled_tools:
            registry_name = self._registry_name_for(record)
            declared = registry_name or self._function_name(record)
            if declared in used_names:
                declared = f"{declared}_{record.id}"
            used_names.add(declared)

            binding = ToolBinding(record=record, declared_name=declared, registry_name=registry_name)
            self.bindings.append(binding)
            self._by_id[record.id] = binding
            self._by_name.setdefault(declared, binding)
            self._by_name.setdefault(record.name, binding)

    def __len__(self) -> int:
        return len(self.bindings)

    def _registry_name_for(self, record: Any) -> Optional[str]:
        if record.name in self.registry:
            return record.name

        name = (record.name or "").lower()
        description = (record.description or "").lower()
        for schema in self.registry.list_available():
            if name and (name in schema.name.lower() or schema.name.lower() in name):
                return schema.name
            if description and description in schema.description.lower():
                return schema.name
        return None

    @staticmethod
    def _function_name(record: Any) -> str:
        cleaned = _INVALID_FUNCTION_CHARS.sub("_", record.name or "").strip("_")
        return cleaned or f"tool_{record.id}"

    def declarations(self) -> List[ToolSchema]:
        """Declarations to offer the model: registry schemas, or a generic one for custom tools"""
        schemas: List[ToolSchema] = []
        for binding in self.bindings:
            if binding.registry_name:
                registered = self.registry.get_tool(binding.registry_name)
                schema = registered.definition.tool_schema
                if schema.name != binding.declared_name:
                    schema = schema.model_copy(update={"name": binding.declared_name})
                schemas.append(schema)
                continue

            configuration = binding.record.configuration or {}
            parameters = configuration.get("inputSchema") if isinstance(configuration, dict) else None
            if not isinstance(parameters, dict) or parameters.get("type") != "object":
                parameters = {"type": "object", "properties": {}, "additionalProperties": True}
            schemas.append(ToolSchema(
                name=binding.declared_name,
                description=binding.record.description or binding.record.name,
                parameters=parameters,
            ))
        return schemas

    def resolve(self, call: RequestedToolCall) -> Optional[ToolBinding]:
        if call.tool_id is not None:
            return self._by_id.get(call.tool_id)

        if not call.name:
            return None
        if call.name in self._by_name:
            return self._by_name[call.name]

        wanted = call.name.lower()
        for binding in self.bindings:
            name = (binding.record.name or "").lower()
            description = (binding.record.description or "").lower()
            if name and (wanted in name or name in wanted):
                logger.info(f"Resolved tool {call.name!r} by substring match to id {binding.tool_id}")
                return binding
            if wanted in description:
                logger.info(f"Resolved tool {call.name!r} by description match to id {binding.tool_id}")
                return binding
        return None


@dataclass
class ToolCallRecord:
    """What was called and what came back, for persistence and the response"""
    tool_id: Optional[int]
    name: str
    arguments: Any
    result: Any
    success: bool
    source: ToolCallSource

    def to_tool_call_payload(self) -> Dict[str, Any]:
        return {"toolId": self.tool_id, "name": self.name, "parameters": self.arguments}


@dataclass
class OrchestrationResult:
    final_text: str
    tool_call: Optional[ToolCallRecord] = None
    lead_in_text: str = ""
    second_pass_completed: bool = False
    state: OrchestratorState = OrchestratorState.DONE
    fallbacks: List[str] = field(default_factory=list)


class ToolOrchestrator:
    """
    Drives FIRST_PASS -> (DIRECT_ANSWER | TOOL_REQUESTED -> EXECUTING_TOOL -> SECOND_PASS) -> DONE.

    Usage:
        orchestrator = ToolOrchestrator(gateway, registry, executor)
        result = await orchestrator.run(messages, enabled_tools)
        print(result.final_text)
    """

    def __init__(
        self,
        gateway: CompletionGateway,
        registry: ToolRegistry,
        executor: ToolExecutor,
        provider: Optional[str] = None,
    ):
        self.gateway = gateway
        self.registry = registry
        self.executor = executor
        self.capabilities = get_provider_capabilities(provider or settings.LLM_PROVIDER)

    @property
    def uses_native_tools(self) -> bool:
        return self.capabilities.native_function_calling

    async def run(
        self,
        messages: Sequence[Dict[str, Any]],
        enabled_tools: Sequence[Any],
        temperature: Optional[float] = None,
    ) -> OrchestrationResult:
        """
        Run one turn.

        Args:
            messages: System prompt, history and the new user message, in order
            enabled_tools: The conversation's existing, enabled McpTool rows

        Raises:
            CompletionUnavailable: only when the first pass and its direct
                fallback both fail
        """
        state = OrchestratorState.START
        bindings = ToolBindings(enabled_tools, self.registry)
        base_messages = list(messages)
        fallbacks: List[str] = []

        tools_spec = None
        if self.uses_native_tools and len(bindings):
            tools_spec = [schema.to_openai_format() for schema in bindings.declarations()]

        state = self._transition(state, OrchestratorState.FIRST_PASS)
        try:
            first = await self.gateway.complete(
                base_messages,
                tools=tools_spec,
                tool_choice="auto" if tools_spec else None,
                temperature=temperature,
            )
        except CompletionUnavailable as e:
            logger.warning(
                f"First pass failed ({e.message}); falling back to a direct completion",
                extra={"fallback": "first_pass_direct"},
            )
            fallbacks.append("first_pass_direct")
            direct = await self.gateway.complete(base_messages, temperature=temperature)
            return OrchestrationResult(
                final_text=direct.text,
                lead_in_text=direct.text,
                state=OrchestratorState.DONE,
                fallbacks=fallbacks,
            )

        calls = self._requested_calls(first)
        if not calls:
            self._transition(state, OrchestratorState.DIRECT_ANSWER)
            return OrchestrationResult(
                final_text=first.text,
                lead_in_text=first.text,
                state=OrchestratorState.DONE,
            )

        if len(calls) > MAX_TOOL_CALLS_PER_TURN:
            logger.info(
                f"Model requested {len(calls)} tool calls; processing the first {MAX_TOOL_CALLS_PER_TURN}"
            )
        call = calls[0]
        state = self._transition(state, OrchestratorState.TOOL_REQUESTED)

        binding = bindings.resolve(call)
        state = self._transition(state, OrchestratorState.EXECUTING_TOOL)
        if binding is None:
            # Only the conversation's enabled tools may run; the registry is never asked by raw name
            requested_name = call.name or f"tool_{call.tool_id}"
            logger.warning(
                f"Model requested {requested_name!r}, which is not enabled for this conversation",
                extra={"tool": requested_name},
            )
            tool_result = self.executor.unavailable_tool_result(
                requested_name,
                [declaration.name for declaration in bindings.declarations()],
            )
        else:
            tool_result = await self.executor.execute(binding.execute_name, call.arguments)

        record = ToolCallRecord(
            tool_id=binding.tool_id if binding else call.tool_id,
            name=binding.record.name if binding else tool_result.tool_name,
            arguments=call.arguments,
            result=tool_result.to_payload(),
            success=tool_result.success,
            source=call.source,
        )

        state = self._transition(state, OrchestratorState.SECOND_PASS)
        second_messages = self._second_pass_messages(base_messages, first, call, tool_result)
        try:
            second = await self.gateway.complete(
                second_messages,
                temperature=temperature,
                tool_round=call.source == ToolCallSource.NATIVE,
            )
            final_text = second.text
            second_ok = True
        except CompletionUnavailable as e:
            logger.warning(f"Second pass failed ({e.message}); falling back")
            second_ok = False
            final_text = await self._second_pass_fallback(base_messages, first, tool_result, temperature, fallbacks)

        self._transition(state, OrchestratorState.DONE)
        return OrchestrationResult(
            final_text=final_text,
            tool_call=record,
            lead_in_text=first.text,
            second_pass_completed=second_ok,
            state=OrchestratorState.DONE,
            fallbacks=fallbacks,
        )

    def _requested_calls(self, result: CompletionResult) -> List[RequestedToolCall]:
        if result.wants_tools:
            return list(result.tool_calls)
        marker_call = parse_tool_marker(result.text)
        return [marker_call] if marker_call else []

    def _second_pass_messages(
        self,
        base_messages: List[Dict[str, Any]],
        first: CompletionResult,
        call: RequestedToolCall,
        tool_result: ToolResult,
    ) -> List[Dict[str, Any]]:
        if call.source == ToolCallSource.NATIVE:
            assistant = dict(first.assistant_message) or {"role": "assistant", "content": first.text}
            assistant["tool_calls"] = [call.to_openai_format()]
            tool_message = {
                "role": "tool",
                "tool_call_id": call.id,
                "content": tool_result.to_message_content(),
            }
        else:
            # Text-marker providers have no tool role; the gateway sends this as "Tool result: ..."
            assistant = {"role": "assistant", "content": first.text}
            tool_message = {"role": "tool", "content": tool_result.to_message_content()}
        return [*base_messages, assistant, tool_message]

    async def _second_pass_fallback(
        self,
        base_messages: List[Dict[str, Any]],
        first: CompletionResult,
        tool_result: ToolResult,
        temperature: Optional[float],
        fallbacks: List[str],
    ) -> str:
        if first.text.strip():
            fallbacks.append("second_pass_lead_in")
            logger.info("Using first-pass text as the answer", extra={"fallback": "second_pass_lead_in"})
            return first.text

        fallbacks.append("second_pass_direct")
        try:
            direct = await self.gateway.complete(
                [*base_messages, {"role": "tool", "content": tool_result.to_message_content()}],
                temperature=temperature,
            )
            return direct.text
        except CompletionUnavailable as e:
            logger.error(f"Direct fallback after tool call failed: {e.message}")
            fallbacks.append("second_pass_canned")
            return f"工具 {tool_result.tool_name} 返回了结果：{json.dumps(tool_result.to_payload(), ensure_ascii=False, default=str)}"

    @staticmethod
    def _transition(current: OrchestratorState, target: OrchestratorState) -> OrchestratorState:
        logger.debug(f"Orchestrator state {current.value} -> {target.value}")
        return target
