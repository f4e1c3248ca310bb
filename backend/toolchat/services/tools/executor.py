"""
Tool Executor - Safe execution of tools with validation and limits

This module wraps a tool handler call with:
- Parameter validation against the tool's input schema
- Normalization through the tool's argument model (defaults filled in)
- An execution time limit
- Conversion of every failure into a structured ToolResult
"""

from typing import Dict, Any, List, Optional
import asyncio
import time
import logging

from pydantic import ValidationError as PydanticValidationError

from toolchat.core.errors import ToolExecutionError
from toolchat.services.tools.registry import ToolRegistry
from toolchat.services.tools.schema import TOOL_ARGUMENT_MODELS, ToolResult

logger = logging.getLogger(__name__)


class ToolValidationError(Exception):
    """Raised when tool parameters are invalid"""
    pass


class ToolExecutor:
    """
    Executes registered tools by name.

    Failures never raise out of ``execute``: a remote error, a timeout, bad
    arguments or a crashing handler all come back as
    ``ToolResult(success=False, error=...)``. Unknown tool names resolve to a
    placeholder result naming the valid tools.
    """

    def __init__(self, registry: ToolRegistry, default_timeout_ms: Optional[int] = None):
        self.registry = registry
        self.default_timeout_ms = default_timeout_ms

    async def execute(
        self,
        tool_name: str,
        arguments: Any,
        timeout_ms: Optional[int] = None
    ) -> ToolResult:
        """
        Execute a tool with the given arguments.

        Args:
            tool_name: Name of the tool to execute
            arguments: Parsed arguments (normally a dict)
            timeout_ms: Optional timeout override in milliseconds

        Returns:
            ToolResult with success status and data or error
        """
        start_time = time.time()

        registered_tool = self.registry.get_tool(tool_name)
        if not registered_tool:
            logger.warning(f"Unknown tool requested: {tool_name}")
            return self.unavailable_tool_result(tool_name)

        definition = registered_tool.definition
        handler = registered_tool.handler

        try:
            arguments = self._normalize_arguments(
                tool_name, arguments, definition.tool_schema.parameters
            )
        except ToolValidationError as e:
            return ToolResult(
                tool_name=tool_name,
                success=False,
                error=str(e)
            )

        timeout = timeout_ms or definition.max_execution_time_ms
        if self.default_timeout_ms:
            timeout = min(timeout, self.default_timeout_ms)
        timeout_seconds = timeout / 1000

        try:
            result = await asyncio.wait_for(handler(**arguments), timeout=timeout_seconds)

            execution_time_ms = int((time.time() - start_time) * 1000)
            logger.info(f"Tool {tool_name} executed in {execution_time_ms}ms")

            return ToolResult(
                tool_name=tool_name,
                success=True,
                data=result,
                execution_time_ms=execution_time_ms
            )

        except asyncio.TimeoutError:
            execution_time_ms = int((time.time() - start_time) * 1000)
            logger.error(f"Tool {tool_name} timed out after {execution_time_ms}ms")
            return ToolResult(
                tool_name=tool_name,
                success=False,
                error=f"Tool execution timed out after {timeout}ms",
                execution_time_ms=execution_time_ms
            )

        except ToolExecutionError as e:
            execution_time_ms = int((time.time() - start_time) * 1000)
            logger.error(f"Tool {tool_name} failed: {e.message}")
            return ToolResult(
                tool_name=tool_name,
                success=False,
                error=e.message,
                execution_time_ms=execution_time_ms
            )

        except Exception as e:
            execution_time_ms = int((time.time() - start_time) * 1000)
            logger.exception(f"Tool {tool_name} crashed: {e}")
            return ToolResult(
                tool_name=tool_name,
                success=False,
                error=str(e),
                execution_time_ms=execution_time_ms
            )

    def unavailable_tool_result(self, tool_name: str, available: Optional[List[str]] = None) -> ToolResult:
        """
        Placeholder answer for a tool that cannot be run. Nothing is executed.

        Args:
            tool_name: The name the model asked for
            available: Names to suggest instead; defaults to every registered tool
        """
        names = list(self.registry.names() if available is None else available)
        valid = "、".join(names) or "无"
        return ToolResult(
            tool_name=tool_name,
            success=True,
            data={
                "message": f'工具 "{tool_name}" 不可用或无法识别。请使用 {valid}。',
                "availableTools": names,
            },
        )

    def _normalize_arguments(
        self,
        tool_name: str,
        arguments: Any,
        schema: Dict[str, Any]
    ) -> Dict[str, Any]:
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise ToolValidationError(
                f"Arguments for {tool_name} must be a JSON object, got {type(arguments).__name__}"
            )

        self._validate_arguments(tool_name, arguments, schema)

        model = TOOL_ARGUMENT_MODELS.get(tool_name)
        if model is None:
            return dict(arguments)
        try:
            return model.model_validate(arguments).model_dump()
        except PydanticValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first.get("loc", ()))
            raise ToolValidationError(f"Invalid parameter {location}: {first.get('msg')}") from e

    def _validate_arguments(
        self,
        tool_name: str,
        arguments: Dict[str, Any],
        schema: Dict[str, Any]
    ) -> None:
        """
        Validate tool arguments against the schema.

        Raises ToolValidationError if validation fails.
        """
        properties = schema.get("properties", {})
        required: List[str] = schema.get("required", [])

        for param in required:
            if param not in arguments:
                raise ToolValidationError(f"Missing required parameter: {param}")

        for param_name, param_value in arguments.items():
            if param_name not in properties:
                # Allow unknown parameters but log a warning
                logger.warning(f"Unknown parameter {param_name} for tool {tool_name}")
                continue

            param_spec = properties[param_name]
            expected_type = param_spec.get("type")
            enum_values = param_spec.get("enum")

            if expected_type and not self._check_type(param_value, expected_type):
                raise ToolValidationError(
                    f"Parameter {param_name} should be {expected_type}, got {type(param_value).__name__}"
                )

            if enum_values and param_value not in enum_values:
                raise ToolValidationError(
                    f"Parameter {param_name} must be one of: {', '.join(enum_values)}"
                )

    def _check_type(self, value: Any, expected: str) -> bool:
        """Check if value matches expected JSON Schema type"""
        if expected in ("integer", "number") and isinstance(value, bool):
            return False
        type_map = {
            "string": str,
            "number": (int, float),
            "integer": int,
            "boolean": bool,
            "array": list,
            "object": dict,
        }
        expected_types = type_map.get(expected)
        if expected_types is None:
            return True  # Unknown type, allow
        return isinstance(value, expected_types)
