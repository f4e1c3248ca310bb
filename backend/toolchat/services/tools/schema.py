"""
Tool Definition Schema - OpenAI Function Calling Format

Pydantic models for tool declarations, requested tool calls and tool
results. Declarations are compatible with the OpenAI ``tools`` parameter;
argument payloads for the built-in tools are modelled as tagged variants
keyed by tool name.
"""

from typing import Dict, Any, List, Optional, Literal, Type
from enum import Enum
import json

from pydantic import BaseModel, ConfigDict, Field


class ToolCategory(str, Enum):
    """Categories of tools for organization"""
    SIMULATED = "simulated"
    SEARCH = "search"
    CUSTOM = "custom"


class ToolSchema(BaseModel):
    """
    OpenAI-compatible function/tool definition.

    ``parameters`` is the tool's input schema (a JSON-schema object).
    """
    name: str = Field(..., description="Unique tool identifier (snake_case)")
    description: str = Field(..., description="What the tool does and when to use it")
    parameters: Dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}, "required": []},
        description="JSON Schema for the tool's parameters"
    )

    @property
    def input_schema(self) -> Dict[str, Any]:
        return self.parameters

    def to_openai_format(self) -> Dict[str, Any]:
        """Convert to OpenAI tools API format"""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters
            }
        }

    def to_declaration(self) -> Dict[str, Any]:
        """Provider-neutral declaration: {name, description, inputSchema}"""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.parameters,
        }


class ToolDefinition(BaseModel):
    """Tool registration metadata: the schema plus execution limits."""
    model_config = ConfigDict(use_enum_values=True)

    tool_schema: ToolSchema
    category: ToolCategory = ToolCategory.SIMULATED
    max_execution_time_ms: int = Field(
        default=30000,
        description="Maximum execution time in milliseconds"
    )

    @property
    def name(self) -> str:
        return self.tool_schema.name


# =============================================================================
# Tagged argument variants
# =============================================================================

class WeatherArguments(BaseModel):
    location: str = "北京"
    date: Optional[str] = None


class CityInfoArguments(BaseModel):
    city: str = "北京"


class SearchArguments(BaseModel):
    query: str
    search_depth: Literal["basic", "advanced"] = "basic"
    include_domains: List[str] = Field(default_factory=list)
    exclude_domains: List[str] = Field(default_factory=list)
    max_results: int = 5


TOOL_ARGUMENT_MODELS: Dict[str, Type[BaseModel]] = {
    "get_weather": WeatherArguments,
    "get_city_info": CityInfoArguments,
    "tavily_search": SearchArguments,
}


# =============================================================================
# Tool calls and results
# =============================================================================

class ToolCallSource(str, Enum):
    """Where a requested tool call came from"""
    NATIVE = "native"            # structured tool_calls from the provider
    TEXT_MARKER = "text_marker"  # [USE_TOOL:<id>:<json>] found in plain text


class RequestedToolCall(BaseModel):
    """A tool invocation requested by the model, independent of provider style."""
    id: str = Field(..., description="Unique identifier for this tool call")
    name: Optional[str] = Field(None, description="Declared tool name (native calls)")
    tool_id: Optional[int] = Field(None, description="Stored McpTool id (text-marker calls)")
    arguments: Any = Field(default_factory=dict, description="Parsed arguments")
    source: ToolCallSource = ToolCallSource.NATIVE

    def to_openai_format(self) -> Dict[str, Any]:
        """Assistant-message tool_calls entry for the second pass"""
        arguments = self.arguments if isinstance(self.arguments, (dict, list)) else {"input": self.arguments}
        return {
            "id": self.id,
            "type": "function",
            "function": {
                "name": self.name or "",
                "arguments": json.dumps(arguments, ensure_ascii=False),
            },
        }


class ToolResult(BaseModel):
    """Result from tool execution"""
    tool_name: str
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    execution_time_ms: int = 0

    def to_payload(self) -> Any:
        """The JSON value persisted as Message.tool_result"""
        if self.success:
            return self.data
        return {"success": False, "error": self.error}

    def to_message_content(self) -> str:
        """Serialized result for the tool-role message sent to the model"""
        return json.dumps(self.to_payload(), ensure_ascii=False, default=str)
