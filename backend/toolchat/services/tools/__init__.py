"""
Tool calling for ToolChat

Main components:
- schema.py: Pydantic models for tool declarations, calls and results
- registry.py: Registry of available tools, built at startup
- executor.py: Tool execution with validation & limits
- builtin.py / search.py: The simulated tools and the Tavily search tool
- text_marker.py: [USE_TOOL:<id>:<json>] prompting and parsing
- orchestrator.py: The two-pass tool calling cycle (imports the completion
  gateway, so it is not re-exported here)
- provider_adapter.py: Provider capabilities (native vs text markers)
"""

from toolchat.services.tools.schema import (
    RequestedToolCall,
    ToolCallSource,
    ToolDefinition,
    ToolResult,
    ToolSchema,
)
from toolchat.services.tools.registry import ToolRegistry
from toolchat.services.tools.executor import ToolExecutor
from toolchat.services.tools.provider_adapter import get_provider_capabilities, ProviderCapabilities

__all__ = [
    "RequestedToolCall",
    "ToolCallSource",
    "ToolDefinition",
    "ToolResult",
    "ToolSchema",
    "ToolRegistry",
    "ToolExecutor",
    "get_provider_capabilities",
    "ProviderCapabilities",
]
