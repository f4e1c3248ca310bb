"""
Tool Registry - the set of callable tools available to this process

The registry is constructed explicitly at application startup (see the
lifespan in ``toolchat.main``) and passed to the executor and orchestrator.
Availability is per-process: conversations only narrow it down to their
enabled subset.
"""

from typing import Dict, Callable, Awaitable, Any, Iterable, List, Optional
from dataclasses import dataclass
import logging

from toolchat.core.config import Settings, settings as default_settings
from toolchat.services.tools.schema import ToolDefinition, ToolSchema

logger = logging.getLogger(__name__)


@dataclass
class RegisteredTool:
    """A tool that has been registered with the registry"""
    definition: ToolDefinition
    handler: Callable[..., Awaitable[Any]]


class ToolRegistry:
    """
    Registry of tool definitions and their handlers.

    Usage:
        registry = ToolRegistry()
        await registry.initialize()
        declarations = registry.list_available()
        openai_tools = registry.get_openai_tools_spec(["get_weather"])
    """

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or default_settings
        self._tools: Dict[str, RegisteredTool] = {}
        self._search_client = None
        self._initialized = False

    async def initialize(self) -> None:
        """
        Register the built-in tools, then any optional remote-backed tools.

        A missing key or a failing optional tool is logged and skipped;
        built-in tools are always available afterwards.
        """
        if self._initialized:
            return

        self._register_builtin_tools()

        if self.config.TAVILY_API_KEY:
            try:
                self._register_search_tool()
            except Exception as e:
                logger.error(f"Failed to register search tool: {e}")
        else:
            logger.info("TAVILY_API_KEY not configured; tavily_search will not be advertised")

        self._initialized = True
        logger.info(f"Tool registry initialized with tools: {self.names()}")

    async def shutdown(self) -> None:
        """Release remote clients and forget all registrations."""
        if self._search_client is not None:
            await self._search_client.aclose()
            self._search_client = None
        self._tools.clear()
        self._initialized = False

    def _register_builtin_tools(self) -> None:
        from toolchat.services.tools.builtin import BUILTIN_TOOLS

        for definition, handler in BUILTIN_TOOLS:
            self.register_tool(definition, handler)

    def _register_search_tool(self) -> None:
        from toolchat.services.tools.search import TAVILY_SEARCH_DEF, TavilySearchClient

        self._search_client = TavilySearchClient(
            api_key=self.config.TAVILY_API_KEY,
            base_url=self.config.TAVILY_BASE_URL,
            timeout=self.config.TOOL_EXECUTION_TIMEOUT,
        )
        self.register_tool(TAVILY_SEARCH_DEF, self._search_client.search)

    def register_tool(
        self,
        definition: ToolDefinition,
        handler: Callable[..., Awaitable[Any]]
    ) -> None:
        """
        Programmatic registration of a tool.

        Args:
            definition: The tool definition
            handler: Async function called with the tool's arguments as keywords
        """
        self._tools[definition.name] = RegisteredTool(
            definition=definition,
            handler=handler
        )
        logger.info(f"Registered tool: {definition.name}")

    def _ensure_populated(self) -> None:
        # Lazy population for callers that never awaited initialize()
        if not self._tools:
            self._register_builtin_tools()

    def get_tool(self, name: str) -> Optional[RegisteredTool]:
        self._ensure_populated()
        return self._tools.get(name)

    def names(self) -> List[str]:
        return list(self._tools.keys())

    def list_available(self) -> List[ToolSchema]:
        """All tool declarations offered by this process."""
        self._ensure_populated()
        return [tool.definition.tool_schema for tool in self._tools.values()]

    def declarations_for(self, names: Iterable[str]) -> List[ToolSchema]:
        """Declarations for the given tool names, skipping unknown names."""
        self._ensure_populated()
        wanted = set(names)
        return [
            tool.definition.tool_schema
            for name, tool in self._tools.items()
            if name in wanted
        ]

    def get_openai_tools_spec(self, names: Optional[Iterable[str]] = None) -> List[Dict[str, Any]]:
        """
        Tools in OpenAI function calling format, suitable for the ``tools`` parameter.
        """
        schemas = self.list_available() if names is None else self.declarations_for(names)
        return [schema.to_openai_format() for schema in schemas]

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        self._ensure_populated()
        return name in self._tools
