"""
Tests for the tool registry.

Tests cover:
- Built-in registration on initialize()
- tavily_search only with an API key
- Lazy population and declaration subsets
- Shutdown
"""

import pytest

from toolchat.core.config import Settings
from toolchat.services.tools.registry import ToolRegistry
from toolchat.services.tools.schema import ToolCategory, ToolDefinition, ToolSchema


def make_config(**overrides):
    values = {"ENVIRONMENT": "development", "DEBUG": True, "TAVILY_API_KEY": None}
    values.update(overrides)
    return Settings(**values)


class TestInitialize:
    @pytest.mark.asyncio
    async def test_registers_builtin_tools(self):
        """Built-in tools are available after initialize()."""
        registry = ToolRegistry(make_config())
        await registry.initialize()

        assert "get_weather" in registry
        assert "get_city_info" in registry
        await registry.shutdown()

    @pytest.mark.asyncio
    async def test_search_not_registered_without_key(self):
        """tavily_search is not advertised when no API key is configured."""
        registry = ToolRegistry(make_config())
        await registry.initialize()

        assert "tavily_search" not in registry.names()
        assert [s.name for s in registry.list_available()] == ["get_weather", "get_city_info"]
        await registry.shutdown()

    @pytest.mark.asyncio
    async def test_search_registered_with_key(self):
        """tavily_search is registered when TAVILY_API_KEY is set."""
        registry = ToolRegistry(make_config(TAVILY_API_KEY="tvly-test"))
        await registry.initialize()

        assert "tavily_search" in registry.names()
        await registry.shutdown()

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self):
        """Calling initialize() twice does not duplicate registrations."""
        registry = ToolRegistry(make_config())
        await registry.initialize()
        await registry.initialize()

        assert len(registry) == 2
        await registry.shutdown()


class TestLookup:
    def test_list_available_populates_lazily(self):
        """list_available() works without an explicit initialize()."""
        registry = ToolRegistry(make_config())

        names = [schema.name for schema in registry.list_available()]

        assert names == ["get_weather", "get_city_info"]

    def test_list_available_is_repeatable(self):
        """list_available() has no side effects between calls."""
        registry = ToolRegistry(make_config())

        first = [schema.model_dump() for schema in registry.list_available()]
        second = [schema.model_dump() for schema in registry.list_available()]

        assert first == second

    def test_declarations_for_subset(self):
        """Only the requested names are returned; unknown names are skipped."""
        registry = ToolRegistry(make_config())

        schemas = registry.declarations_for(["get_city_info", "does_not_exist"])

        assert [s.name for s in schemas] == ["get_city_info"]

    def test_openai_tools_spec_format(self):
        """Declarations convert to the OpenAI tools format."""
        registry = ToolRegistry(make_config())

        spec = registry.get_openai_tools_spec(["get_weather"])

        assert spec[0]["type"] == "function"
        assert spec[0]["function"]["name"] == "get_weather"
        assert spec[0]["function"]["parameters"]["type"] == "object"

    def test_declaration_shape(self):
        """Provider-neutral declarations carry name, description and inputSchema."""
        registry = ToolRegistry(make_config())

        declaration = registry.get_tool("get_city_info").definition.tool_schema.to_declaration()

        assert set(declaration) == {"name", "description", "inputSchema"}
        assert "city" in declaration["inputSchema"]["properties"]

    @pytest.mark.asyncio
    async def test_register_custom_tool(self):
        """Tools can be registered programmatically."""
        registry = ToolRegistry(make_config())

        async def echo(**kwargs):
            return kwargs

        registry.register_tool(
            ToolDefinition(
                tool_schema=ToolSchema(name="echo", description="Echo arguments"),
                category=ToolCategory.CUSTOM,
            ),
            echo,
        )

        assert "echo" in registry
        assert await registry.get_tool("echo").handler(a=1) == {"a": 1}


class TestShutdown:
    @pytest.mark.asyncio
    async def test_shutdown_clears_registry_and_closes_search_client(self):
        """shutdown() forgets tools and releases the search client."""
        registry = ToolRegistry(make_config(TAVILY_API_KEY="tvly-test"))
        await registry.initialize()
        search_client = registry._search_client

        await registry.shutdown()

        assert registry.names() == []
        assert registry._search_client is None
        assert search_client._client is None
