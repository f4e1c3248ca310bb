"""
Tests for the completion gateway.

Tests cover:
- Role mapping (tool messages outside a tool round become system messages)
- Request construction (tools, tool_choice, temperature)
- Native tool call parsing
- Error conversion to CompletionUnavailable
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from toolchat.core.config import Settings
from toolchat.core.errors import CompletionUnavailable
from toolchat.services.completion import CompletionGateway, map_roles, parse_native_tool_calls
from toolchat.services.tools.schema import ToolCallSource


def make_config(**overrides):
    values = {"ENVIRONMENT": "development", "DEBUG": True, "OPENAI_API_KEY": "test-key"}
    values.update(overrides)
    return Settings(**values)


def make_response(content="你好", tool_calls=None):
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(
        choices=[SimpleNamespace(message=message)],
        usage=SimpleNamespace(total_tokens=30, prompt_tokens=20, completion_tokens=10),
    )


def make_tool_call(name="get_city_info", arguments='{"city": "北京"}', call_id="call_abc"):
    return SimpleNamespace(id=call_id, function=SimpleNamespace(name=name, arguments=arguments))


@pytest.fixture
def mock_client():
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=make_response())
    client.close = AsyncMock()
    return client


class TestMapRoles:
    def test_standard_roles_pass_through(self):
        messages = [
            {"role": "system", "content": "s"},
            {"role": "user", "content": "u"},
            {"role": "assistant", "content": "a"},
        ]

        assert map_roles(messages) == messages

    def test_tool_message_outside_tool_round_becomes_system(self):
        """Historical tool messages are sent as prefixed system messages."""
        mapped = map_roles([{"role": "tool", "content": '{"country": "中国"}', "tool_call_id": "call_1"}])

        assert mapped == [{"role": "system", "content": 'Tool result: {"country": "中国"}'}]

    def test_tool_message_in_tool_round_keeps_role(self):
        """The immediate tool answer of a second pass keeps the tool role."""
        mapped = map_roles(
            [
                {"role": "assistant", "content": "", "tool_calls": [{"id": "call_1"}]},
                {"role": "tool", "content": "{}", "tool_call_id": "call_1"},
            ],
            tool_round=True,
        )

        assert mapped[0]["tool_calls"] == [{"id": "call_1"}]
        assert mapped[1] == {"role": "tool", "tool_call_id": "call_1", "content": "{}"}

    def test_tool_message_without_call_id_is_downconverted_in_tool_round(self):
        mapped = map_roles([{"role": "tool", "content": "x"}], tool_round=True)

        assert mapped == [{"role": "system", "content": "Tool result: x"}]

    def test_unknown_role_dropped(self):
        assert map_roles([{"role": "function", "content": "x"}]) == []


class TestParseNativeToolCalls:
    def test_json_arguments(self):
        calls = parse_native_tool_calls([make_tool_call()])

        assert calls[0].id == "call_abc"
        assert calls[0].name == "get_city_info"
        assert calls[0].arguments == {"city": "北京"}
        assert calls[0].source == ToolCallSource.NATIVE

    def test_invalid_json_kept_raw(self):
        calls = parse_native_tool_calls([make_tool_call(arguments="{city: 北京")])

        assert calls[0].arguments == "{city: 北京"

    def test_none(self):
        assert parse_native_tool_calls(None) == []


class TestComplete:
    @pytest.mark.asyncio
    async def test_plain_completion(self, mock_client):
        """A text answer is returned with usage."""
        gateway = CompletionGateway(make_config(), client=mock_client)

        result = await gateway.complete([{"role": "user", "content": "hi"}])

        assert result.text == "你好"
        assert result.wants_tools is False
        assert result.usage["tokens_used"] == 30
        kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "deepseek-chat"
        assert kwargs["temperature"] == 0.7
        assert "tools" not in kwargs
        assert "tool_choice" not in kwargs

    @pytest.mark.asyncio
    async def test_tools_and_temperature_override(self, mock_client):
        """Tools are sent with tool_choice=auto; temperature can be overridden."""
        gateway = CompletionGateway(make_config(), client=mock_client)
        tools = [{"type": "function", "function": {"name": "get_weather", "parameters": {}}}]

        await gateway.complete([{"role": "user", "content": "hi"}], tools=tools, temperature=0.2)

        kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert kwargs["tools"] == tools
        assert kwargs["tool_choice"] == "auto"
        assert kwargs["temperature"] == 0.2

    @pytest.mark.asyncio
    async def test_native_tool_calls(self, mock_client):
        """Structured tool calls are parsed and echoed in the assistant message."""
        mock_client.chat.completions.create = AsyncMock(
            return_value=make_response(content=None, tool_calls=[make_tool_call()])
        )
        gateway = CompletionGateway(make_config(), client=mock_client)

        result = await gateway.complete([{"role": "user", "content": "北京怎么样"}])

        assert result.text == ""
        assert result.wants_tools is True
        assert result.tool_calls[0].name == "get_city_info"
        assert result.assistant_message["tool_calls"][0]["id"] == "call_abc"

    @pytest.mark.asyncio
    async def test_provider_error_raises_unavailable(self, mock_client):
        """Transport and API errors never come back as an empty answer."""
        mock_client.chat.completions.create = AsyncMock(side_effect=RuntimeError("connection reset"))
        gateway = CompletionGateway(make_config(), client=mock_client)

        with pytest.raises(CompletionUnavailable) as exc_info:
            await gateway.complete([{"role": "user", "content": "hi"}])

        assert "connection reset" in exc_info.value.message
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_empty_choices_raises_unavailable(self, mock_client):
        mock_client.chat.completions.create = AsyncMock(
            return_value=SimpleNamespace(choices=[], usage=None)
        )
        gateway = CompletionGateway(make_config(), client=mock_client)

        with pytest.raises(CompletionUnavailable):
            await gateway.complete([{"role": "user", "content": "hi"}])

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        """Without a key no client is built and the call is unavailable."""
        gateway = CompletionGateway(make_config(OPENAI_API_KEY=None))

        with pytest.raises(CompletionUnavailable):
            await gateway.complete([{"role": "user", "content": "hi"}])

    @pytest.mark.asyncio
    async def test_aclose(self, mock_client):
        gateway = CompletionGateway(make_config(), client=mock_client)

        await gateway.aclose()

        mock_client.close.assert_awaited_once()
