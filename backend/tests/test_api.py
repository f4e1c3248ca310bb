"""
Tests for the HTTP API.

Tests cover:
- POST /api/chat (direct answers, tool rounds, provider failures)
- Conversations, messages, system prompts and tool CRUD
- Request validation errors rendered as 400
"""

import pytest

from tests.utils.fakes import native_call_result, text_result, unavailable


async def tool_id(client, name):
    response = await client.get("/api/mcp-tools")
    return next(tool["id"] for tool in response.json()["tools"] if tool["name"] == name)


class TestChatEndpoint:
    @pytest.mark.asyncio
    async def test_chat_creates_conversation(self, client, fake_gateway):
        """POST /api/chat without conversationId starts a new conversation."""
        fake_gateway.queue(text_result("Hello!"))

        response = await client.post("/api/chat", json={"message": "hello"})

        assert response.status_code == 200
        data = response.json()
        assert data["content"] == "Hello!"
        assert "toolCall" not in data

        messages = await client.get("/api/messages", params={"conversationId": data["conversationId"]})
        assert [m["role"] for m in messages.json()["messages"]] == ["user", "assistant"]

    @pytest.mark.asyncio
    async def test_chat_with_tool(self, client, fake_gateway):
        conversation = (await client.post("/api/conversations", json={"title": "weather"})).json()["conversation"]
        weather_id = await tool_id(client, "get_weather")
        await client.patch(f"/api/conversations/{conversation['id']}/tools", json={"enabledTools": [weather_id]})
        fake_gateway.queue(
            native_call_result("get_weather", {"location": "北京"}),
            text_result("北京今天天气不错。"),
        )

        response = await client.post(
            "/api/chat",
            json={"message": "北京天气怎么样", "conversationId": conversation["id"], "useTool": True},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["content"] == "北京今天天气不错。"
        assert data["toolCall"] == {"toolId": weather_id, "toolName": "get_weather", "parameters": {"location": "北京"}}
        assert data["toolResult"]["location"] == "北京"

        messages = (await client.get("/api/messages", params={"conversationId": conversation["id"]})).json()["messages"]
        assert [m["role"] for m in messages] == ["user", "assistant", "tool", "assistant"]
        assert messages[1]["toolCall"]["name"] == "get_weather"
        assert messages[2]["toolResult"]["location"] == "北京"

    @pytest.mark.asyncio
    async def test_provider_failure_returns_503(self, client, fake_gateway):
        """The error body carries the conversation id so the client can retry."""
        fake_gateway.queue(unavailable("provider down"))

        response = await client.post("/api/chat", json={"message": "hello"})

        assert response.status_code == 503
        body = response.json()
        assert body["error"] == "completion_unavailable"
        messages = await client.get("/api/messages", params={"conversationId": body["conversationId"]})
        assert [m["content"] for m in messages.json()["messages"]] == ["hello"]

    @pytest.mark.asyncio
    async def test_empty_message(self, client, fake_gateway):
        response = await client.post("/api/chat", json={"message": ""})

        assert response.status_code == 400
        assert fake_gateway.calls == []

    @pytest.mark.asyncio
    async def test_missing_message(self, client):
        response = await client.post("/api/chat", json={})

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_unknown_conversation(self, client):
        response = await client.post("/api/chat", json={"message": "hi", "conversationId": 9999})

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_unknown_user(self, client, fake_gateway):
        """An unknown userId is a 404, not a database error."""
        response = await client.post("/api/chat", json={"message": "hello", "userId": 999})

        assert response.status_code == 404
        assert response.json() == {"message": "User 999 not found", "error": "not_found"}
        assert fake_gateway.calls == []


class TestConversationEndpoints:
    @pytest.mark.asyncio
    async def test_create_list_rename_delete(self, client):
        created = await client.post("/api/conversations", json={"title": "first"})
        assert created.status_code == 201
        conversation = created.json()["conversation"]
        assert conversation["systemPromptId"] is not None
        assert conversation["enabledTools"] == []

        listed = await client.get("/api/conversations")
        assert [c["id"] for c in listed.json()["conversations"]] == [conversation["id"]]

        renamed = await client.patch(f"/api/conversations/{conversation['id']}", json={"title": "renamed"})
        assert renamed.json()["conversation"]["title"] == "renamed"

        deleted = await client.delete(f"/api/conversations/{conversation['id']}")
        assert deleted.json() == {"success": True}
        assert (await client.get("/api/conversations")).json()["conversations"] == []

    @pytest.mark.asyncio
    async def test_empty_title_rejected(self, client):
        conversation = (await client.post("/api/conversations", json={})).json()["conversation"]

        response = await client.patch(f"/api/conversations/{conversation['id']}", json={"title": ""})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_tools_must_be_array(self, client):
        """PATCH .../tools rejects anything but an array of ids."""
        conversation = (await client.post("/api/conversations", json={})).json()["conversation"]

        response = await client.patch(
            f"/api/conversations/{conversation['id']}/tools", json={"enabledTools": "1,2"}
        )

        assert response.status_code == 400
        assert response.json()["message"] == "enabledTools must be an array of tool IDs"

    @pytest.mark.asyncio
    async def test_delete_unknown(self, client):
        response = await client.delete("/api/conversations/9999")

        assert response.status_code == 404


class TestMessageEndpoint:
    @pytest.mark.asyncio
    async def test_conversation_id_required(self, client):
        response = await client.get("/api/messages")

        assert response.status_code == 400
        assert response.json()["message"] == "Conversation ID is required"


class TestSystemPromptEndpoints:
    @pytest.mark.asyncio
    async def test_seeded_prompts(self, client):
        prompts = (await client.get("/api/system-prompts")).json()["prompts"]

        assert len(prompts) == 3
        assert [p["title"] for p in prompts if p["isDefault"]] == ["通用助手"]

    @pytest.mark.asyncio
    async def test_set_default(self, client):
        """Only one prompt stays flagged as default."""
        created = await client.post(
            "/api/system-prompts", json={"title": "海盗", "content": "像海盗一样说话"}
        )
        assert created.status_code == 201
        prompt_id = created.json()["prompt"]["id"]

        response = await client.post(f"/api/system-prompts/{prompt_id}/set-default")

        assert response.json()["prompt"]["isDefault"] is True
        prompts = (await client.get("/api/system-prompts")).json()["prompts"]
        assert [p["id"] for p in prompts if p["isDefault"]] == [prompt_id]

    @pytest.mark.asyncio
    async def test_update_and_delete(self, client):
        prompt_id = (
            await client.post("/api/system-prompts", json={"title": "t", "content": "c"})
        ).json()["prompt"]["id"]

        updated = await client.patch(f"/api/system-prompts/{prompt_id}", json={"content": "new"})
        assert updated.json()["prompt"]["content"] == "new"

        deleted = await client.delete(f"/api/system-prompts/{prompt_id}")
        assert deleted.status_code == 200
        missing = await client.post(f"/api/system-prompts/{prompt_id}/set-default")
        assert missing.status_code == 404


class TestToolEndpoints:
    @pytest.mark.asyncio
    async def test_seeded_tools(self, client):
        tools = (await client.get("/api/mcp-tools")).json()["tools"]
        enabled = (await client.get("/api/mcp-tools/enabled")).json()["tools"]

        assert {t["name"] for t in tools} == {"get_weather", "get_city_info", "tavily_search"}
        assert {t["name"] for t in enabled} == {"get_weather", "get_city_info"}

    @pytest.mark.asyncio
    async def test_create_update_toggle_delete(self, client):
        created = await client.post(
            "/api/mcp-tools",
            json={"name": "stock_price", "description": "查询股票价格", "configuration": {"inputSchema": {"type": "object"}}},
        )
        assert created.status_code == 201
        tool = created.json()["tool"]
        assert tool["isEnabled"] is True

        updated = await client.patch(f"/api/mcp-tools/{tool['id']}", json={"icon": "chart"})
        assert updated.json()["tool"]["icon"] == "chart"

        toggled = await client.post(f"/api/mcp-tools/{tool['id']}/toggle", json={"isEnabled": False})
        assert toggled.json()["tool"]["isEnabled"] is False

        assert (await client.delete(f"/api/mcp-tools/{tool['id']}")).status_code == 200
        assert (await client.get(f"/api/mcp-tools/{tool['id']}")).status_code == 404

    @pytest.mark.asyncio
    async def test_direct_call(self, client):
        conversation = (await client.post("/api/conversations", json={})).json()["conversation"]
        city_id = await tool_id(client, "get_city_info")

        response = await client.post(
            "/api/mcp-tools/call",
            json={"toolId": city_id, "conversationId": conversation["id"], "parameters": {"city": "北京"}},
        )

        assert response.status_code == 200
        assert response.json()["result"]["country"] == "中国"
        messages = (await client.get("/api/messages", params={"conversationId": conversation["id"]})).json()["messages"]
        assert [m["role"] for m in messages] == ["tool"]

    @pytest.mark.asyncio
    async def test_direct_call_disabled_tool(self, client):
        conversation = (await client.post("/api/conversations", json={})).json()["conversation"]
        search_id = await tool_id(client, "tavily_search")

        response = await client.post(
            "/api/mcp-tools/call",
            json={"toolId": search_id, "conversationId": conversation["id"], "parameters": {"query": "x"}},
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Tool is disabled"
