"""
Startup seeding: the demo user, its default system prompts and tool rows.

Runs once from the application lifespan. Every step checks for existing
rows first, so restarting against the same database changes nothing.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from toolchat.core.config import Settings, settings as default_settings
from toolchat.models import User
from toolchat.services.storage import ChatStorage
from toolchat.services.tools.builtin import GET_CITY_INFO_SCHEMA, GET_WEATHER_SCHEMA
from toolchat.services.tools.search import TAVILY_SEARCH_SCHEMA

logger = logging.getLogger(__name__)


DEFAULT_SYSTEM_PROMPTS = [
    {
        "title": "通用助手",
        "content": None,  # CHATBOT_SYSTEM_PROMPT
        "is_default": True,
    },
    {
        "title": "编程助手",
        "content": "你是一名经验丰富的软件工程师。回答编程问题时给出清晰的解释和可运行的代码示例。",
        "is_default": False,
    },
    {
        "title": "翻译助手",
        "content": "你是一名专业翻译。将用户提供的中文翻译成英文，英文翻译成中文，保持原文的语气和格式。",
        "is_default": False,
    },
]

DEFAULT_TOOL_ICONS = {
    GET_WEATHER_SCHEMA.name: "cloud",
    GET_CITY_INFO_SCHEMA.name: "map",
    TAVILY_SEARCH_SCHEMA.name: "search",
}


async def ensure_demo_user(storage: ChatStorage, config: Settings) -> User:
    user = await storage.get_user(config.MOCK_USER_ID)
    if user is not None:
        return user

    user = await storage.get_user_by_username(config.DEMO_USERNAME)
    if user is not None:
        return user

    logger.info(f"Creating demo user {config.DEMO_USERNAME!r}")
    return await storage.create_user(
        username=config.DEMO_USERNAME,
        password=config.DEMO_PASSWORD,
        user_id=config.MOCK_USER_ID,
    )


async def ensure_default_prompts(storage: ChatStorage, user_id: int, config: Settings) -> int:
    """Seed the default prompts for a user that has none. Returns how many were created."""
    if await storage.list_system_prompts(user_id):
        return 0

    for prompt in DEFAULT_SYSTEM_PROMPTS:
        await storage.create_system_prompt(
            user_id=user_id,
            title=prompt["title"],
            content=prompt["content"] or config.CHATBOT_SYSTEM_PROMPT,
            is_default=prompt["is_default"],
        )
    return len(DEFAULT_SYSTEM_PROMPTS)


async def ensure_default_tools(storage: ChatStorage, user_id: int, config: Settings) -> int:
    """Create the built-in tool rows the user is missing. Returns how many were created."""
    existing = {tool.name for tool in await storage.list_tools(user_id)}
    created = 0

    for schema in (GET_WEATHER_SCHEMA, GET_CITY_INFO_SCHEMA, TAVILY_SEARCH_SCHEMA):
        if schema.name in existing:
            continue
        is_enabled = schema.name != TAVILY_SEARCH_SCHEMA.name or bool(config.TAVILY_API_KEY)
        await storage.create_tool(
            user_id=user_id,
            name=schema.name,
            description=schema.description,
            icon=DEFAULT_TOOL_ICONS.get(schema.name, "tool"),
            configuration={"inputSchema": schema.input_schema},
            is_enabled=is_enabled,
        )
        created += 1
    return created


async def seed_demo_data(db: AsyncSession, config: Optional[Settings] = None) -> User:
    """Make sure the demo user exists with its prompts and tools."""
    config = config or default_settings
    storage = ChatStorage(db)

    user = await ensure_demo_user(storage, config)
    prompts = await ensure_default_prompts(storage, user.id, config)
    tools = await ensure_default_tools(storage, user.id, config)

    if prompts or tools:
        logger.info(f"Seeded demo data for user {user.id}: {prompts} prompts, {tools} tools")
    return user
