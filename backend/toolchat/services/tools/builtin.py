"""
Built-in simulated tools: weather lookup and city information.

Both are local handlers. Weather is random within fixed ranges; city info is
a static lookup with an explicit "unknown" record for cities not in the table.
"""

from datetime import date as date_cls
from typing import Any, Dict, Optional
import random

from toolchat.services.tools.schema import ToolCategory, ToolDefinition, ToolSchema


# =============================================================================
# Tool Definitions
# =============================================================================

GET_WEATHER_SCHEMA = ToolSchema(
    name="get_weather",
    description="获取指定地点的天气信息",
    parameters={
        "type": "object",
        "properties": {
            "location": {
                "type": "string",
                "description": "城市名称（如：北京，上海）"
            },
            "date": {
                "type": "string",
                "description": "日期（可选，格式：YYYY-MM-DD）"
            }
        },
        "required": ["location"]
    }
)

GET_WEATHER_DEF = ToolDefinition(
    tool_schema=GET_WEATHER_SCHEMA,
    category=ToolCategory.SIMULATED,
    max_execution_time_ms=5000,
)


GET_CITY_INFO_SCHEMA = ToolSchema(
    name="get_city_info",
    description="获取城市的基本信息",
    parameters={
        "type": "object",
        "properties": {
            "city": {
                "type": "string",
                "description": "城市名称（如：北京，上海，广州）"
            }
        },
        "required": ["city"]
    }
)

GET_CITY_INFO_DEF = ToolDefinition(
    tool_schema=GET_CITY_INFO_SCHEMA,
    category=ToolCategory.SIMULATED,
    max_execution_time_ms=5000,
)


# =============================================================================
# Handlers
# =============================================================================

WEATHER_CONDITIONS = ["晴朗", "多云", "小雨", "大雨", "雷雨", "大雪", "有雾"]

CITY_INFO: Dict[str, Dict[str, str]] = {
    "北京": {
        "country": "中国",
        "population": "21.54 million",
        "area": "16,410 km²",
        "timezone": "UTC+8",
        "famousFor": "故宫，长城，天坛",
    },
    "上海": {
        "country": "中国",
        "population": "26.32 million",
        "area": "6,340 km²",
        "timezone": "UTC+8",
        "famousFor": "外滩，东方明珠，豫园",
    },
    "广州": {
        "country": "中国",
        "population": "15.31 million",
        "area": "7,434 km²",
        "timezone": "UTC+8",
        "famousFor": "广州塔，沙面，陈家祠",
    },
}

UNKNOWN_CITY: Dict[str, str] = {
    "country": "未知",
    "population": "数据不可用",
    "area": "数据不可用",
    "timezone": "未知",
    "famousFor": "未知",
}


async def get_weather(
    location: str = "北京",
    date: Optional[str] = None,
    rng: Optional[random.Random] = None,
    **kwargs: Any,
) -> Dict[str, Any]:
    """Simulated weather report for a location."""
    rng = rng or random
    return {
        "location": location,
        "date": date or date_cls.today().isoformat(),
        "weather": {
            "condition": rng.choice(WEATHER_CONDITIONS),
            "temperature": f"{rng.randint(5, 39)}°C",
            "humidity": f"{rng.randint(40, 99)}%",
            "windSpeed": f"{rng.randint(1, 30)} km/h",
        },
    }


async def get_city_info(city: str = "北京", **kwargs: Any) -> Dict[str, Any]:
    """Static city facts; unknown cities get the 未知 record rather than an error."""
    info = CITY_INFO.get(city, UNKNOWN_CITY)
    return {"city": city, **info}


BUILTIN_TOOLS = [
    (GET_WEATHER_DEF, get_weather),
    (GET_CITY_INFO_DEF, get_city_info),
]
