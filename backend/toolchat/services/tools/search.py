"""
Tavily web search tool.

Only registered when ``TAVILY_API_KEY`` is configured. The response body is
passed through untouched as the tool result.
"""

from typing import Any, Dict, List, Optional
import logging

import httpx

from toolchat.core.errors import ToolExecutionError
from toolchat.services.tools.schema import ToolCategory, ToolDefinition, ToolSchema

logger = logging.getLogger(__name__)


TAVILY_SEARCH_SCHEMA = ToolSchema(
    name="tavily_search",
    description="使用Tavily搜索引擎搜索互联网上的最新信息",
    parameters={
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "description": "要搜索的查询字符串",
            },
            "search_depth": {
                "type": "string",
                "enum": ["basic", "advanced"],
                "description": "搜索深度，基本或高级",
                "default": "basic",
            },
            "include_domains": {
                "type": "array",
                "items": {"type": "string"},
                "description": "要包含的域名列表",
                "default": [],
            },
            "exclude_domains": {
                "type": "array",
                "items": {"type": "string"},
                "description": "要排除的域名列表",
                "default": [],
            },
            "max_results": {
                "type": "integer",
                "description": "最大返回结果数",
                "default": 5,
            },
        },
        "required": ["query"],
    }
)

TAVILY_SEARCH_DEF = ToolDefinition(
    tool_schema=TAVILY_SEARCH_SCHEMA,
    category=ToolCategory.SEARCH,
    max_execution_time_ms=30000,
)


class TavilySearchClient:
    """
    Thin async client for the Tavily search endpoint.

    Uses a lazily created httpx.AsyncClient that is closed on registry shutdown.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.tavily.com",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {self.api_key}",
                },
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    async def search(
        self,
        query: str,
        search_depth: str = "basic",
        include_domains: Optional[List[str]] = None,
        exclude_domains: Optional[List[str]] = None,
        max_results: int = 5,
        **kwargs: Any,
    ) -> Dict[str, Any]:
        """
        Run a search and return the provider's JSON body.

        Raises:
            ToolExecutionError: on a non-success status or a transport failure
        """
        payload = {
            "query": query,
            "search_depth": search_depth or "basic",
            "include_domains": include_domains or [],
            "exclude_domains": exclude_domains or [],
            "max_results": max_results or 5,
            "api_key": self.api_key,
        }
        logger.info(f"Calling Tavily search with query: {query!r}")

        client = await self._get_client()
        try:
            response = await client.post("/search", json=payload)
        except httpx.HTTPError as e:
            raise ToolExecutionError(
                f"Tavily搜索出错: {type(e).__name__}: {e}",
                tool_name="tavily_search",
            ) from e

        if response.status_code >= 400:
            raise ToolExecutionError(
                f"Tavily搜索出错: Tavily API returned status {response.status_code}",
                tool_name="tavily_search",
                status=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ToolExecutionError(
                "Tavily搜索出错: response was not valid JSON",
                tool_name="tavily_search",
                status=response.status_code,
            ) from e

    async def aclose(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None
