from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from toolchat.schemas.base import CamelModel


class McpToolCreate(CamelModel):
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    icon: Optional[str] = "tool"
    configuration: Optional[Dict[str, Any]] = None
    is_enabled: bool = True
    user_id: Optional[int] = None


class McpToolUpdate(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[str] = None
    configuration: Optional[Dict[str, Any]] = None
    is_enabled: Optional[bool] = None


class McpToolToggle(CamelModel):
    is_enabled: bool


class McpToolCallRequest(CamelModel):
    tool_id: int
    conversation_id: int
    parameters: Any = Field(default_factory=dict)
    user_id: Optional[int] = None


class McpToolResponse(CamelModel):
    id: int
    name: str
    description: str
    icon: str = "tool"
    configuration: Optional[Dict[str, Any]] = None
    user_id: Optional[int] = None
    is_enabled: bool = True
    timestamp: Optional[datetime] = None


class McpToolEnvelope(CamelModel):
    tool: McpToolResponse


class McpToolListResponse(CamelModel):
    tools: List[McpToolResponse]


class McpToolCallResponse(CamelModel):
    result: Any = None
