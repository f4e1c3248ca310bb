from datetime import datetime
from typing import Any, List, Optional

from pydantic import Field

from toolchat.schemas.base import CamelModel


class ConversationCreate(CamelModel):
    title: Optional[str] = None
    user_id: Optional[int] = None


class ConversationUpdate(CamelModel):
    title: str = Field(..., min_length=1)


class ConversationToolsUpdate(CamelModel):
    # Checked in the service so a non-array gets the "must be an array" message
    enabled_tools: Any = Field(..., description="Array of McpTool ids")


class ConversationResponse(CamelModel):
    id: int
    title: str
    user_id: Optional[int] = None
    system_prompt_id: Optional[int] = None
    enabled_tools: List[int] = Field(default_factory=list)
    timestamp: Optional[datetime] = None


class ConversationEnvelope(CamelModel):
    conversation: ConversationResponse


class ConversationListResponse(CamelModel):
    conversations: List[ConversationResponse]
