from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from toolchat.schemas.base import CamelModel


class MessageResponse(CamelModel):
    id: int
    role: str = Field(..., description="'user', 'assistant', 'system' or 'tool'")
    content: str
    user_id: Optional[int] = None
    conversation_id: int
    tool_call: Optional[Dict[str, Any]] = None
    tool_result: Optional[Any] = None
    timestamp: Optional[datetime] = None


class MessageListResponse(CamelModel):
    messages: List[MessageResponse]
