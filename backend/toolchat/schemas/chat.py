from typing import Any, List, Optional

from pydantic import Field

from toolchat.schemas.base import CamelModel


class ChatRequest(CamelModel):
    message: str = Field(..., description="User message to send")
    conversation_id: Optional[int] = Field(None, description="Existing conversation, or None to start a new one")
    system_prompt_id: Optional[int] = Field(None, description="Overrides the conversation's system prompt for this turn")
    user_id: Optional[int] = None
    use_tool: bool = Field(False, description="Offer the conversation's enabled tools to the model")


class ToolCallInfo(CamelModel):
    tool_id: Optional[int] = None
    tool_name: str
    parameters: Any = None


class ChatResponse(CamelModel):
    content: str
    conversation_id: int
    tool_call: Optional[ToolCallInfo] = None
    tool_result: Optional[Any] = None
    available_tools: Optional[List[str]] = None
