from datetime import datetime
from typing import List, Optional

from pydantic import Field

from toolchat.schemas.base import CamelModel


class SystemPromptCreate(CamelModel):
    title: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    is_default: bool = False
    user_id: Optional[int] = None


class SystemPromptUpdate(CamelModel):
    title: Optional[str] = None
    content: Optional[str] = None
    is_default: Optional[bool] = None


class SystemPromptResponse(CamelModel):
    id: int
    title: str
    content: str
    user_id: Optional[int] = None
    is_default: bool = False
    timestamp: Optional[datetime] = None


class SystemPromptEnvelope(CamelModel):
    prompt: SystemPromptResponse


class SystemPromptListResponse(CamelModel):
    prompts: List[SystemPromptResponse]
