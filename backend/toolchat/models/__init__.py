from toolchat.models.user import User
from toolchat.models.system_prompt import SystemPrompt
from toolchat.models.mcp_tool import McpTool
from toolchat.models.chat import Conversation, Message

__all__ = ["User", "SystemPrompt", "McpTool", "Conversation", "Message"]
