# Import all the models, so that Base has them before create_all runs
from toolchat.db.base_class import Base  # noqa

from toolchat.models.user import User  # noqa
from toolchat.models.system_prompt import SystemPrompt  # noqa
from toolchat.models.mcp_tool import McpTool  # noqa
from toolchat.models.chat import Conversation, Message  # noqa
