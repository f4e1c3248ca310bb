from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from toolchat.db.base_class import Base


class Conversation(Base):
    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    system_prompt_id = Column(Integer, ForeignKey("system_prompts.id", ondelete="SET NULL"), nullable=True)
    enabled_tools = Column(JSON, nullable=False, default=list)  # McpTool ids; stale ids are filtered at use time
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    messages = relationship(
        "Message",
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Message.id",
    )
    user = relationship("User", back_populates="conversations")


class Message(Base):
    id = Column(Integer, primary_key=True, index=True)
    role = Column(String, nullable=False)  # 'system', 'user', 'assistant' or 'tool'
    content = Column(Text, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    conversation_id = Column(Integer, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True)
    tool_call = Column(JSON, nullable=True)  # {toolId, name, parameters}
    tool_result = Column(JSON, nullable=True)
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    conversation = relationship("Conversation", back_populates="messages")


Index('idx_messages_conversation_order', Message.conversation_id, Message.id)
