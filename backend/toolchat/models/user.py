from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import relationship
from toolchat.db.base_class import Base


class User(Base):
    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    password = Column(String, nullable=False)  # opaque; the demo has no authentication

    conversations = relationship("Conversation", back_populates="user", cascade="all, delete-orphan")
    system_prompts = relationship("SystemPrompt", back_populates="user", cascade="all, delete-orphan")
    mcp_tools = relationship("McpTool", back_populates="user", cascade="all, delete-orphan")
