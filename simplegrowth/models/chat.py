"""Chat assistant message history."""
from sqlalchemy import Column, String, DateTime, ForeignKey, Text, JSON, Index
from sqlalchemy.sql import func

from simplegrowth.database import Base
from simplegrowth.models.base import generate_id


class ChatMessage(Base):
    """A single user or assistant turn in the assistant conversation."""

    __tablename__ = "chat_messages"

    id = Column(String, primary_key=True, default=lambda: generate_id("msg"))
    organization_id = Column(String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    role = Column(String, nullable=False)  # user, assistant
    content = Column(Text, nullable=False)
    context = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_chat_messages_user_time", "user_id", "created_at"),
    )
