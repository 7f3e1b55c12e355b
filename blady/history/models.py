"""History DB model: one row per chat message seen by the bot."""

from sqlalchemy import Boolean, Column, Index, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class Message(Base):
    __tablename__ = "messages"

    id = Column(String(128), primary_key=True)  # Transport message id; re-saving the same id is a no-op
    chat_id = Column(String(128), nullable=False, index=True)
    sender_id = Column(String(128), nullable=False)
    content = Column(Text, nullable=False)
    timestamp = Column(Integer, nullable=False, index=True)  # Unix seconds
    is_from_me = Column(Boolean, nullable=False, default=False)

    __table_args__ = (Index("ix_messages_chat_ts", "chat_id", "timestamp"),)
