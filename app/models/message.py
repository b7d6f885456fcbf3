import enum

from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey, Boolean, Enum, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.db.database import Base
from app.models.user import enum_values


class MessageType(str, enum.Enum):
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    SYSTEM = "system"


class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True)
    conversation_id = Column(
        Integer, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False
    )
    sender_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    content = Column(Text, nullable=False)
    message_type = Column(
        Enum(MessageType, values_callable=enum_values, native_enum=False, length=20),
        nullable=False,
        default=MessageType.TEXT,
    )
    is_important = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    sender = relationship("User")
    receipts = relationship(
        "MessageReadReceipt",
        back_populates="message",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_messages_conversation_created", "conversation_id", "created_at"),
        Index("ix_messages_conversation_sender", "conversation_id", "sender_id"),
    )


class MessageReadReceipt(Base):
    """Presence of a row means the user has seen the message. Never updated."""

    __tablename__ = "message_read_receipts"

    message_id = Column(Integer, ForeignKey("messages.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    read_at = Column(DateTime(timezone=True), server_default=func.now())

    message = relationship("Message", back_populates="receipts")

    __table_args__ = (
        Index("ix_receipts_user", "user_id"),
    )
