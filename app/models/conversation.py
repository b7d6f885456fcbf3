import enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, ForeignKey, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.db.database import Base
from app.models.user import enum_values


class ConversationType(str, enum.Enum):
    DIRECT = "direct"
    GROUP = "group"


DIRECT_MESSAGE_NAME = "Direct Message"


class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(
        Enum(ConversationType, values_callable=enum_values, native_enum=False, length=20),
        nullable=False,
    )
    name = Column(String(255), nullable=True)  # required for groups only
    avatar_url = Column(String(500), nullable=True)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    participants = relationship(
        "ConversationParticipant",
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by=lambda: [ConversationParticipant.joined_at, ConversationParticipant.user_id],
    )

    __table_args__ = (
        Index("ix_conversations_type_updated", "type", "updated_at"),
    )

    @property
    def display_name(self) -> str:
        return self.name or DIRECT_MESSAGE_NAME


class ConversationParticipant(Base):
    __tablename__ = "conversation_participants"

    conversation_id = Column(
        Integer, ForeignKey("conversations.id", ondelete="CASCADE"), primary_key=True
    )
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    is_active = Column(Boolean, nullable=False, default=True)
    joined_at = Column(DateTime(timezone=True), server_default=func.now())
    # Advisory only; read state lives in message_read_receipts
    last_read_at = Column(DateTime(timezone=True), nullable=True)

    conversation = relationship("Conversation", back_populates="participants")
    user = relationship("User")

    __table_args__ = (
        Index("ix_participants_user_active", "user_id", "is_active"),
    )
