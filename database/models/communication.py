import uuid

from sqlalchemy import Column, Text, Boolean, TIMESTAMP, ForeignKey, Uuid, Index
from sqlalchemy.orm import relationship

from .base import Base, utcnow


class Conversation(Base):
    """
    Chat conversation. The last message is denormalised onto the row so
    the nudge detector can find stale conversations without a join.
    """
    __tablename__ = 'conversations'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    is_active = Column(Boolean, nullable=False, default=True)
    status = Column(Text, nullable=False, default='active')

    last_message_sender_id = Column(Uuid, ForeignKey('users.id'), nullable=True)
    last_message_content = Column(Text)
    last_message_at = Column(TIMESTAMP(timezone=True), nullable=True)

    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    participants = relationship(
        "ConversationParticipant",
        back_populates="conversation",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index('idx_conversations_last_message', 'status', 'last_message_at'),
    )


class ConversationParticipant(Base):
    __tablename__ = 'conversation_participants'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    conversation_id = Column(Uuid, ForeignKey('conversations.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(Uuid, ForeignKey('users.id'), nullable=False)
    last_read_at = Column(TIMESTAMP(timezone=True), nullable=True)

    conversation = relationship("Conversation", back_populates="participants")


class Message(Base):
    __tablename__ = 'messages'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    conversation_id = Column(Uuid, ForeignKey('conversations.id', ondelete='CASCADE'), nullable=False)
    sender_id = Column(Uuid, ForeignKey('users.id'), nullable=False)
    content = Column(Text)
    is_deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index('idx_messages_created', 'created_at'),
    )


class LiveChatSession(Base):
    """Support live chat session; `pending` means no agent has picked it up."""
    __tablename__ = 'livechat_sessions'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey('users.id'), nullable=True)
    visitor_name = Column(Text)
    # pending, active, closed
    status = Column(Text, nullable=False, default='pending')
    assigned_agent_id = Column(Uuid, ForeignKey('users.id'), nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index('idx_livechat_status_created', 'status', 'created_at'),
    )
