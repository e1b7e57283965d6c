from datetime import datetime
from typing import List

from sqlalchemy import select

from database.models import Conversation, Message, LiveChatSession
from database.repositories.base import BaseRepository


class ConversationRepository(BaseRepository):
    def find_stale_unread(
        self,
        last_message_before: datetime,
        last_message_after: datetime,
        limit: int
    ) -> List[Conversation]:
        """
        Active conversations whose last message is older than
        `last_message_before` (but not older than `last_message_after`).
        Read state is checked per participant by the caller.
        """
        stmt = (
            select(Conversation)
            .where(
                Conversation.is_active.is_(True),
                Conversation.status == 'active',
                Conversation.last_message_at.is_not(None),
                Conversation.last_message_sender_id.is_not(None),
                Conversation.last_message_at <= last_message_before,
                Conversation.last_message_at >= last_message_after,
            )
            .order_by(Conversation.last_message_at.desc())
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())


class MessageRepository(BaseRepository):
    def find_created_since(self, since: datetime, limit: int) -> List[Message]:
        stmt = (
            select(Message)
            .where(Message.created_at >= since, Message.is_deleted.is_(False))
            .order_by(Message.created_at)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())


class LiveChatRepository(BaseRepository):
    def find_waiting(self, created_before: datetime, created_after: datetime, limit: int) -> List[LiveChatSession]:
        """Sessions nobody has picked up, opened inside [created_after, created_before]."""
        stmt = (
            select(LiveChatSession)
            .where(
                LiveChatSession.status == 'pending',
                LiveChatSession.assigned_agent_id.is_(None),
                LiveChatSession.created_at <= created_before,
                LiveChatSession.created_at >= created_after,
            )
            .order_by(LiveChatSession.created_at)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())
