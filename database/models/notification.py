import uuid
from typing import Any, Dict

from sqlalchemy import Column, Text, TIMESTAMP, Boolean, Uuid, Index

from .base import Base, JSONType, utcnow, ensure_utc


class Notification(Base):
    """
    In-app notification record.

    One row per dispatched notification. This table is also the
    notification log that detectors query for deduplication, so
    `created_at` always comes from the dispatcher's clock.
    """
    __tablename__ = 'notifications'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False)
    type = Column(Text, nullable=False)
    title = Column(Text, nullable=False)
    message = Column(Text, nullable=False)
    data = Column(JSONType, nullable=False, default=dict)
    priority = Column(Text, nullable=False, default='medium')

    # Channels that were attempted: {"in_app": true, "email": .., "sms": .., "push": ..}
    channels = Column(JSONType, nullable=False, default=dict)

    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(TIMESTAMP(timezone=True), nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        # Dedup lookups: (user, type) within a time window
        Index('idx_notifications_dedup', 'user_id', 'type', 'created_at'),
        Index('idx_notifications_user_unread', 'user_id', 'is_read'),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': str(self.id),
            'user_id': str(self.user_id),
            'type': self.type,
            'title': self.title,
            'message': self.message,
            'data': dict(self.data or {}),
            'priority': self.priority,
            'channels': dict(self.channels or {}),
            'is_read': bool(self.is_read),
            'read_at': ensure_utc(self.read_at),
            'created_at': ensure_utc(self.created_at),
        }
