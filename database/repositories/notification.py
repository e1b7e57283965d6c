import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func, update

from database.models import Notification
from database.repositories.base import BaseRepository, as_uuid

logger = logging.getLogger(__name__)


class NotificationRepository(BaseRepository):
    """Access to the notification log (in-app records)."""

    def create(
        self,
        user_id: Any,
        notification_type: str,
        title: str,
        message: str,
        data: Dict[str, Any],
        priority: str,
        channels: Dict[str, bool],
        created_at: datetime,
    ) -> Notification:
        notification = Notification(
            user_id=as_uuid(user_id),
            type=notification_type,
            title=title,
            message=message,
            data=data or {},
            priority=priority,
            channels=channels,
            is_read=False,
            created_at=created_at,
        )
        self.db.add(notification)
        self.db.flush()  # Generate ID
        return notification

    def find_recent(
        self,
        user_id: Any,
        notification_type: str,
        match: Optional[Dict[str, Any]] = None,
        since: Optional[datetime] = None,
    ) -> Optional[Notification]:
        """
        Most recent notification for (user, type) whose `data` carries every
        key/value in `match`, optionally restricted to rows created at or
        after `since`.
        """
        stmt = select(Notification).where(
            Notification.user_id == as_uuid(user_id),
            Notification.type == notification_type,
        )
        if since is not None:
            stmt = stmt.where(Notification.created_at >= since)

        for key, value in (match or {}).items():
            element = Notification.data[key]
            if value is None:
                continue
            if isinstance(value, bool):
                stmt = stmt.where(element.as_boolean() == value)
            elif isinstance(value, int):
                stmt = stmt.where(element.as_integer() == value)
            elif isinstance(value, float):
                stmt = stmt.where(element.as_float() == value)
            else:
                stmt = stmt.where(element.as_string() == str(value))

        stmt = stmt.order_by(Notification.created_at.desc()).limit(1)
        return self.db.execute(stmt).scalars().first()

    def list_for_user(
        self,
        user_id: Any,
        unread_only: bool = False,
        limit: int = 50
    ) -> List[Notification]:
        stmt = select(Notification).where(Notification.user_id == as_uuid(user_id))
        if unread_only:
            stmt = stmt.where(Notification.is_read.is_(False))
        stmt = stmt.order_by(Notification.created_at.desc()).limit(limit)
        return list(self.db.execute(stmt).scalars().all())

    def count_for_user(self, user_id: Any, notification_type: Optional[str] = None) -> int:
        stmt = select(func.count(Notification.id)).where(Notification.user_id == as_uuid(user_id))
        if notification_type:
            stmt = stmt.where(Notification.type == notification_type)
        return self.db.execute(stmt).scalar_one()

    def mark_read(self, notification_id: Any, user_id: Any, read_at: datetime) -> bool:
        stmt = (
            update(Notification)
            .where(
                Notification.id == as_uuid(notification_id),
                Notification.user_id == as_uuid(user_id),
                Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=read_at)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount == 1
