import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select

from database.models import User, UserRole, UserSettings, PushToken
from database.repositories.base import BaseRepository, as_uuid

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository):
    def get_by_id(self, user_id: Any) -> Optional[User]:
        uid = as_uuid(user_id)
        if uid is None:
            return None
        stmt = select(User).where(User.id == uid)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_display_name(self, user_id: Any, default: str = "Someone") -> str:
        user = self.get_by_id(user_id)
        if user is None:
            return default
        return user.full_name or default

    def get_notification_settings(self, user_id: Any) -> Optional[Dict[str, Any]]:
        """Raw notification preferences document, or None when the user has none."""
        stmt = select(UserSettings.notifications).where(UserSettings.user_id == as_uuid(user_id))
        return self.db.execute(stmt).scalar_one_or_none()

    def get_push_tokens(self, user_id: Any) -> List[str]:
        stmt = select(PushToken.token).where(PushToken.user_id == as_uuid(user_id))
        return list(self.db.execute(stmt).scalars().all())

    def list_active_ids_with_role(self, role: str) -> List[Any]:
        stmt = (
            select(User.id)
            .join(UserRole, UserRole.user_id == User.id)
            .where(UserRole.role == role, User.is_active.is_(True))
            .order_by(User.created_at)
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_active_admin_ids(self) -> List[Any]:
        return self.list_active_ids_with_role('admin')

    def list_opted_in_ids(
        self,
        channel: str,
        category: str,
        role: Optional[str] = None,
        limit: int = 1000
    ) -> List[Any]:
        """
        Active users whose stored preferences explicitly enable `category`
        on `channel`. Filtering happens in Python because the settings
        document is schemaless JSON.
        """
        stmt = (
            select(UserSettings.user_id, UserSettings.notifications)
            .join(User, User.id == UserSettings.user_id)
            .where(User.is_active.is_(True))
        )
        if role:
            stmt = stmt.join(UserRole, UserRole.user_id == User.id).where(UserRole.role == role)

        user_ids = []
        for user_id, prefs in self.db.execute(stmt).all():
            channel_prefs = (prefs or {}).get(channel) or {}
            if channel_prefs.get('enabled') and channel_prefs.get(category):
                user_ids.append(user_id)
                if len(user_ids) >= limit:
                    break
        return user_ids
