"""
Per-user notification preferences.

The stored document lives in `user_settings.notifications`:

    {"email": {"enabled": true, "booking_updates": true, ...},
     "sms": {"enabled": true, "urgent_messages": true, ...},
     "push": {...}}

Missing channels and keys fall back to DEFAULT_PREFERENCES key by key.
In-app has no preferences.
"""

import copy
import logging
from typing import Any, Callable, ContextManager, Dict, Optional

from database.repository import MarketplaceRepository
from notification.types import Category, SmsCategory

logger = logging.getLogger(__name__)

PREFERENCE_CHANNELS = ('email', 'sms', 'push')


def _category_defaults() -> Dict[str, bool]:
    prefs = {'enabled': True}
    for category in Category:
        prefs[category.value] = category is not Category.MARKETING
    return prefs


DEFAULT_PREFERENCES: Dict[str, Dict[str, bool]] = {
    'email': _category_defaults(),
    'push': _category_defaults(),
    'sms': {'enabled': True, **{c.value: True for c in SmsCategory}},
}


def default_preferences() -> Dict[str, Dict[str, bool]]:
    return copy.deepcopy(DEFAULT_PREFERENCES)


def merge_preferences(stored: Optional[Dict[str, Any]]) -> Dict[str, Dict[str, bool]]:
    """Overlay a (possibly partial) stored document on the defaults."""
    merged = default_preferences()
    if not isinstance(stored, dict):
        return merged

    for channel in PREFERENCE_CHANNELS:
        channel_prefs = stored.get(channel)
        if not isinstance(channel_prefs, dict):
            continue
        for key, value in channel_prefs.items():
            if value is None:
                continue
            merged[channel][key] = bool(value)
    return merged


class PreferenceStore:
    """Loads merged preferences through a unit-of-work factory."""

    def __init__(self, uow_factory: Callable[[], ContextManager[MarketplaceRepository]]):
        self.uow_factory = uow_factory

    def load(self, user_id: Any) -> Dict[str, Dict[str, bool]]:
        """
        Merged preferences for `user_id`.

        Raises whatever the repository raises; the dispatcher decides how
        a failed load degrades.
        """
        with self.uow_factory() as repo:
            stored = repo.users.get_notification_settings(user_id)
        return merge_preferences(stored)
