#!/usr/bin/env python3
"""
Notification Tracker - Deduplication Service

Answers "was this logical event already notified inside its window?" by
reading the notification log (the `notifications` table). There is no
separate tracking table: the Notification row the dispatcher writes is
the record future checks find.

A logical event is identified by a DedupKey: recipient, notification type
and the `data` fields that pin down the entity and its date bucket.

Usage:
    from notification.tracker import NotificationTrackerService, DedupKey

    tracker = NotificationTrackerService(uow_factory, clock)
    key = DedupKey.build(user_id, 'rental_due_soon', {'rental_id': rid, 'end_date': '2025-03-01'})
    if tracker.should_notify(key, timedelta(hours=24)):
        dispatcher.send(...)

The check and the insert are separate transactions; two overlapping runs
can both pass the check.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, ContextManager, Dict, Optional, Tuple, Union

from database.repository import MarketplaceRepository
from notification.errors import DedupCheckFailure
from notification.types import NotificationType, type_value
from scheduler.clock import Clock, SystemClock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DedupKey:
    """Identity of one logical notification event."""
    user_id: str
    notification_type: str
    match: Tuple[Tuple[str, Any], ...] = ()

    @classmethod
    def build(
        cls,
        user_id: Any,
        notification_type: Union[NotificationType, str],
        match: Optional[Dict[str, Any]] = None
    ) -> "DedupKey":
        fields = tuple(sorted((match or {}).items()))
        return cls(str(user_id), type_value(notification_type), fields)

    def match_dict(self) -> Dict[str, Any]:
        return dict(self.match)


class DeduplicationStrategy(ABC):
    """
    Decides whether an earlier notification suppresses a new one.
    """

    @abstractmethod
    def should_allow_notification(
        self,
        existing_notification: Optional[Dict[str, Any]],
        key: DedupKey
    ) -> bool:
        pass


class WindowDeduplicationStrategy(DeduplicationStrategy):
    """Any matching row inside the window suppresses the new send."""

    def should_allow_notification(self, existing_notification, key) -> bool:
        return existing_notification is None


class NotificationTrackerService:
    def __init__(
        self,
        uow_factory: Callable[[], ContextManager[MarketplaceRepository]],
        clock: Optional[Clock] = None,
        strategy: Optional[DeduplicationStrategy] = None
    ):
        self.uow_factory = uow_factory
        self.clock = clock or SystemClock()
        self.strategy = strategy or WindowDeduplicationStrategy()

    def find_previous(self, key: DedupKey, window: timedelta) -> Optional[Dict[str, Any]]:
        """
        Most recent matching notification created at or after now - window.

        Raises:
            DedupCheckFailure: If the notification log could not be read
        """
        since: datetime = self.clock.now() - window
        try:
            with self.uow_factory() as repo:
                row = repo.notifications.find_recent(
                    user_id=key.user_id,
                    notification_type=key.notification_type,
                    match=key.match_dict(),
                    since=since,
                )
                return row.to_dict() if row is not None else None
        except Exception as e:
            raise DedupCheckFailure(
                f"Dedup lookup failed for {key.notification_type} / {key.user_id}: {e}"
            ) from e

    def should_notify(self, key: DedupKey, window: timedelta) -> bool:
        previous = self.find_previous(key, window)
        allowed = self.strategy.should_allow_notification(previous, key)
        if not allowed:
            logger.debug(f"Suppressing duplicate {key.notification_type} for {key.user_id}")
        return allowed
