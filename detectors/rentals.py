"""Rental return reminders for renters, and optionally item owners."""

import logging
from datetime import datetime
from typing import List

from database.models import Rental, ensure_utc
from database.repository import MarketplaceRepository
from detectors.base import Candidate, Detector
from detectors.finance import due_window
from notification.types import NotificationPriority, NotificationType

logger = logging.getLogger(__name__)


class RentalDueSoonDetector(Detector):
    name = "rental_due_soon"

    def find_candidates(self, repo: MarketplaceRepository, now: datetime) -> List[Candidate]:
        start, end = due_window(now, self.config.days_before)
        candidates = []
        for rental in repo.rentals.find_ending_between(start, end, self.config.limit):
            due = ensure_utc(rental.end_date).date().isoformat()
            candidates.append(Candidate(
                user_id=str(rental.renter_id),
                notification_type=NotificationType.RENTAL_DUE_SOON,
                title="Rental due soon",
                message=f"Reminder: your rental is due on {due}. Please prepare for return.",
                data=self._data(rental, due, 'renter'),
                dedup_fields=('rental_id', 'end_date', 'role'),
            ))
            if self.config.notify_owner and rental.owner_id:
                candidates.append(Candidate(
                    user_id=str(rental.owner_id),
                    notification_type=NotificationType.RENTAL_DUE_SOON,
                    title="Rental due soon",
                    message=f"A rental is due on {due}.",
                    data=self._data(rental, due, 'owner'),
                    dedup_fields=('rental_id', 'end_date', 'role'),
                    priority=NotificationPriority.LOW,
                ))
        return candidates

    @staticmethod
    def _data(rental: Rental, due: str, role: str) -> dict:
        return {'rental_id': rental.id, 'end_date': due, 'role': role, 'item_title': rental.item_title}


class RentalOverdueDetector(Detector):
    name = "rental_overdue"

    def find_candidates(self, repo: MarketplaceRepository, now: datetime) -> List[Candidate]:
        candidates = []
        for rental in repo.rentals.find_overdue(now, self.config.limit):
            due = ensure_utc(rental.end_date).date().isoformat()
            candidates.append(Candidate(
                user_id=str(rental.renter_id),
                notification_type=NotificationType.RENTAL_OVERDUE,
                title="Rental overdue",
                message=f"Your rental due on {due} is overdue. Please return the item as soon as possible.",
                data={'rental_id': rental.id, 'end_date': due, 'role': 'renter', 'item_title': rental.item_title},
                dedup_fields=('rental_id', 'role'),
            ))
            if self.config.notify_owner and rental.owner_id:
                candidates.append(Candidate(
                    user_id=str(rental.owner_id),
                    notification_type=NotificationType.RENTAL_OVERDUE,
                    title="Rental overdue",
                    message=f"A rental due on {due} has not been returned yet.",
                    data={'rental_id': rental.id, 'end_date': due, 'role': 'owner', 'item_title': rental.item_title},
                    dedup_fields=('rental_id', 'role'),
                ))
        return candidates
