"""
Booking detectors: upcoming reminders, review requests, provider
follow-ups for pending requests and overdue completion.
"""

import logging
from datetime import datetime, timedelta
from typing import List

from database.models import Booking, ensure_utc
from database.repository import MarketplaceRepository
from detectors.base import Candidate, Detector
from notification.types import NotificationPriority, NotificationType

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_TITLE = "Service"


def _format_lead(hours: float) -> str:
    if float(hours).is_integer():
        return f"{int(hours)}h"
    return f"{int(hours * 60)}m"


def _format_when(value: datetime) -> str:
    return value.strftime("%Y-%m-%d at %H:%M UTC")


class BookingReminderDetector(Detector):
    """
    Reminds both parties ahead of a booking. One pass per configured lead
    time (24h and 2h by default), each matching bookings that start within
    +-window_minutes of now + lead.
    """

    name = "booking_reminder"

    def find_candidates(self, repo: MarketplaceRepository, now: datetime) -> List[Candidate]:
        window = timedelta(minutes=self.config.window_minutes)
        candidates = []

        for lead in self.config.lead_hours:
            target = now + timedelta(hours=lead)
            reminder_type = _format_lead(lead)
            bookings = repo.bookings.find_starting_between(
                target - window, target + window, ('pending', 'confirmed'), self.config.limit
            )
            for booking in bookings:
                candidates.extend(self._reminders(booking, reminder_type))

        return candidates

    def _reminders(self, booking: Booking, reminder_type: str) -> List[Candidate]:
        starts_at = ensure_utc(booking.booking_date)
        service = booking.service_title or DEFAULT_SERVICE_TITLE
        data = {
            'booking_id': booking.id,
            'status': booking.status,
            'service_title': booking.service_title,
            'reminder_type': reminder_type,
            'booking_date': starts_at,
        }
        dedup = ('booking_id', 'reminder_type')
        return [
            Candidate(
                user_id=str(booking.client_id),
                notification_type=NotificationType.BOOKING_CREATED,
                title=f"Reminder: Your booking is in {reminder_type}",
                message=f'Your booking for "{service}" is scheduled for {_format_when(starts_at)}.',
                data=data,
                dedup_fields=dedup,
            ),
            Candidate(
                user_id=str(booking.provider_id),
                notification_type=NotificationType.BOOKING_CREATED,
                title=f"Reminder: You have a booking in {reminder_type}",
                message=f'You have a booking for "{service}" scheduled for {_format_when(starts_at)}.',
                data=data,
                dedup_fields=dedup,
            ),
        ]


class ReviewRequestDetector(Detector):
    """Asks clients to review bookings completed min_days..max_days ago."""

    name = "review_request"

    def find_candidates(self, repo: MarketplaceRepository, now: datetime) -> List[Candidate]:
        bookings = repo.bookings.find_completed_without_review(
            updated_from=now - timedelta(days=self.config.max_days),
            updated_to=now - timedelta(days=self.config.min_days),
            limit=self.config.limit,
        )
        return [
            Candidate(
                user_id=str(booking.client_id),
                notification_type=NotificationType.BOOKING_COMPLETED,
                title="How was your service?",
                message=(
                    f'Please share your experience with "{booking.service_title or DEFAULT_SERVICE_TITLE}". '
                    "Your feedback helps us improve!"
                ),
                data={
                    'booking_id': booking.id,
                    'status': booking.status,
                    'service_title': booking.service_title,
                    'reminder_type': 'review_request',
                },
                dedup_fields=('booking_id', 'reminder_type'),
                priority=NotificationPriority.LOW,
            )
            for booking in bookings
        ]


class BookingFollowupDetector(Detector):
    """
    Nudges providers about booking requests left pending for more than
    pending_hours. Bookings starting within soon_hours get a second,
    more urgent reminder.
    """

    name = "booking_followup"

    def find_candidates(self, repo: MarketplaceRepository, now: datetime) -> List[Candidate]:
        bookings = repo.bookings.find_pending_created_before(
            created_before=now - timedelta(hours=self.config.pending_hours),
            limit=self.config.limit,
            starting_after=now,
        )
        soon_cutoff = now + timedelta(hours=self.config.soon_hours)

        candidates = []
        for booking in bookings:
            data = {'booking_id': booking.id, 'status': booking.status}
            candidates.append(Candidate(
                user_id=str(booking.provider_id),
                notification_type=NotificationType.BOOKING_CONFIRMATION_NEEDED,
                title="Booking needs confirmation",
                message="You have a pending booking request. Please confirm or decline to avoid auto-cancellation.",
                data=data,
                dedup_fields=('booking_id',),
                priority=NotificationPriority.HIGH,
            ))
            if ensure_utc(booking.booking_date) <= soon_cutoff:
                candidates.append(Candidate(
                    user_id=str(booking.provider_id),
                    notification_type=NotificationType.BOOKING_PENDING_SOON,
                    title="Booking is coming up",
                    message="A pending booking is scheduled soon. Please confirm or decline so the client can plan.",
                    data=data,
                    dedup_fields=('booking_id',),
                    priority=NotificationPriority.HIGH,
                ))
        return candidates


class BookingOverdueDetector(Detector):
    """
    Flags confirmed or in-progress bookings still open after
    start + duration + grace. Notifies both parties, and admins when
    notify_admins is set.
    """

    name = "booking_overdue"

    def find_candidates(self, repo: MarketplaceRepository, now: datetime) -> List[Candidate]:
        grace = timedelta(minutes=self.config.grace_minutes)
        # Any overdue booking started at least `grace` ago
        bookings = repo.bookings.find_starting_between(
            now - timedelta(hours=self.config.lookback_hours),
            now - grace,
            ('confirmed', 'in_progress'),
            self.config.limit,
        )
        admins = self.admin_ids(repo) if self.config.notify_admins else []

        candidates = []
        for booking in bookings:
            due_at = ensure_utc(booking.booking_date) + timedelta(hours=booking.duration_hours or 1) + grace
            if now < due_at:
                continue

            for user_id, role in ((booking.client_id, 'client'), (booking.provider_id, 'provider')):
                candidates.append(Candidate(
                    user_id=str(user_id),
                    notification_type=NotificationType.BOOKING_OVERDUE_COMPLETION,
                    title="Booking needs update",
                    message=(
                        "This booking appears to be past its scheduled end time. "
                        "Please update the booking status or contact support."
                    ),
                    data={'booking_id': booking.id, 'due_at': due_at, 'role': role},
                    dedup_fields=('booking_id',),
                ))

            candidates.extend(self.fan_out(
                admins,
                NotificationType.BOOKING_OVERDUE_ADMIN_ALERT,
                "Overdue booking alert",
                "A booking appears overdue and may require intervention.",
                {'booking_id': booking.id, 'due_at': due_at},
                ('booking_id',),
            ))

        return candidates
