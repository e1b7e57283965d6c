"""
State-transition detectors.

These write status back to the domain store. Every write is a guarded
UPDATE (`WHERE id = :id AND status = :expected`) in its own transaction;
the notification goes out only when that write changed exactly one row.
"""

import logging
from datetime import datetime, timedelta
from functools import partial
from typing import List

from database.models import Booking, Order, ensure_utc
from database.repository import MarketplaceRepository
from detectors.base import Candidate, Transition, TransitionDetector
from notification.types import NotificationType

logger = logging.getLogger(__name__)


def _booking_transition(booking_id, expected: str, new: str, repo: MarketplaceRepository, now: datetime) -> bool:
    return repo.bookings.transition_status(booking_id, expected, new, now)


def _mark_delivered(order_id, repo: MarketplaceRepository, now: datetime) -> bool:
    return repo.orders.mark_delivered(order_id, now)


class BookingTransitionDetector(TransitionDetector):
    """
    Moves bookings along without human action:

    * pending for longer than cancel_after_hours -> cancelled
    * pending for longer than confirm_after_hours -> confirmed
    * in_progress past start + duration -> completed (when auto_complete)

    Cancellation is evaluated first so a booking older than both cutoffs
    is cancelled, not confirmed.
    """

    name = "booking_transitions"

    def find_transitions(self, repo: MarketplaceRepository, now: datetime) -> List[Transition]:
        cancel_before = now - timedelta(hours=self.config.cancel_after_hours)
        confirm_before = now - timedelta(hours=self.config.confirm_after_hours)

        transitions = []
        for booking in repo.bookings.find_pending_created_before(cancel_before, self.config.limit):
            transitions.append(self._cancel(booking))

        for booking in repo.bookings.find_pending_created_before(
            confirm_before, self.config.limit, created_after=cancel_before
        ):
            transitions.append(self._confirm(booking))

        if self.config.auto_complete:
            for booking in repo.bookings.find_in_progress_started_before(now, self.config.limit):
                ends_at = ensure_utc(booking.booking_date) + timedelta(hours=booking.duration_hours or 1)
                if ends_at <= now:
                    transitions.append(self._complete(booking))

        return transitions

    @staticmethod
    def _data(booking: Booking, status: str) -> dict:
        return {'booking_id': booking.id, 'status': status, 'service_title': booking.service_title}

    def _confirm(self, booking: Booking) -> Transition:
        service = booking.service_title or "Service"
        data = self._data(booking, 'confirmed')
        return Transition(
            entity_id=str(booking.id),
            description=f"auto-confirm booking {booking.id}",
            apply=partial(_booking_transition, booking.id, 'pending', 'confirmed'),
            notifications=[
                Candidate(
                    user_id=str(booking.client_id),
                    notification_type=NotificationType.BOOKING_CONFIRMED,
                    title="Booking Auto-Confirmed",
                    message=f'Your booking for "{service}" has been automatically confirmed.',
                    data=data,
                ),
                Candidate(
                    user_id=str(booking.provider_id),
                    notification_type=NotificationType.BOOKING_CONFIRMED,
                    title="Booking Auto-Confirmed",
                    message=f'A booking for "{service}" has been automatically confirmed.',
                    data=data,
                ),
            ],
        )

    def _cancel(self, booking: Booking) -> Transition:
        service = booking.service_title or "Service"
        data = self._data(booking, 'cancelled')
        return Transition(
            entity_id=str(booking.id),
            description=f"auto-cancel booking {booking.id}",
            apply=partial(_booking_transition, booking.id, 'pending', 'cancelled'),
            notifications=[
                Candidate(
                    user_id=str(booking.client_id),
                    notification_type=NotificationType.BOOKING_CANCELLED,
                    title="Booking Auto-Cancelled",
                    message=f'Your booking for "{service}" has been automatically cancelled due to no confirmation.',
                    data=data,
                ),
                Candidate(
                    user_id=str(booking.provider_id),
                    notification_type=NotificationType.BOOKING_CANCELLED,
                    title="Booking Auto-Cancelled",
                    message=f'A booking for "{service}" was automatically cancelled because it was not confirmed.',
                    data=data,
                ),
            ],
        )

    def _complete(self, booking: Booking) -> Transition:
        service = booking.service_title or "Service"
        return Transition(
            entity_id=str(booking.id),
            description=f"auto-complete booking {booking.id}",
            apply=partial(_booking_transition, booking.id, 'in_progress', 'completed'),
            notifications=[
                Candidate(
                    user_id=str(booking.client_id),
                    notification_type=NotificationType.BOOKING_COMPLETED,
                    title="Booking Completed",
                    message=f'Your booking for "{service}" has been completed. Thank you for using our service!',
                    data=self._data(booking, 'completed'),
                ),
            ],
        )


class OrderAutoDeliverDetector(TransitionDetector):
    """Marks paid orders shipped more than after_days ago as delivered."""

    name = "order_auto_deliver"

    def find_transitions(self, repo: MarketplaceRepository, now: datetime) -> List[Transition]:
        orders = repo.orders.find_shipped_undelivered(
            now - timedelta(days=self.config.after_days), self.config.limit, paid_only=True
        )
        return [self._deliver(order) for order in orders]

    @staticmethod
    def _deliver(order: Order) -> Transition:
        return Transition(
            entity_id=str(order.id),
            description=f"auto-deliver order {order.id}",
            apply=partial(_mark_delivered, order.id),
            notifications=[
                Candidate(
                    user_id=str(order.customer_id),
                    notification_type=NotificationType.ORDER_AUTO_DELIVERED,
                    title="Order marked delivered",
                    message="Your order has been marked as delivered. If this is incorrect, please contact support.",
                    data={'order_id': order.id, 'customer_id': order.customer_id},
                ),
            ],
        )
