"""
Supplies order detectors: abandoned checkouts, processing SLA breaches,
late shipments, delivery confirmation requests and reorder reminders.
"""

import logging
from datetime import datetime, timedelta
from typing import List

from database.models import ensure_utc
from database.repository import MarketplaceRepository
from detectors.base import Candidate, Detector
from notification.types import NotificationPriority, NotificationType

logger = logging.getLogger(__name__)


class AbandonedPaymentDetector(Detector):
    """Orders still unpaid between min_age_minutes and max_age_days after checkout."""

    name = "order_abandoned_payment"

    def find_candidates(self, repo: MarketplaceRepository, now: datetime) -> List[Candidate]:
        orders = repo.orders.find_abandoned_payments(
            created_before=now - timedelta(minutes=self.config.min_age_minutes),
            created_after=now - timedelta(days=self.config.max_age_days),
            limit=self.config.limit,
        )
        return [
            Candidate(
                user_id=str(order.customer_id),
                notification_type=NotificationType.ORDER_PAYMENT_PENDING,
                title="Complete your order",
                message="Your supplies order is still pending payment. Complete checkout to confirm it.",
                data={'order_id': order.id},
                dedup_fields=('order_id',),
            )
            for order in orders
        ]


class OrderProcessingSlaDetector(Detector):
    name = "order_processing_sla"

    def find_candidates(self, repo: MarketplaceRepository, now: datetime) -> List[Candidate]:
        orders = repo.orders.find_processing_before(now - timedelta(days=self.config.sla_days), self.config.limit)
        admins = self.admin_ids(repo) if self.config.notify_admins else []

        candidates = []
        for order in orders:
            candidates.append(Candidate(
                user_id=str(order.customer_id),
                notification_type=NotificationType.ORDER_SLA_ALERT,
                title="Order update",
                message="Your order is taking longer than usual to process. We're on it and will update you soon.",
                data={'order_id': order.id},
                dedup_fields=('order_id',),
            ))
            candidates.extend(self.fan_out(
                admins,
                NotificationType.ORDER_SLA_ALERT,
                "Order SLA alert",
                "An order has been in processing beyond SLA.",
                {'order_id': order.id, 'customer_id': order.customer_id},
                ('order_id',),
                priority=NotificationPriority.HIGH,
            ))
        return candidates


class LateDeliveryDetector(Detector):
    """Tells admins about orders stuck in shipped for more than late_days."""

    name = "order_late_delivery"

    def find_candidates(self, repo: MarketplaceRepository, now: datetime) -> List[Candidate]:
        orders = repo.orders.find_shipped_undelivered(now - timedelta(days=self.config.late_days), self.config.limit)
        if not orders:
            return []

        admins = self.admin_ids(repo)
        if not admins:
            logger.warning(f"{self.name}: {len(orders)} late order(s) but no active admins to notify")
            return []

        candidates = []
        for order in orders:
            candidates.extend(self.fan_out(
                admins,
                NotificationType.ORDER_DELIVERY_LATE_ALERT,
                "Late delivery alert",
                "An order appears to be delayed in shipped status.",
                {'order_id': order.id, 'customer_id': order.customer_id},
                ('order_id',),
            ))
        return candidates


class DeliveryConfirmationDetector(Detector):
    """Asks customers to confirm arrival once the ETA has passed or the shipment has gone stale."""

    name = "order_delivery_confirmation"

    def find_candidates(self, repo: MarketplaceRepository, now: datetime) -> List[Candidate]:
        orders = repo.orders.find_awaiting_delivery_confirmation(
            now, now - timedelta(days=self.config.stale_days), self.config.limit
        )
        return [
            Candidate(
                user_id=str(order.customer_id),
                notification_type=NotificationType.ORDER_DELIVERY_CONFIRMATION,
                title="Confirm delivery",
                message="Has your order arrived? Please confirm delivery in the app.",
                data={'order_id': order.id},
                dedup_fields=('order_id',),
            )
            for order in orders
        ]


class SuppliesReorderDetector(Detector):
    """
    Reminds customers whose most recent delivered order is older than
    reorder_after_days and who have nothing open right now.
    """

    name = "supplies_reorder"

    def find_candidates(self, repo: MarketplaceRepository, now: datetime) -> List[Candidate]:
        deliveries = repo.orders.find_last_deliveries_before(
            now - timedelta(days=self.config.reorder_after_days), self.config.limit
        )

        candidates = []
        for customer_id, order_id, delivered_at in deliveries:
            if repo.orders.has_open_order(customer_id):
                continue
            delivered_on = ensure_utc(delivered_at).date().isoformat()
            candidates.append(Candidate(
                user_id=str(customer_id),
                notification_type=NotificationType.SUPPLIES_REORDER_REMINDER,
                title="Time to restock?",
                message=f"Your last supplies order was delivered on {delivered_on}. Reorder in a few taps.",
                data={'last_order_id': order_id, 'last_delivered_on': delivered_on},
                dedup_fields=('last_order_id',),
            ))
        return candidates
