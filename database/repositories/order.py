import logging
from datetime import datetime
from typing import Any, List, Optional, Tuple

from sqlalchemy import select, func, or_

from database.models import Order
from database.repositories.base import BaseRepository, as_uuid

logger = logging.getLogger(__name__)


class OrderRepository(BaseRepository):
    def find_abandoned_payments(
        self,
        created_before: datetime,
        created_after: datetime,
        limit: int
    ) -> List[Order]:
        """Orders still waiting on payment, created inside (created_after, created_before]."""
        stmt = (
            select(Order)
            .where(
                Order.status.in_(['pending', 'confirmed']),
                Order.payment_status == 'pending',
                Order.created_at <= created_before,
                Order.created_at >= created_after,
            )
            .order_by(Order.created_at)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def find_processing_before(self, updated_before: datetime, limit: int) -> List[Order]:
        stmt = (
            select(Order)
            .where(Order.status == 'processing', Order.updated_at <= updated_before)
            .order_by(Order.updated_at)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def find_shipped_undelivered(
        self,
        updated_before: datetime,
        limit: int,
        paid_only: bool = False
    ) -> List[Order]:
        stmt = select(Order).where(
            Order.status == 'shipped',
            Order.actual_delivery.is_(None),
            Order.updated_at <= updated_before,
        )
        if paid_only:
            stmt = stmt.where(Order.payment_status == 'paid')
        stmt = stmt.order_by(Order.updated_at).limit(limit)
        return list(self.db.execute(stmt).scalars().all())

    def find_awaiting_delivery_confirmation(
        self,
        now: datetime,
        stale_before: datetime,
        limit: int
    ) -> List[Order]:
        """Shipped orders past their ETA, or shipped for longer than the stale cutoff."""
        stmt = (
            select(Order)
            .where(
                Order.status == 'shipped',
                Order.actual_delivery.is_(None),
                or_(
                    Order.estimated_delivery <= now,
                    Order.updated_at <= stale_before,
                ),
            )
            .order_by(Order.updated_at)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def find_last_deliveries_before(
        self,
        delivered_before: datetime,
        limit: int
    ) -> List[Tuple[Any, Any, datetime]]:
        """
        (customer_id, order_id, delivered_at) for customers whose most
        recent delivered order landed before `delivered_before`.
        """
        latest = (
            select(
                Order.customer_id.label('customer_id'),
                func.max(Order.actual_delivery).label('delivered_at'),
            )
            .where(Order.status == 'delivered', Order.actual_delivery.is_not(None))
            .group_by(Order.customer_id)
            .subquery()
        )
        stmt = (
            select(Order.customer_id, Order.id, Order.actual_delivery)
            .join(
                latest,
                (latest.c.customer_id == Order.customer_id)
                & (latest.c.delivered_at == Order.actual_delivery),
            )
            .where(Order.status == 'delivered', latest.c.delivered_at <= delivered_before)
            .order_by(Order.actual_delivery)
            .limit(limit)
        )
        return [tuple(row) for row in self.db.execute(stmt).all()]

    def has_open_order(self, customer_id: Any) -> bool:
        stmt = select(func.count(Order.id)).where(
            Order.customer_id == as_uuid(customer_id),
            Order.status.in_(['pending', 'confirmed', 'processing', 'shipped']),
        )
        return self.db.execute(stmt).scalar_one() > 0

    def mark_delivered(self, order_id: Any, now: datetime) -> bool:
        changed = self._guarded_update(
            Order, order_id, 'shipped',
            status='delivered', actual_delivery=now, updated_at=now
        )
        if changed:
            logger.info(f"Order {order_id}: shipped -> delivered (auto)")
        return changed

    def get_by_id(self, order_id: Any) -> Optional[Order]:
        return self.db.get(Order, as_uuid(order_id))
