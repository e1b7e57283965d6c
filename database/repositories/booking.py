import logging
from datetime import datetime
from typing import Any, Iterable, List, Optional

from sqlalchemy import select

from database.models import Booking, Escrow
from database.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository):
    def find_starting_between(
        self,
        start: datetime,
        end: datetime,
        statuses: Iterable[str],
        limit: int
    ) -> List[Booking]:
        stmt = (
            select(Booking)
            .where(
                Booking.status.in_(list(statuses)),
                Booking.booking_date >= start,
                Booking.booking_date <= end,
            )
            .order_by(Booking.booking_date)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def find_pending_created_before(
        self,
        created_before: datetime,
        limit: int,
        created_after: Optional[datetime] = None,
        starting_after: Optional[datetime] = None,
    ) -> List[Booking]:
        stmt = select(Booking).where(
            Booking.status == 'pending',
            Booking.created_at <= created_before,
        )
        if created_after is not None:
            stmt = stmt.where(Booking.created_at > created_after)
        if starting_after is not None:
            stmt = stmt.where(Booking.booking_date >= starting_after)
        stmt = stmt.order_by(Booking.created_at).limit(limit)
        return list(self.db.execute(stmt).scalars().all())

    def find_in_progress_started_before(self, before: datetime, limit: int) -> List[Booking]:
        stmt = (
            select(Booking)
            .where(Booking.status == 'in_progress', Booking.booking_date <= before)
            .order_by(Booking.booking_date)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def find_completed_without_review(
        self,
        updated_from: datetime,
        updated_to: datetime,
        limit: int
    ) -> List[Booking]:
        stmt = (
            select(Booking)
            .where(
                Booking.status == 'completed',
                Booking.updated_at >= updated_from,
                Booking.updated_at <= updated_to,
                Booking.review_rating.is_(None),
            )
            .order_by(Booking.updated_at)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def transition_status(
        self,
        booking_id: Any,
        expected_status: str,
        new_status: str,
        now: datetime
    ) -> bool:
        """Guarded status write; False when another actor moved the booking first."""
        changed = self._guarded_update(
            Booking, booking_id, expected_status,
            status=new_status, updated_at=now
        )
        if changed:
            logger.info(f"Booking {booking_id}: {expected_status} -> {new_status}")
        return changed


class EscrowRepository(BaseRepository):
    def find_unresolved_disputes(self, raised_before: datetime, limit: int) -> List[Escrow]:
        stmt = (
            select(Escrow)
            .where(
                Escrow.status == 'dispute',
                Escrow.dispute_raised_at.is_not(None),
                Escrow.dispute_raised_at <= raised_before,
                Escrow.dispute_decided_at.is_(None),
            )
            .order_by(Escrow.dispute_raised_at)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def find_disputes_without_evidence(self, raised_before: datetime, limit: int) -> List[Escrow]:
        stmt = (
            select(Escrow)
            .where(
                Escrow.status == 'dispute',
                Escrow.dispute_raised_at.is_not(None),
                Escrow.dispute_raised_at <= raised_before,
                Escrow.dispute_decided_at.is_(None),
                Escrow.dispute_evidence_count == 0,
            )
            .order_by(Escrow.dispute_raised_at)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())
