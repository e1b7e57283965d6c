from datetime import datetime
from typing import List

from sqlalchemy import select

from database.models import Rental
from database.repositories.base import BaseRepository

OPEN_RENTAL_STATUSES = ('confirmed', 'active')


class RentalRepository(BaseRepository):
    def find_ending_between(self, start: datetime, end: datetime, limit: int) -> List[Rental]:
        """Open rentals whose end date falls in [start, end)."""
        stmt = (
            select(Rental)
            .where(
                Rental.status.in_(OPEN_RENTAL_STATUSES),
                Rental.end_date >= start,
                Rental.end_date < end,
            )
            .order_by(Rental.end_date)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def find_overdue(self, now: datetime, limit: int) -> List[Rental]:
        stmt = (
            select(Rental)
            .where(Rental.status.in_(OPEN_RENTAL_STATUSES), Rental.end_date < now)
            .order_by(Rental.end_date)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())
