from datetime import datetime
from typing import List

from sqlalchemy import select

from database.models import Enrollment
from database.repositories.base import BaseRepository


class EnrollmentRepository(BaseRepository):
    def find_not_started(self, created_before: datetime, limit: int) -> List[Enrollment]:
        stmt = (
            select(Enrollment)
            .where(
                Enrollment.status.in_(['enrolled', 'in_progress']),
                Enrollment.overall_progress <= 0,
                Enrollment.created_at <= created_before,
            )
            .order_by(Enrollment.created_at)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def find_stalled(self, updated_before: datetime, limit: int) -> List[Enrollment]:
        stmt = (
            select(Enrollment)
            .where(
                Enrollment.status == 'in_progress',
                Enrollment.overall_progress > 0,
                Enrollment.overall_progress < 100,
                Enrollment.updated_at <= updated_before,
            )
            .order_by(Enrollment.updated_at)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def find_completed_without_certificate(
        self,
        completed_before: datetime,
        completed_after: datetime,
        limit: int
    ) -> List[Enrollment]:
        stmt = (
            select(Enrollment)
            .where(
                Enrollment.status == 'completed',
                Enrollment.certificate_issued_at.is_(None),
                Enrollment.completed_at.is_not(None),
                Enrollment.completed_at <= completed_before,
                Enrollment.completed_at >= completed_after,
            )
            .order_by(Enrollment.completed_at)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())
