from datetime import datetime
from typing import List

from sqlalchemy import select, func

from database.models import Job, JobApplication
from database.repositories.base import BaseRepository


class JobRepository(BaseRepository):
    def find_pending_applications(
        self,
        applied_before: datetime,
        applied_after: datetime,
        limit: int
    ) -> List[JobApplication]:
        stmt = (
            select(JobApplication)
            .where(
                JobApplication.status == 'pending',
                JobApplication.applied_at <= applied_before,
                JobApplication.applied_at >= applied_after,
            )
            .order_by(JobApplication.applied_at)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def count_active_posted_since(self, since: datetime) -> int:
        stmt = select(func.count(Job.id)).where(Job.status == 'active', Job.created_at >= since)
        return self.db.execute(stmt).scalar_one()

    def list_active_posted_since(self, since: datetime, limit: int = 5) -> List[Job]:
        stmt = (
            select(Job)
            .where(Job.status == 'active', Job.created_at >= since)
            .order_by(Job.created_at.desc())
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())
