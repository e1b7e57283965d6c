from datetime import datetime
from typing import Iterable, List

from sqlalchemy import select

from database.models import UserReferral, UserSubscription
from database.repositories.base import BaseRepository


class ReferralRepository(BaseRepository):
    def find_recent_tier_changes(self, tiers: Iterable[str], since: datetime, limit: int) -> List[UserReferral]:
        stmt = (
            select(UserReferral)
            .where(
                UserReferral.tier.in_(list(tiers)),
                UserReferral.tier_updated_at.is_not(None),
                UserReferral.tier_updated_at >= since,
            )
            .order_by(UserReferral.tier_updated_at)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())


class SubscriptionRepository(BaseRepository):
    def find_inactive_since_between(
        self,
        statuses: Iterable[str],
        start: datetime,
        end: datetime,
        limit: int
    ) -> List[UserSubscription]:
        stmt = (
            select(UserSubscription)
            .where(
                UserSubscription.status.in_(list(statuses)),
                UserSubscription.inactive_since.is_not(None),
                UserSubscription.inactive_since > start,
                UserSubscription.inactive_since <= end,
            )
            .order_by(UserSubscription.inactive_since)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def find_active_ending_between(self, start: datetime, end: datetime, limit: int) -> List[UserSubscription]:
        stmt = (
            select(UserSubscription)
            .where(
                UserSubscription.status == 'active',
                UserSubscription.end_date >= start,
                UserSubscription.end_date < end,
            )
            .order_by(UserSubscription.end_date)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())
