"""Referral milestones and subscription lifecycle reminders."""

import logging
from datetime import datetime, timedelta
from typing import List

from database.models import ensure_utc
from database.repository import MarketplaceRepository
from detectors.base import Candidate, Detector
from detectors.finance import due_window
from notification.types import NotificationType

logger = logging.getLogger(__name__)


class ReferralTierDetector(Detector):
    """Congratulates referrers whose tier changed within lookback_hours."""

    name = "referral_tier"

    def find_candidates(self, repo: MarketplaceRepository, now: datetime) -> List[Candidate]:
        referrals = repo.referrals.find_recent_tier_changes(
            self.config.tiers, now - timedelta(hours=self.config.lookback_hours), self.config.limit
        )
        return [
            Candidate(
                user_id=str(referral.user_id),
                notification_type=NotificationType.REFERRAL_TIER_UPGRADED,
                title=f"You reached {referral.tier.title()} tier!",
                message=(
                    f"Thanks to your {referral.total_referrals} referral(s) you are now a "
                    f"{referral.tier.title()} referrer. Keep sharing to unlock more rewards."
                ),
                data={'tier': referral.tier, 'total_referrals': referral.total_referrals},
                dedup_fields=('tier',),
            )
            for referral in referrals
        ]


class SubscriptionDunningDetector(Detector):
    """
    Payment reminders for lapsed subscriptions on each configured day
    after they went inactive. A subscription inactive for exactly N days
    (inactive_since in (now - N - 1 days, now - N days]) gets the day-N
    reminder.
    """

    name = "subscription_dunning"

    def find_candidates(self, repo: MarketplaceRepository, now: datetime) -> List[Candidate]:
        candidates = []
        for day in sorted(set(self.config.reminder_days)):
            subscriptions = repo.subscriptions.find_inactive_since_between(
                self.config.statuses,
                start=now - timedelta(days=day + 1),
                end=now - timedelta(days=day),
                limit=self.config.limit,
            )
            for subscription in subscriptions:
                plan = subscription.plan_name or "subscription"
                candidates.append(Candidate(
                    user_id=str(subscription.user_id),
                    notification_type=NotificationType.SUBSCRIPTION_DUNNING_REMINDER,
                    title="Action needed on your subscription",
                    message=(
                        f"Your {plan} has been inactive for {day} day(s). "
                        "Update your payment method to restore access."
                    ),
                    data={'subscription_id': subscription.id, 'day': day, 'status': subscription.status},
                    dedup_fields=('subscription_id', 'day'),
                ))
        return candidates


class SubscriptionExpiringDetector(Detector):
    name = "subscription_expiring"

    def find_candidates(self, repo: MarketplaceRepository, now: datetime) -> List[Candidate]:
        start, end = due_window(now, self.config.days_before)
        candidates = []
        for subscription in repo.subscriptions.find_active_ending_between(start, end, self.config.limit):
            ends_on = ensure_utc(subscription.end_date).date().isoformat()
            plan = subscription.plan_name or "subscription"
            candidates.append(Candidate(
                user_id=str(subscription.user_id),
                notification_type=NotificationType.SUBSCRIPTION_EXPIRING_SOON,
                title="Subscription ending soon",
                message=f"Your {plan} expires on {ends_on}. Renew now to keep your benefits.",
                data={
                    'subscription_id': subscription.id,
                    'end_date': ends_on,
                    'plan_name': subscription.plan_name,
                },
                dedup_fields=('subscription_id', 'end_date'),
            ))
        return candidates
