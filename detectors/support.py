import logging
from datetime import datetime, timedelta
from typing import List

from database.models import ensure_utc
from database.repository import MarketplaceRepository
from detectors.base import Candidate, Detector
from notification.types import NotificationType

logger = logging.getLogger(__name__)


class LiveChatSlaDetector(Detector):
    """Alerts admins when a support chat has waited more than wait_minutes for an agent."""

    name = "livechat_sla"

    def find_candidates(self, repo: MarketplaceRepository, now: datetime) -> List[Candidate]:
        sessions = repo.livechat.find_waiting(
            created_before=now - timedelta(minutes=self.config.wait_minutes),
            created_after=now - timedelta(hours=self.config.lookback_hours),
            limit=self.config.limit,
        )
        if not sessions or not self.config.notify_admins:
            return []

        admins = self.admin_ids(repo)
        if not admins:
            logger.warning(f"{self.name}: {len(sessions)} waiting session(s) but no active admins")
            return []

        candidates = []
        for session in sessions:
            waiting = int((now - ensure_utc(session.created_at)).total_seconds() // 60)
            who = session.visitor_name or "A visitor"
            candidates.extend(self.fan_out(
                admins,
                NotificationType.LIVECHAT_SLA_ALERT,
                "Live chat waiting",
                f"{who} has been waiting {waiting} minutes for an agent.",
                {'session_id': session.id, 'waiting_minutes': waiting},
                ('session_id',),
            ))
        return candidates
