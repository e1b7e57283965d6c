import logging
from datetime import datetime, timedelta
from typing import List

from database.models import Escrow, ensure_utc
from database.repository import MarketplaceRepository
from detectors.base import Candidate, Detector
from notification.types import NotificationType

logger = logging.getLogger(__name__)


class EscrowDisputeDetector(Detector):
    """
    Escalates escrow disputes.

    Disputes open longer than unresolved_days go to admins. Disputes with
    no evidence after evidence_hours prompt both parties to upload some.
    """

    name = "escrow_dispute"

    def find_candidates(self, repo: MarketplaceRepository, now: datetime) -> List[Candidate]:
        candidates = []

        if self.config.notify_admins:
            unresolved = repo.escrows.find_unresolved_disputes(
                now - timedelta(days=self.config.unresolved_days), self.config.limit
            )
            admins = self.admin_ids(repo) if unresolved else []
            for escrow in unresolved:
                candidates.extend(self.fan_out(
                    admins,
                    NotificationType.ESCROW_DISPUTE_UNRESOLVED,
                    "Escrow dispute needs review",
                    f"A dispute has been open for {self.config.unresolved_days}+ day(s). Please review and resolve.",
                    self._data(escrow),
                    ('escrow_id',),
                ))

        for escrow in repo.escrows.find_disputes_without_evidence(
            now - timedelta(hours=self.config.evidence_hours), self.config.limit
        ):
            candidates.extend(self.fan_out(
                [escrow.client_id, escrow.provider_id],
                NotificationType.ESCROW_DISPUTE_EVIDENCE_NEEDED,
                "Add dispute evidence",
                "To help resolve the dispute faster, please upload evidence/details in the escrow dispute screen.",
                self._data(escrow),
                ('escrow_id',),
            ))

        return candidates

    @staticmethod
    def _data(escrow: Escrow) -> dict:
        return {
            'escrow_id': escrow.id,
            'booking_id': escrow.booking_id,
            'raised_at': ensure_utc(escrow.dispute_raised_at),
        }
