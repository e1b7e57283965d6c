"""Job board detectors: employer follow-ups and the weekly provider digest."""

import logging
from datetime import datetime, timedelta
from typing import List

from database.repository import MarketplaceRepository
from detectors.base import Candidate, Detector
from notification.types import Category, NotificationType

logger = logging.getLogger(__name__)


class JobApplicationFollowupDetector(Detector):
    """Reminds employers of applications left pending for min_days..max_days."""

    name = "job_application_followup"

    def find_candidates(self, repo: MarketplaceRepository, now: datetime) -> List[Candidate]:
        applications = repo.jobs.find_pending_applications(
            applied_before=now - timedelta(days=self.config.min_days),
            applied_after=now - timedelta(days=self.config.max_days),
            limit=self.config.limit,
        )
        candidates = []
        for application in applications:
            job = application.job
            if job is None:
                continue
            candidates.append(Candidate(
                user_id=str(job.employer_id),
                notification_type=NotificationType.JOB_APPLICATION_FOLLOWUP,
                title="Application awaiting review",
                message=f'An application for "{job.title}" is still waiting for your review.',
                data={'application_id': application.id, 'job_id': job.id, 'job_title': job.title},
                dedup_fields=('application_id',),
            ))
        return candidates


class JobDigestDetector(Detector):
    """
    Sends providers who opted into job emails a count of jobs posted in
    the last lookback_days. One digest per provider per dedup window.
    """

    name = "job_digest"

    def find_candidates(self, repo: MarketplaceRepository, now: datetime) -> List[Candidate]:
        since = now - timedelta(days=self.config.lookback_days)
        job_count = repo.jobs.count_active_posted_since(since)
        if job_count == 0:
            return []

        recipients = repo.users.list_opted_in_ids(
            'email', Category.JOB_MATCHES.value, role='provider', limit=self.config.limit
        )
        job_ids = [job.id for job in repo.jobs.list_active_posted_since(since)]

        return [
            Candidate(
                user_id=str(user_id),
                notification_type=NotificationType.JOB_DIGEST,
                title="New jobs this week",
                message=f"{job_count} new job(s) were posted recently. Tap to explore and apply.",
                data={'since': since, 'job_count': job_count, 'job_ids': job_ids},
            )
            for user_id in recipients
        ]
