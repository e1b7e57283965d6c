"""Academy detectors: certificate backlog for admins and student engagement nudges."""

import logging
from datetime import datetime, timedelta
from typing import List

from database.models import Enrollment
from database.repository import MarketplaceRepository
from detectors.base import Candidate, Detector
from notification.types import NotificationType

logger = logging.getLogger(__name__)


def _course_title(enrollment: Enrollment, default: str) -> str:
    if enrollment.course is not None and enrollment.course.title:
        return enrollment.course.title
    return default


class CertificatePendingDetector(Detector):
    """Completed enrollments still waiting for a certificate, between min_hours and max_days old."""

    name = "academy_certificate"

    def find_candidates(self, repo: MarketplaceRepository, now: datetime) -> List[Candidate]:
        if not self.config.notify_admins:
            return []

        enrollments = repo.enrollments.find_completed_without_certificate(
            completed_before=now - timedelta(hours=self.config.min_hours),
            completed_after=now - timedelta(days=self.config.max_days),
            limit=self.config.limit,
        )
        if not enrollments:
            return []

        admins = self.admin_ids(repo)
        candidates = []
        for enrollment in enrollments:
            candidates.extend(self.fan_out(
                admins,
                NotificationType.ACADEMY_CERTIFICATE_PENDING,
                "Certificate pending",
                f'A student completed "{_course_title(enrollment, "a course")}" and is waiting for a certificate.',
                {
                    'enrollment_id': enrollment.id,
                    'course_id': enrollment.course_id,
                    'student_id': enrollment.student_id,
                },
                ('enrollment_id',),
            ))
        return candidates


class AcademyEngagementDetector(Detector):
    name = "academy_engagement"

    def find_candidates(self, repo: MarketplaceRepository, now: datetime) -> List[Candidate]:
        candidates = []

        for enrollment in repo.enrollments.find_not_started(
            now - timedelta(days=self.config.not_started_days), self.config.limit
        ):
            title = _course_title(enrollment, "a course")
            candidates.append(Candidate(
                user_id=str(enrollment.student_id),
                notification_type=NotificationType.ACADEMY_NOT_STARTED,
                title="Start your course",
                message=f'You enrolled in "{title}". Start today and keep your momentum.',
                data=self._data(enrollment),
                dedup_fields=('enrollment_id',),
            ))

        for enrollment in repo.enrollments.find_stalled(
            now - timedelta(days=self.config.stalled_days), self.config.limit
        ):
            title = _course_title(enrollment, "your course")
            progress = round(enrollment.overall_progress or 0)
            candidates.append(Candidate(
                user_id=str(enrollment.student_id),
                notification_type=NotificationType.ACADEMY_PROGRESS_STALLED,
                title="Continue your course",
                message=f'You\'re {progress}% through "{title}". Keep going!',
                data=self._data(enrollment),
                dedup_fields=('enrollment_id',),
            ))

        return candidates

    @staticmethod
    def _data(enrollment: Enrollment) -> dict:
        return {
            'enrollment_id': enrollment.id,
            'course_id': enrollment.course_id,
            'course_title': enrollment.course.title if enrollment.course else None,
        }
