"""
Loan repayment and salary advance reminders.

Due-soon matches items due in [now + N days, now + N + 1 days) and keys
dedup on the ISO due date, so each item is reminded once per due date.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from database.models import ensure_utc
from database.repository import MarketplaceRepository
from detectors.base import Candidate, Detector
from notification.types import NotificationType

logger = logging.getLogger(__name__)


def _amount(value) -> Optional[str]:
    return None if value is None else str(value)


def due_window(now: datetime, days_before: int):
    """[now + N days, now + N + 1 days)"""
    start = now + timedelta(days=days_before)
    return start, start + timedelta(days=1)


class FinanceDueSoonDetector(Detector):
    name = "finance_due_soon"

    def find_candidates(self, repo: MarketplaceRepository, now: datetime) -> List[Candidate]:
        start, end = due_window(now, self.config.days_before)
        candidates = []

        for repayment, loan in repo.finance.find_repayments_due_between(start, end, self.config.limit):
            due = ensure_utc(repayment.due_date).date().isoformat()
            candidates.append(Candidate(
                user_id=str(loan.borrower_id),
                notification_type=NotificationType.LOAN_REPAYMENT_DUE,
                title="Upcoming repayment",
                message=f"Reminder: your loan payment is due on {due}.",
                data={
                    'loan_id': loan.id,
                    'repayment_id': repayment.id,
                    'due_date': due,
                    'amount': _amount(repayment.amount),
                },
                dedup_fields=('repayment_id', 'due_date'),
            ))

        for advance in repo.finance.find_advances_due_between(start, end, self.config.limit):
            due = ensure_utc(advance.repayment_due_date).date().isoformat()
            candidates.append(Candidate(
                user_id=str(advance.employee_id),
                notification_type=NotificationType.SALARY_ADVANCE_DUE,
                title="Upcoming repayment",
                message=f"Reminder: your salary advance repayment is due on {due}.",
                data={'advance_id': advance.id, 'due_date': due, 'amount': _amount(advance.amount)},
                dedup_fields=('advance_id', 'due_date'),
            ))

        return candidates


class FinanceOverdueDetector(Detector):
    name = "finance_overdue"

    def find_candidates(self, repo: MarketplaceRepository, now: datetime) -> List[Candidate]:
        candidates = []

        for repayment, loan in repo.finance.find_repayments_overdue(now, self.config.limit):
            due = ensure_utc(repayment.due_date).date().isoformat()
            candidates.append(Candidate(
                user_id=str(loan.borrower_id),
                notification_type=NotificationType.LOAN_REPAYMENT_OVERDUE,
                title="Payment overdue",
                message=f"Your loan payment due on {due} is overdue. Please settle it as soon as possible.",
                data={
                    'loan_id': loan.id,
                    'repayment_id': repayment.id,
                    'due_date': due,
                    'amount': _amount(repayment.amount),
                },
                dedup_fields=('repayment_id',),
            ))

        for advance in repo.finance.find_advances_overdue(now, self.config.limit):
            due = ensure_utc(advance.repayment_due_date).date().isoformat()
            candidates.append(Candidate(
                user_id=str(advance.employee_id),
                notification_type=NotificationType.SALARY_ADVANCE_OVERDUE,
                title="Payment overdue",
                message=(
                    f"Your salary advance repayment due on {due} is overdue. "
                    "Please settle it as soon as possible."
                ),
                data={'advance_id': advance.id, 'due_date': due, 'amount': _amount(advance.amount)},
                dedup_fields=('advance_id',),
            ))

        return candidates
