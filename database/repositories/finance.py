from datetime import datetime
from typing import List, Tuple

from sqlalchemy import select

from database.models import Loan, LoanRepayment, SalaryAdvance
from database.repositories.base import BaseRepository

ACTIVE_LOAN_STATUSES = ('approved', 'disbursed', 'active')


class FinanceRepository(BaseRepository):
    """Loan repayment schedules and salary advances."""

    def find_repayments_due_between(
        self,
        start: datetime,
        end: datetime,
        limit: int
    ) -> List[Tuple[LoanRepayment, Loan]]:
        stmt = (
            select(LoanRepayment, Loan)
            .join(Loan, Loan.id == LoanRepayment.loan_id)
            .where(
                LoanRepayment.status == 'pending',
                LoanRepayment.due_date >= start,
                LoanRepayment.due_date < end,
                Loan.status.in_(ACTIVE_LOAN_STATUSES),
            )
            .order_by(LoanRepayment.due_date)
            .limit(limit)
        )
        return [tuple(row) for row in self.db.execute(stmt).all()]

    def find_repayments_overdue(self, now: datetime, limit: int) -> List[Tuple[LoanRepayment, Loan]]:
        stmt = (
            select(LoanRepayment, Loan)
            .join(Loan, Loan.id == LoanRepayment.loan_id)
            .where(
                LoanRepayment.status.in_(['pending', 'overdue']),
                LoanRepayment.due_date < now,
                Loan.status.in_(ACTIVE_LOAN_STATUSES),
            )
            .order_by(LoanRepayment.due_date)
            .limit(limit)
        )
        return [tuple(row) for row in self.db.execute(stmt).all()]

    def find_advances_due_between(self, start: datetime, end: datetime, limit: int) -> List[SalaryAdvance]:
        stmt = (
            select(SalaryAdvance)
            .where(
                SalaryAdvance.status.in_(['approved', 'disbursed']),
                SalaryAdvance.repaid_at.is_(None),
                SalaryAdvance.repayment_due_date >= start,
                SalaryAdvance.repayment_due_date < end,
            )
            .order_by(SalaryAdvance.repayment_due_date)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def find_advances_overdue(self, now: datetime, limit: int) -> List[SalaryAdvance]:
        stmt = (
            select(SalaryAdvance)
            .where(
                SalaryAdvance.status.in_(['approved', 'disbursed']),
                SalaryAdvance.repaid_at.is_(None),
                SalaryAdvance.repayment_due_date < now,
            )
            .order_by(SalaryAdvance.repayment_due_date)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())
