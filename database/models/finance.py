import uuid

from sqlalchemy import Column, Text, Numeric, TIMESTAMP, ForeignKey, Uuid, Index
from sqlalchemy.orm import relationship

from .base import Base, utcnow


class Loan(Base):
    __tablename__ = 'loans'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    borrower_id = Column(Uuid, ForeignKey('users.id'), nullable=False)
    # pending, approved, disbursed, active, completed, defaulted
    status = Column(Text, nullable=False, default='pending')
    amount = Column(Numeric(12, 2))
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    repayments = relationship("LoanRepayment", back_populates="loan", cascade="all, delete-orphan")


class LoanRepayment(Base):
    """One item of a loan's repayment schedule."""
    __tablename__ = 'loan_repayments'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    loan_id = Column(Uuid, ForeignKey('loans.id', ondelete='CASCADE'), nullable=False)
    due_date = Column(TIMESTAMP(timezone=True), nullable=False)
    amount = Column(Numeric(12, 2))
    # pending, paid, overdue
    status = Column(Text, nullable=False, default='pending')

    loan = relationship("Loan", back_populates="repayments")

    __table_args__ = (
        Index('idx_loan_repayments_due', 'status', 'due_date'),
    )


class SalaryAdvance(Base):
    __tablename__ = 'salary_advances'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    employee_id = Column(Uuid, ForeignKey('users.id'), nullable=False)
    # pending, approved, disbursed, repaid, rejected
    status = Column(Text, nullable=False, default='pending')
    amount = Column(Numeric(12, 2))
    repayment_due_date = Column(TIMESTAMP(timezone=True), nullable=True)
    repaid_at = Column(TIMESTAMP(timezone=True), nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index('idx_salary_advances_due', 'status', 'repayment_due_date'),
    )
