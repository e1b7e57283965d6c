import uuid

from sqlalchemy import Column, Text, TIMESTAMP, ForeignKey, Uuid, Index
from sqlalchemy.orm import relationship

from .base import Base, utcnow


class Job(Base):
    """Job board posting."""
    __tablename__ = 'jobs'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    employer_id = Column(Uuid, ForeignKey('users.id'), nullable=False)
    title = Column(Text, nullable=False)
    # draft, active, closed
    status = Column(Text, nullable=False, default='active')
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    applications = relationship("JobApplication", back_populates="job")


class JobApplication(Base):
    __tablename__ = 'job_applications'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    job_id = Column(Uuid, ForeignKey('jobs.id', ondelete='CASCADE'), nullable=False)
    applicant_id = Column(Uuid, ForeignKey('users.id'), nullable=False)
    # pending, reviewing, shortlisted, interviewed, hired, rejected
    status = Column(Text, nullable=False, default='pending')
    applied_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    job = relationship("Job", back_populates="applications", lazy="joined")

    __table_args__ = (
        Index('idx_job_applications_status', 'status', 'applied_at'),
    )
