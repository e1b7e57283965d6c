import uuid

from sqlalchemy import Column, Text, Float, TIMESTAMP, ForeignKey, Uuid, Index
from sqlalchemy.orm import relationship

from .base import Base, utcnow


class Course(Base):
    __tablename__ = 'courses'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(Text, nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)


class Enrollment(Base):
    """A student's enrollment in a course, with progress and certificate state."""
    __tablename__ = 'enrollments'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, ForeignKey('users.id'), nullable=False)
    course_id = Column(Uuid, ForeignKey('courses.id'), nullable=False)

    # enrolled, in_progress, completed, dropped
    status = Column(Text, nullable=False, default='enrolled')
    overall_progress = Column(Float, nullable=False, default=0.0)  # 0-100

    completed_at = Column(TIMESTAMP(timezone=True), nullable=True)
    certificate_issued_at = Column(TIMESTAMP(timezone=True), nullable=True)

    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    course = relationship("Course", lazy="joined")

    __table_args__ = (
        Index('idx_enrollments_status', 'status', 'updated_at'),
    )
