import uuid

from sqlalchemy import Column, Text, Float, Integer, TIMESTAMP, ForeignKey, Uuid, Index

from .base import Base, utcnow


class Booking(Base):
    """Service booking between a client and a provider."""
    __tablename__ = 'bookings'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    client_id = Column(Uuid, ForeignKey('users.id'), nullable=False)
    provider_id = Column(Uuid, ForeignKey('users.id'), nullable=False)
    service_id = Column(Uuid, nullable=True)
    service_title = Column(Text)

    # pending, confirmed, in_progress, completed, cancelled
    status = Column(Text, nullable=False, default='pending')
    booking_date = Column(TIMESTAMP(timezone=True), nullable=False)
    duration_hours = Column(Float, nullable=False, default=1.0)

    review_rating = Column(Integer, nullable=True)

    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index('idx_bookings_status_date', 'status', 'booking_date'),
        Index('idx_bookings_status_created', 'status', 'created_at'),
    )


class Escrow(Base):
    """Escrowed payment for a booking, with dispute state flattened in."""
    __tablename__ = 'escrows'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id = Column(Uuid, ForeignKey('bookings.id'), nullable=True)
    client_id = Column(Uuid, ForeignKey('users.id'), nullable=False)
    provider_id = Column(Uuid, ForeignKey('users.id'), nullable=False)

    # held, released, refunded, dispute
    status = Column(Text, nullable=False, default='held')

    dispute_reason = Column(Text)
    dispute_raised_at = Column(TIMESTAMP(timezone=True), nullable=True)
    dispute_evidence_count = Column(Integer, nullable=False, default=0)
    dispute_decided_at = Column(TIMESTAMP(timezone=True), nullable=True)

    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index('idx_escrows_dispute', 'status', 'dispute_raised_at'),
    )
