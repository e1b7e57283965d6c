import uuid

from sqlalchemy import Column, Text, TIMESTAMP, ForeignKey, Uuid, Index

from .base import Base, utcnow


class Rental(Base):
    """Equipment rental; `end_date` is when the item is due back."""
    __tablename__ = 'rentals'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    renter_id = Column(Uuid, ForeignKey('users.id'), nullable=False)
    owner_id = Column(Uuid, ForeignKey('users.id'), nullable=True)
    item_title = Column(Text)

    # pending, confirmed, active, returned, cancelled
    status = Column(Text, nullable=False, default='pending')
    start_date = Column(TIMESTAMP(timezone=True), nullable=False)
    end_date = Column(TIMESTAMP(timezone=True), nullable=False)

    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index('idx_rentals_status_end', 'status', 'end_date'),
    )
