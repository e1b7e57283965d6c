import uuid

from sqlalchemy import Column, Text, Numeric, TIMESTAMP, ForeignKey, Uuid, Index

from .base import Base, utcnow


class Order(Base):
    """Supplies order placed by a customer."""
    __tablename__ = 'orders'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    customer_id = Column(Uuid, ForeignKey('users.id'), nullable=False)

    # pending, confirmed, processing, shipped, delivered, cancelled
    status = Column(Text, nullable=False, default='pending')
    # pending, paid, failed, refunded
    payment_status = Column(Text, nullable=False, default='pending')

    total_amount = Column(Numeric(12, 2))
    currency = Column(Text, default='PHP')

    estimated_delivery = Column(TIMESTAMP(timezone=True), nullable=True)
    actual_delivery = Column(TIMESTAMP(timezone=True), nullable=True)

    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index('idx_orders_status_updated', 'status', 'updated_at'),
        Index('idx_orders_customer', 'customer_id', 'status'),
    )
