import uuid

from sqlalchemy import Column, Text, Integer, TIMESTAMP, ForeignKey, Uuid, Index

from .base import Base, utcnow


class UserReferral(Base):
    """Referral program state for a referrer."""
    __tablename__ = 'user_referrals'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey('users.id'), nullable=False, unique=True)
    referral_code = Column(Text, nullable=False)
    total_referrals = Column(Integer, nullable=False, default=0)

    # bronze, silver, gold, platinum
    tier = Column(Text, nullable=False, default='bronze')
    tier_updated_at = Column(TIMESTAMP(timezone=True), nullable=True)

    __table_args__ = (
        Index('idx_user_referrals_tier', 'tier', 'tier_updated_at'),
    )


class UserSubscription(Base):
    __tablename__ = 'user_subscriptions'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey('users.id'), nullable=False)
    plan_name = Column(Text)

    # active, past_due, suspended, cancelled, expired
    status = Column(Text, nullable=False, default='active')
    end_date = Column(TIMESTAMP(timezone=True), nullable=True)
    # When the subscription stopped being active (dunning clock)
    inactive_since = Column(TIMESTAMP(timezone=True), nullable=True)

    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index('idx_subscriptions_status_end', 'status', 'end_date'),
    )
