import uuid

from sqlalchemy import Column, Text, Boolean, TIMESTAMP, ForeignKey, Uuid, Index, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import Base, JSONType, utcnow


class User(Base):
    """
    Marketplace account. Only the contact and role fields the
    notification layer needs are mapped here.
    """
    __tablename__ = 'users'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(Text, nullable=True)
    phone_number = Column(Text, nullable=True)
    first_name = Column(Text)
    last_name = Column(Text)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    # Relationships
    roles = relationship("UserRole", back_populates="user", cascade="all, delete-orphan", lazy="selectin")
    settings = relationship("UserSettings", back_populates="user", uselist=False, cascade="all, delete-orphan")
    push_tokens = relationship("PushToken", back_populates="user", cascade="all, delete-orphan")

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    def has_role(self, role: str) -> bool:
        return any(r.role == role for r in self.roles)


class UserRole(Base):
    __tablename__ = 'user_roles'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    role = Column(Text, nullable=False)  # client, provider, admin, ...

    user = relationship("User", back_populates="roles")

    __table_args__ = (
        UniqueConstraint('user_id', 'role', name='uq_user_role'),
        Index('idx_user_roles_role', 'role'),
    )


class UserSettings(Base):
    """
    Per-user settings document. `notifications` holds the channel
    preferences: {"email": {"enabled": true, "booking_updates": true, ...}, ...}
    """
    __tablename__ = 'user_settings'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True)
    notifications = Column(JSONType, nullable=True)
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="settings")


class PushToken(Base):
    """Registered device token for push delivery."""
    __tablename__ = 'push_tokens'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    token = Column(Text, nullable=False, unique=True)
    platform = Column(Text)  # android, ios, web
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    user = relationship("User", back_populates="push_tokens")
