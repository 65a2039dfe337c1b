"""User model."""

import enum

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from natours.database import Base, utcnow


class Role(str, enum.Enum):
    """Roles a user can hold."""

    USER = "user"
    GUIDE = "guide"
    LEAD_GUIDE = "lead-guide"
    ADMIN = "admin"


class User(Base):
    """Application user."""

    __tablename__ = "user"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(40), nullable=False)
    email = Column(String(256), unique=True, nullable=False, index=True)
    photo = Column(String(256), nullable=True)
    role = Column(String(32), nullable=False, default=Role.USER.value)
    password_hash = Column(String(256), nullable=False)
    password_changed_at = Column(DateTime, nullable=True)
    password_reset_token = Column(String(64), nullable=True, index=True)
    password_reset_expires_at = Column(DateTime, nullable=True)
    login_attempts = Column(Integer, nullable=False, default=0)
    blocked = Column(Boolean, nullable=False, default=False)
    block_expires_at = Column(DateTime, nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
