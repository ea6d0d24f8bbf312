"""User database model.

This module defines the User database model using SQLAlchemy.
"""

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from utils.time_utils import utc_now
from .base import Base


class UserModel(Base):
    """User database model."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, index=True, nullable=False)
    email = Column(String(100), unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    display_name = Column(String, nullable=True)

    email_verified = Column(Boolean, nullable=False, default=False)
    verification_token = Column(String, unique=True, nullable=True)
    verification_token_expiry = Column(DateTime, nullable=True)
    last_login_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)
