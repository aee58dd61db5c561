"""User model"""

import uuid

from sqlalchemy import Column, String, Boolean, DateTime, Index
from sqlalchemy.orm import relationship

from mango.core.clock import utc_now
from mango.core.database import Base


class Role:
    """Application-wide roles"""
    SUPER_ADMIN = "SuperAdmin"
    ADMIN = "Admin"
    MANAGER = "Manager"
    CUSTOMER = "Customer"
    GUEST = "Guest"

    ALL = (SUPER_ADMIN, ADMIN, MANAGER, CUSTOMER, GUEST)
    ADMINISTRATIVE = (SUPER_ADMIN, ADMIN)


class User(Base):
    """Registered customer or staff identity"""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, nullable=False)
    name = Column(String(100), nullable=False)
    phone_number = Column(String(32), nullable=False, default="")
    password_hash = Column(String(255), nullable=False)
    salt = Column(String(64), nullable=False)
    profile_image_url = Column(String(512), nullable=True)
    role = Column(String(20), default=Role.CUSTOMER, nullable=False)
    email_confirmed = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    refresh_tokens = relationship("RefreshToken", back_populates="user")

    __table_args__ = (
        Index('idx_users_email', 'email'),
        Index('idx_users_role', 'role'),
    )

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"
