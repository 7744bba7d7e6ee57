"""
SQLAlchemy Models for Accounts & Feature Permissions

A user's permission matrix is stored one row per feature in user_permission;
permissions.py turns those rows into a typed mapping.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from models import Base, JSONList


class User(Base):
    """User account model"""
    __tablename__ = "user"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="user", index=True)  # user, admin, reseller
    account_role = Column(String(20), nullable=False, default="admin")  # admin, manager, agent
    company = Column(String(255), nullable=True)
    contact_phone = Column(String(50), nullable=True)
    plan_id = Column(String(36), ForeignKey("plan.id", ondelete="SET NULL"), nullable=True)
    credits_available = Column(Integer, nullable=False, default=0)
    credits_used = Column(Integer, nullable=False, default=0)
    channels_enabled = Column(JSONList, nullable=False, default=list)
    status = Column(String(20), nullable=False, default="active")  # active, inactive
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login_at = Column(DateTime, nullable=True)

    # Relationships
    permission_rows = relationship("UserPermission", back_populates="user", cascade="all, delete-orphan")
    reseller_profile = relationship("Reseller", back_populates="user", uselist=False)

    @property
    def is_platform_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_active(self) -> bool:
        return self.status == "active"


class UserPermission(Base):
    """Per-feature grants for each sub-role of a user's account"""
    __tablename__ = "user_permission"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True)
    feature = Column(String(100), nullable=False)
    admin = Column(Boolean, nullable=False, default=False)
    manager = Column(Boolean, nullable=False, default=False)
    agent = Column(Boolean, nullable=False, default=False)

    user = relationship("User", back_populates="permission_rows")

    # One entry per feature per user
    __table_args__ = (
        Index("uq_user_feature", "user_id", "feature", unique=True),
    )
