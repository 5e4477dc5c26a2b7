"""
User database model.

This module defines the User SQLAlchemy model for authentication,
plan tracking and dealer lookup.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum
from sqlalchemy.sql import func
from poultrymitra.app.db.session import Base
from poultrymitra.app.models.enums import UserRole, PlanType


class User(Base):
    """
    User model for farmers, dealers and admins.

    Connected farmers/dealers are not columns here; they live in
    user_memberships so both sides can be updated in one transaction.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    username = Column(String(100), unique=True, index=True, nullable=False)
    name = Column(String(200), nullable=True)
    hashed_password = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    role = Column(Enum(UserRole), default=UserRole.FARMER, nullable=False)
    plan_type = Column(Enum(PlanType), default=PlanType.FREE, nullable=False)

    # Shareable code farmers use to find a dealer (dealers only)
    dealer_code = Column(String(20), unique=True, index=True, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}', role='{self.role.value}')>"
