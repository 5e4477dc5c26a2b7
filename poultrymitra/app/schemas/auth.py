"""
Authentication Pydantic schemas.

Defines request and response schemas for authentication endpoints.
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from datetime import datetime
from typing import Optional
from poultrymitra.app.models.enums import UserRole, PlanType


class UserRegister(BaseModel):
    """
    Schema for user registration.

    Used by POST /auth/register endpoint.
    Default role is FARMER.
    """
    email: EmailStr = Field(..., description="User email address")
    username: str = Field(..., min_length=3, max_length=50, description="Unique username")
    password: str = Field(..., min_length=6, description="Password (min 6 characters)")
    name: Optional[str] = Field(default=None, max_length=200, description="Display name")
    role: UserRole = Field(default=UserRole.FARMER, description="User role (defaults to FARMER)")
    plan_type: PlanType = Field(default=PlanType.FREE, description="Subscription plan")


class UserLogin(BaseModel):
    """
    Schema for user login.

    Supports login with either username or email.
    """
    username: str = Field(..., description="Username or email")
    password: str = Field(..., description="Password")


class TokenResponse(BaseModel):
    """Returned by successful login/register operations."""
    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    user_id: int = Field(..., description="User ID")
    username: str = Field(..., description="Username")
    email: str = Field(..., description="Email address")
    role: UserRole = Field(..., description="User role")
    dealer_code: Optional[str] = Field(default=None, description="Shareable dealer code (dealers only)")


class UserResponse(BaseModel):
    """Used by GET /auth/me endpoint."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    username: str
    name: Optional[str] = None
    role: UserRole
    plan_type: PlanType
    dealer_code: Optional[str] = None
    is_active: bool
    created_at: datetime
