"""Authentication and user schemas"""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

EMAIL_PATTERN = r'^[^@\s]+@[^@\s]+\.[^@\s]+$'
PHONE_PATTERN = r'^\+?[0-9 ()-]{7,20}$'


class RegisterRequest(BaseModel):
    """Registration payload"""
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=8)
    name: str = Field(..., min_length=2, max_length=100)
    phone_number: str = Field(..., pattern=PHONE_PATTERN)


class LoginRequest(BaseModel):
    """Login payload"""
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=1)


class RefreshTokenRequest(BaseModel):
    """Refresh payload; the expired access token is accepted but not used"""
    token: Optional[str] = None
    refresh_token: str = Field(..., min_length=1)


class LogoutRequest(BaseModel):
    """Logout payload"""
    refresh_token: Optional[str] = None


class UserResponse(BaseModel):
    """User response schema (no credential fields)"""
    id: str
    email: str
    name: str
    phone_number: str
    role: str
    email_confirmed: bool
    is_active: bool
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class AuthResponse(BaseModel):
    """Issued session"""
    user_id: str
    email: str
    name: str
    token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
