"""Authentication schemas."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field


class SignupRequest(BaseModel):
    """Schema for user signup."""
    name: str = Field(..., min_length=1, description="Name is required")
    email: EmailStr
    password: str = Field(..., min_length=8, description="Password must be at least 8 characters")


class LoginRequest(BaseModel):
    """Schema for user login."""
    email: EmailStr
    password: str


class UserAuthInfo(BaseModel):
    """User info returned after auth."""
    id: str
    email: str
    name: Optional[str] = None
    role: str
    organization_id: Optional[str] = None
    email_verified: Optional[datetime] = None

    model_config = {"from_attributes": True}


class AuthResponse(BaseModel):
    """Schema for authentication response."""
    access_token: str
    token_type: str = "bearer"
    user: UserAuthInfo


class MessageResponse(BaseModel):
    """Generic success message."""
    success: bool = True
    message: str


class ForgotPasswordRequest(BaseModel):
    """Schema for forgot password request."""
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    """Schema for reset password request."""
    token: str = Field(..., min_length=1, description="Reset token is required")
    password: str = Field(..., min_length=8, description="Password must be at least 8 characters")


class TokenValidityResponse(BaseModel):
    valid: bool


class VerifyEmailRequest(BaseModel):
    token: str = Field(..., min_length=1, description="Verification token is required")


class ResendVerificationRequest(BaseModel):
    email: EmailStr
