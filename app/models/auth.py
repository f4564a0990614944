"""
Authentication, onboarding and password reset request models
"""
from pydantic import BaseModel, EmailStr, Field
from typing import Optional


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class AuthResponse(BaseModel):
    """Authentication response"""
    success: bool
    message: str
    user_id: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str
    password: str


class OnboardingComplete(BaseModel):
    token: str
    organization_name: str = Field(..., max_length=200)
    password: str
