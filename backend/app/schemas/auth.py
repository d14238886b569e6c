"""
Authentication Schemas

Pydantic models for auth API requests/responses.
"""
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, EmailStr, Field


# =============================================================================
# Request Schemas
# =============================================================================

class AuthLoginRequest(BaseModel):
    """Password sign-in."""
    email: str = Field(..., min_length=1, description="Account email")
    password: str = Field(..., min_length=1, description="Password")


class AuthRegisterRequest(BaseModel):
    """Sign-up request."""
    email: EmailStr = Field(..., description="Email address")
    password: str = Field(..., min_length=8, description="Password (min 8 chars)")
    full_name: str = Field(..., min_length=1, max_length=200, description="Display name")
    phone: str = Field(..., min_length=7, max_length=20, description="Phone number")


# =============================================================================
# Response Schemas
# =============================================================================

class AuthUserResponse(BaseModel):
    """User profile returned after sign-in or from /me."""
    id: str
    email: str
    full_name: str
    phone: str
    balance: Decimal
    created_at: datetime

    model_config = {"from_attributes": True}


class AuthLoginResponse(BaseModel):
    """Response after successful login."""
    user: AuthUserResponse
    message: str = "Login successful"


class AuthLogoutResponse(BaseModel):
    """Response after logout."""
    message: str = "Logged out successfully"


class AuthMeResponse(BaseModel):
    """Response from /me endpoint."""
    user: AuthUserResponse


class AuthRegisterResponse(BaseModel):
    """Response after successful registration."""
    user: AuthUserResponse
    message: str = "Registration successful"
