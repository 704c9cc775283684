"""
Pydantic schemas for authentication endpoints (signup and login).

Pydantic validates incoming data automatically — a missing field, a short
password or a non-numeric PIN is a 422 before any service code runs.
"""

import uuid

from pydantic import BaseModel, EmailStr, Field


class SignupRequest(BaseModel):
    """Request body for POST /auth/signup."""
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=8)
    pin: str = Field(pattern=r"^\d{4,6}$", description="4-6 digit payment PIN")


class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    """Response body for successful login — contains the JWT."""
    token: str
    token_type: str = "bearer"


class SignupResponse(BaseModel):
    account_id: uuid.UUID
    email: str
    role: str
    token: str
    token_type: str = "bearer"
