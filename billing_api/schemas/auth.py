"""
Pydantic schemas for authentication endpoints.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

USERNAME_PATTERN = r"^[a-zA-Z0-9_]+$"


def _validate_password(v: Optional[str]) -> Optional[str]:
    """Validate password length in bytes (bcrypt limit is 72 bytes)."""
    if v is None:
        return v
    password_bytes = v.encode("utf-8")
    if len(password_bytes) > 72:
        raise ValueError("Password must be 72 characters or fewer")
    if len(v) < 6:
        raise ValueError("Password must be at least 6 characters long")
    return v


def _normalize_email(v: Optional[str]) -> Optional[str]:
    return v.strip().lower() if v is not None else v


class SignupRequest(BaseModel):
    """Request schema for account signup."""
    username: str = Field(..., min_length=3, max_length=30, pattern=USERNAME_PATTERN,
                          description="Letters, numbers and underscores, 3-30 characters")
    email: EmailStr = Field(..., description="Account email, stored lowercased")
    password: str = Field(..., description="At least 6 characters, at most 72 bytes")

    @field_validator("password")
    @classmethod
    def validate_password(cls, v):
        return _validate_password(v)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return _normalize_email(v)

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "username": "alice_1",
            "email": "alice@mail.com",
            "password": "secret1"
        }
    })


class LoginRequest(BaseModel):
    """Request schema for login by email or username."""
    email_or_username: str = Field(..., min_length=1, alias="emailOrUsername")
    password: str = Field(..., min_length=1)

    model_config = ConfigDict(populate_by_name=True, json_schema_extra={
        "example": {
            "emailOrUsername": "alice@mail.com",
            "password": "secret1"
        }
    })


class ProfileUpdateRequest(BaseModel):
    """Any subset of username, email and password."""
    username: Optional[str] = Field(None, min_length=3, max_length=30, pattern=USERNAME_PATTERN)
    email: Optional[EmailStr] = None
    password: Optional[str] = None

    @field_validator("password")
    @classmethod
    def validate_password(cls, v):
        return _validate_password(v)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return _normalize_email(v)


class UserOut(BaseModel):
    id: int
    username: Optional[str] = None
    email: str
    stripe_customer_id: Optional[str] = None
    created_at: Optional[datetime] = None


class AuthResponse(BaseModel):
    message: str
    token: str
    token_type: str = "bearer"
    user: UserOut


class UserResponse(BaseModel):
    user: UserOut


class ProfileResponse(BaseModel):
    message: str
    user: UserOut
