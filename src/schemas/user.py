"""User schema definitions.

This module defines the User data model and the auth request/response bodies.
"""

import uuid
from datetime import datetime
from typing import Optional

import pytz
from pydantic import BaseModel, Field


class User(BaseModel):
    """Authenticated account."""
    user_id: str = Field(
        description="The unique identifier for the user.",
        default_factory=lambda: str(uuid.uuid4()),
    )
    username: str
    password_hash: str
    role: str = Field(description="'admin', 'teacher' or 'student'")
    display_name: Optional[str] = None
    email: Optional[str] = None
    create_at: str = Field(
        default_factory=lambda: datetime.now(pytz.utc).isoformat()
    )


class UserInfo(BaseModel):
    """Public view of a user, without the password hash."""
    user_id: str
    username: str
    role: str
    display_name: Optional[str] = None
    email: Optional[str] = None


class RegisterRequest(BaseModel):
    username: str = Field(min_length=1, max_length=64)
    password: str = Field(min_length=6)
    role: str = Field(default="student", pattern="^(teacher|student)$")
    display_name: Optional[str] = None
    email: Optional[str] = None


class LoginRequest(BaseModel):
    username: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserInfo
