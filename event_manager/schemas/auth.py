"""Pydantic schemas for registration and login."""
from __future__ import annotations
from pydantic import BaseModel, EmailStr, Field

from event_manager.schemas.user import UserOut


class RegisterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class AuthResponse(BaseModel):
    token: str
    user: UserOut
