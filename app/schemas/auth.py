"""
Portal do Cliente - Auth Schemas
"""
from pydantic import BaseModel, EmailStr, Field
from typing import Optional

from app.models.user import UserRole


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    name: str = Field(..., min_length=2, max_length=255)
    role: UserRole = UserRole.CLIENT


class UserResponse(BaseModel):
    id: str
    email: str
    name: str
    role: str
    is_active: bool = True
    created_at: Optional[str] = None
    client_id: Optional[str] = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse
