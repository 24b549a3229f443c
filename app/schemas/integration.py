"""
Portal do Cliente - Integration Config Schemas
"""
from pydantic import BaseModel, EmailStr, Field
from typing import Optional

from app.models.integration import NfeEnvironment


class NfeConfigUpdate(BaseModel):
    environment: NfeEnvironment
    certificate_pass: Optional[str] = None
    version: Optional[int] = None  # Versão lida pelo cliente (detecção de conflito)


class NfeConfigResponse(BaseModel):
    id: Optional[str] = None
    environment: str
    certificate_path: Optional[str] = None
    has_certificate_pass: bool = False
    version: Optional[int] = None
    updated_at: Optional[str] = None


class EmailConfigCreate(BaseModel):
    host: str = Field(..., min_length=1, max_length=255)
    port: int = Field(587, gt=0, le=65535)
    user: Optional[str] = None
    password: Optional[str] = None
    from_address: EmailStr
    secure: bool = False


class EmailConfigResponse(BaseModel):
    id: str
    host: str
    port: int
    user: Optional[str] = None
    from_address: str
    secure: bool
    active: bool
    created_at: Optional[str] = None
