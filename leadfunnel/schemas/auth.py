"""
Pydantic schemas for session login
"""

from pydantic import BaseModel, EmailStr, Field
from typing import Optional


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)
    tenant_domain: Optional[str] = Field(default=None, max_length=255)
