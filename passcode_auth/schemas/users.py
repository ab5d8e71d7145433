from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class UserResponse(BaseModel):
    id: int
    email: str
    name: Optional[str] = None
    email_verified: bool = False
    created_at: datetime
    updated_at: datetime


class SignUpRequest(BaseModel):
    email: str = Field(max_length=255)
    password: str = Field(min_length=1, max_length=1024)
    name: Optional[str] = Field(default=None, max_length=255)


class PasswordSignInRequest(BaseModel):
    email: str = Field(max_length=255)
    password: str = Field(min_length=1, max_length=1024)
