# app/schemas/user.py
from __future__ import annotations
from typing import Optional
from pydantic import BaseModel, EmailStr, Field

class UserCreate(BaseModel):
    username: str = Field(min_length=3, max_length=64)
    password: str = Field(min_length=6, max_length=128)
    email: EmailStr
    phone: Optional[str] = None

class LoginIn(BaseModel):
    username: str
    password: str

class UserOut(BaseModel):
    id: int
    username: str
    email: str
    phone: Optional[str] = None
    is_admin: bool = False

    model_config = {"from_attributes": True}
