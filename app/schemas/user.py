# backend-server/app/schemas/user.py
from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime

from app.db.models import UserRole

class UserBase(BaseModel):
    email: EmailStr
    full_name: Optional[str] = Field(default=None, max_length=100)
    first_name: Optional[str] = Field(default=None, max_length=50)
    last_name: Optional[str] = Field(default=None, max_length=50)
    company: Optional[str] = Field(default=None, max_length=100)

class UserCreate(UserBase):
    password: str
    role: UserRole

class User(UserBase):
    id: int
    role: str
    signature: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True

class PasswordUpdate(BaseModel):
    current_password: str
    new_password: str

class SignatureUpdate(BaseModel):
    # data:image/png;base64,... or a typed name
    signature: str
