from datetime import datetime
from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional


def _normalize_email(value):
    if isinstance(value, str):
        return value.strip().lower()
    return value


class UserBase(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    email: EmailStr

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email", mode="before")
    @classmethod
    def lower_email(cls, v):
        return _normalize_email(v)


class UserCreate(UserBase):
    password: str = Field(min_length=6)


class User(UserBase):
    id: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class UserCreatedResponse(BaseModel):
    message: str
    user: User


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def lower_email(cls, v):
        return _normalize_email(v)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=1)


class LogoutRequest(BaseModel):
    refresh_token: Optional[str] = None


class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
