from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import Optional
from datetime import datetime

class CampusOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    code: str

class RegisterIn(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    name: Optional[str] = Field(default=None, max_length=100)
    campus_id: int
    grad_year: Optional[int] = Field(default=None, ge=1900, le=2100)

    @field_validator('email')
    @classmethod
    def edu_only(cls, v: str) -> str:
        v = v.lower()
        if not v.endswith('.edu'):
            raise ValueError('Must use .edu email address')
        return v

class LoginIn(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)

class RefreshIn(BaseModel):
    refresh_token: str

class UserPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: Optional[str] = None
    avatar: Optional[str] = None

class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: EmailStr
    name: Optional[str] = None
    avatar: Optional[str] = None
    grad_year: Optional[int] = None
    campus: Optional[CampusOut] = None
    role: str
    is_verified: bool
    created_at: Optional[datetime] = None

class TokenOut(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = 'bearer'
    user: UserOut

class AccessTokenOut(BaseModel):
    access_token: str
    token_type: str = 'bearer'

class MeOut(BaseModel):
    user: Optional[UserOut] = None

class ProfileUpdateIn(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    grad_year: Optional[int] = Field(default=None, ge=1900, le=2100)
    avatar: Optional[str] = Field(default=None, max_length=500)

    @field_validator('avatar')
    @classmethod
    def avatar_url(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.startswith(('http://', 'https://')):
            raise ValueError('avatar must be an http(s) URL')
        return v

class PasswordUpdateIn(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=8)

class ActionOkOut(BaseModel):
    ok: bool = True
    message: Optional[str] = None
