from pydantic import BaseModel, EmailStr, field_validator, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Literal, Optional


class UserCreate(BaseModel):
    name: str
    email: EmailStr
    password: str

    @field_validator('name')
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError('Name cannot be empty')
        return v.strip()

    @field_validator('password')
    def validate_password(cls, v):
        if len(v) < 6:
            raise ValueError('Password must be at least 6 characters long')
        return v


class UserLogin(BaseModel):
    username: EmailStr
    password: str


class UserResponse(BaseModel):
    id: int
    email: EmailStr
    name: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_picture: Optional[str] = None
    auth_provider: Literal["google", "local"] = "google"
    display_name: Optional[str] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class AuthStatus(BaseModel):
    isAuthenticated: bool
    user: Optional[UserResponse] = None


class Token(BaseModel):
    access_token: str
    token_type: str
    user: Optional[UserResponse] = None


# Subset of Google's OpenID Connect userinfo document
class GoogleProfile(BaseModel):
    sub: str
    email: EmailStr
    name: Optional[str] = None
    given_name: Optional[str] = None
    family_name: Optional[str] = None
    picture: Optional[str] = None
