from pydantic import BaseModel, validator
from typing import Optional
from enum import Enum


class UserRole(str, Enum):
    STUDENT = "student"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"


def _check_email(v: str) -> str:
    v = v.strip().lower()
    local, _, domain = v.partition("@")
    if not local or "." not in domain:
        raise ValueError("Please provide a valid email")
    return v


def _check_password(v: str) -> str:
    if len(v) < 6:
        raise ValueError("Password must be at least 6 characters")
    # bcrypt only looks at the first 72 bytes
    if len(v.encode("utf-8")) > 72:
        raise ValueError("Password must be at most 72 bytes")
    return v


# ==================== AUTH ====================

class SignupRequest(BaseModel):
    name: str
    email: str
    password: str
    role: UserRole = UserRole.STUDENT

    @validator("name")
    def validate_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v

    @validator("email")
    def validate_email(cls, v):
        return _check_email(v)

    @validator("password")
    def validate_password(cls, v):
        return _check_password(v)

    @validator("role")
    def validate_role(cls, v):
        # admins are never self-registered
        if v == UserRole.ADMIN:
            raise ValueError("Role must be student or instructor")
        return v


class SigninRequest(BaseModel):
    email: str
    password: str

    @validator("email")
    def validate_email(cls, v):
        return v.strip().lower()


# ==================== PROFILE ====================

class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    photo_url: Optional[str] = None
    bio: Optional[str] = None

    @validator("name")
    def validate_name(cls, v):
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be empty")
        return v

    @validator("email")
    def validate_email(cls, v):
        return _check_email(v) if v is not None else v


class PasswordChange(BaseModel):
    current_password: str
    new_password: str

    @validator("new_password")
    def validate_password(cls, v):
        return _check_password(v)


class ForgotPasswordRequest(BaseModel):
    email: str

    @validator("email")
    def validate_email(cls, v):
        return v.strip().lower()


class ResetPasswordRequest(BaseModel):
    password: str

    @validator("password")
    def validate_password(cls, v):
        return _check_password(v)


class AccountDelete(BaseModel):
    password: str
