"""Pydantic schemas for accounts, login and password reset."""

from __future__ import annotations

import re
from datetime import datetime

from pydantic import BaseModel, field_validator

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PASSWORD_RE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[\W_]).{8,128}$")
PASSWORD_RULE = (
    "Password must be at least 8 characters long and contain uppercase, "
    "lowercase, number & special character."
)


def normalise_email(v: str) -> str:
    v = v.strip().lower()
    if not EMAIL_RE.match(v):
        raise ValueError("Invalid email format")
    return v


def check_password_policy(v: str) -> str:
    if not PASSWORD_RE.match(v):
        raise ValueError(PASSWORD_RULE)
    return v


# ── Requests ────────────────────────────────────────────────────────
class RegisterRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return normalise_email(v)

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        return check_password_policy(v)


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip().lower()


class ForgotPasswordRequest(BaseModel):
    email: str

    @field_validator("email")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip().lower()


class ResetPasswordRequest(BaseModel):
    token: str
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        return check_password_policy(v)


class AccountUpdate(BaseModel):
    name: str | None = None
    phone: str | None = None
    pincode: str | None = None
    store_name: str | None = None
    store_address: str | None = None
    landmark: str | None = None
    password: str | None = None

    @field_validator("password")
    @classmethod
    def _password(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        return check_password_policy(v)


# ── Responses ───────────────────────────────────────────────────────
class PrincipalRead(BaseModel):
    id: str
    email: str
    role: str
    name: str | None = None


class LoginResponse(BaseModel):
    msg: str
    token: str
    token_type: str = "bearer"
    user: PrincipalRead
    redirect: str


class AccountRead(BaseModel):
    id: str
    email: str
    role: str
    name: str | None
    phone: str | None
    pincode: str | None
    store_name: str | None
    store_address: str | None
    landmark: str | None
    is_active: bool
    is_blocked: bool
    is_verified: bool
    verification_status: str
    created_at: datetime | None

    model_config = {"from_attributes": True}


class AccountResponse(BaseModel):
    success: bool = True
    message: str | None = None
    user: AccountRead


class AccountListResponse(BaseModel):
    success: bool = True
    users: list[AccountRead]


class CountResponse(BaseModel):
    success: bool = True
    total: int


class MessageResponse(BaseModel):
    success: bool = True
    message: str
