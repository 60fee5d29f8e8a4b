"""Pydantic schemas for staff onboarding, resignations and leaves."""

from __future__ import annotations

import re
from datetime import date, datetime

from pydantic import BaseModel, field_validator

from backoffice.schemas.account import check_password_policy, normalise_email

_NAME_RE = re.compile(r"^[a-zA-Z ]{3,50}$")
_PHONE_RE = re.compile(r"^[6-9]\d{9}$")
_PINCODE_RE = re.compile(r"^[1-9][0-9]{5}$")


def _check_name(v: str) -> str:
    v = v.strip()
    if not _NAME_RE.match(v):
        raise ValueError("Name must be 3–50 letters only")
    return v


def _check_address(v: str) -> str:
    v = v.strip()
    if not 5 <= len(v) <= 100:
        raise ValueError("Address must be 5–100 characters")
    return v


def _check_phone(v: str) -> str:
    v = v.strip()
    if not _PHONE_RE.match(v):
        raise ValueError("Invalid Indian phone number")
    return v


def _check_pincode(v: str) -> str:
    v = v.strip()
    if not _PINCODE_RE.match(v):
        raise ValueError("Invalid Indian pincode")
    return v


# ── Onboarding ──────────────────────────────────────────────────────
class StaffInvite(BaseModel):
    email: str

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return normalise_email(v)


class StaffRegister(BaseModel):
    token: str
    name: str
    address: str
    phone: str
    password: str
    pincode: str
    gender: str | None = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        return _check_name(v)

    @field_validator("address")
    @classmethod
    def _address(cls, v: str) -> str:
        return _check_address(v)

    @field_validator("phone")
    @classmethod
    def _phone(cls, v: str) -> str:
        return _check_phone(v)

    @field_validator("pincode")
    @classmethod
    def _pincode(cls, v: str) -> str:
        return _check_pincode(v)

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        return check_password_policy(v)


class CheckSubmittedRequest(BaseModel):
    token: str


class CheckSubmittedResponse(BaseModel):
    submitted: bool


class StaffApprove(BaseModel):
    joining_date: date | None = None


class StaffStatusUpdate(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def _status(cls, v: str) -> str:
        if v not in ("active", "deactivated"):
            raise ValueError("Invalid status")
        return v


class ProfileUpdate(BaseModel):
    """Self-service profile update for any principal (staff or account)."""

    name: str | None = None
    address: str | None = None
    phone: str | None = None
    gender: str | None = None
    pincode: str | None = None
    current_password: str | None = None
    new_password: str | None = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: str | None) -> str | None:
        return _check_name(v) if v else None

    @field_validator("address")
    @classmethod
    def _address(cls, v: str | None) -> str | None:
        return _check_address(v) if v else None

    @field_validator("phone")
    @classmethod
    def _phone(cls, v: str | None) -> str | None:
        return _check_phone(v) if v else None

    @field_validator("pincode")
    @classmethod
    def _pincode(cls, v: str | None) -> str | None:
        return _check_pincode(v) if v else None

    @field_validator("new_password")
    @classmethod
    def _new_password(cls, v: str | None) -> str | None:
        return check_password_policy(v) if v else None


class StaffRead(BaseModel):
    id: str
    email: str
    role: str | None
    status: str
    is_registered: bool
    name: str | None
    address: str | None
    phone: str | None
    gender: str | None
    pincode: str | None
    date_of_joining: date | None
    created_at: datetime | None

    model_config = {"from_attributes": True}


class StaffResponse(BaseModel):
    success: bool = True
    message: str | None = None
    staff: StaffRead


class StaffListResponse(BaseModel):
    success: bool = True
    staff: list[StaffRead]


class StaffRegisterResponse(BaseModel):
    success: bool = True
    message: str
    redirect: str = "/check-mail"


# ── Resignations ────────────────────────────────────────────────────
class ResignationApply(BaseModel):
    reason: str

    @field_validator("reason")
    @classmethod
    def _reason(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Reason is required.")
        return v


class ResignationDecision(BaseModel):
    status: str
    admin_comment: str | None = None

    @field_validator("status")
    @classmethod
    def _status(cls, v: str) -> str:
        if v not in ("approved", "rejected"):
            raise ValueError("Invalid status value.")
        return v


class ResignationStaff(BaseModel):
    id: str
    name: str | None
    email: str
    date_of_joining: date | None

    model_config = {"from_attributes": True}


class ResignationRead(BaseModel):
    id: int
    reason: str
    status: str
    admin_comment: str | None
    applied_at: datetime | None
    processed_at: datetime | None
    staff: ResignationStaff | None

    model_config = {"from_attributes": True}


class ResignationResponse(BaseModel):
    success: bool = True
    message: str
    resignation: ResignationRead | None = None


# ── Leaves ──────────────────────────────────────────────────────────
_LEAVE_STATUSES = ("Pending", "Approved", "Rejected")


class LeaveCreate(BaseModel):
    leave_date: date
    reason: str

    @field_validator("reason")
    @classmethod
    def _reason(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("All fields are required")
        return v


class LeaveStatusUpdate(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def _status(cls, v: str) -> str:
        if v not in _LEAVE_STATUSES:
            raise ValueError("Invalid status")
        return v


class LeaveRead(BaseModel):
    id: int
    email: str
    leave_date: date
    reason: str
    status: str
    approved_date: datetime | None
    rejected_date: datetime | None
    created_at: datetime | None

    model_config = {"from_attributes": True}


class LeaveStats(BaseModel):
    total_leaves: int
    pending_leaves: int
    approved_leaves: int
    rejected_leaves: int


class PendingLeaveCount(BaseModel):
    total_pending: int
