"""
Staff endpoints — invitation, self-registration, approval and the
worker-facing profile routes.
"""

import logging
from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backoffice.api.v1.deps import (get_current_principal, get_db, get_notifier,
                                    require_admin, require_staff)
from backoffice.core.config import settings
from backoffice.core.exceptions import (AppError, DuplicateEmail, InvalidToken,
                                        NotFoundError, UpstreamError,
                                        ValidationError)
from backoffice.core.security import (get_password_hash, token_service,
                                      verify_password)
from backoffice.models.account import Account
from backoffice.models.staff import (STAFF_ACTIVE, STAFF_INVITED, STAFF_PENDING,
                                     Staff)
from backoffice.schemas.account import CountResponse, MessageResponse
from backoffice.schemas.staff import (CheckSubmittedRequest,
                                      CheckSubmittedResponse, ProfileUpdate,
                                      StaffApprove, StaffInvite,
                                      StaffListResponse, StaffRead,
                                      StaffRegister, StaffRegisterResponse,
                                      StaffResponse, StaffStatusUpdate)
from backoffice.services.identity import KIND_STAFF, Principal
from backoffice.services.notifications import (Notifier, send_quietly,
                                               staff_approved_email,
                                               staff_invite_email)

router = APIRouter(prefix="/staff", tags=["staff"])
logger = logging.getLogger(__name__)


async def _get_staff(db: AsyncSession, staff_id: str) -> Staff:
    result = await db.execute(select(Staff).where(Staff.id == staff_id))
    staff = result.scalar_one_or_none()
    if staff is None:
        raise NotFoundError("Staff not found")
    return staff


async def _staff_by_email(db: AsyncSession, email: str) -> Staff | None:
    result = await db.execute(select(Staff).where(Staff.email == email))
    return result.scalar_one_or_none()


# ── Onboarding ──────────────────────────────────────────────────────
@router.post("/invite", response_model=StaffResponse, status_code=201)
async def invite_staff(
    body: StaffInvite,
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    admin: Principal = Depends(require_admin),
) -> StaffResponse:
    """Create an invited worker and mail the registration link.

    The invite only sticks if the email goes out.
    """
    account = await db.execute(select(Account.id).where(Account.email == body.email))
    if account.scalar_one_or_none() is not None or await _staff_by_email(db, body.email):
        raise DuplicateEmail("Email already exists")

    staff = Staff(email=body.email, status=STAFF_INVITED, invited_by=admin.id)
    db.add(staff)
    await db.flush()

    token = token_service.issue_invite(staff.email)
    link = f"{settings.CLIENT_URL}/staff-register?token={token}"
    try:
        await notifier.send(staff.email, *staff_invite_email(link))
    except UpstreamError as exc:
        await db.rollback()
        logger.error("Invite email to %s failed; invite rolled back", body.email)
        raise UpstreamError("Failed to send invite email") from exc

    await db.commit()
    await db.refresh(staff)
    logger.info("Staff %s invited by %s", staff.email, admin.email)
    return StaffResponse(message="Invite sent successfully", staff=StaffRead.model_validate(staff))


async def _invited_staff(db: AsyncSession, token: str) -> Staff:
    try:
        email = token_service.verify_invite(token)
    except InvalidToken as exc:
        raise ValidationError("Invalid or expired token") from exc
    staff = await _staff_by_email(db, email)
    if staff is None:
        raise NotFoundError("Invitation not found")
    return staff


@router.post("/register", response_model=StaffRegisterResponse)
async def register_staff(
    body: StaffRegister,
    db: AsyncSession = Depends(get_db),
) -> StaffRegisterResponse:
    staff = await _invited_staff(db, body.token)
    if staff.is_registered:
        raise ValidationError("Registration already submitted", code="already_submitted")

    staff.name = body.name
    staff.address = body.address
    staff.phone = body.phone
    staff.pincode = body.pincode
    staff.gender = body.gender
    staff.hashed_password = get_password_hash(body.password)
    staff.status = STAFF_PENDING
    staff.is_registered = True
    await db.commit()
    logger.info("Staff %s submitted registration", staff.email)
    return StaffRegisterResponse(message="Registration submitted. Awaiting admin approval.")


@router.post("/check-submitted", response_model=CheckSubmittedResponse)
async def check_submitted(
    body: CheckSubmittedRequest,
    db: AsyncSession = Depends(get_db),
) -> CheckSubmittedResponse:
    """Lets the registration page skip the form. Never errors."""
    try:
        staff = await _invited_staff(db, body.token)
    except AppError:
        return CheckSubmittedResponse(submitted=False)
    return CheckSubmittedResponse(submitted=bool(staff.is_registered))


@router.put("/approve/{staff_id}", response_model=StaffResponse)
async def approve_staff(
    staff_id: str,
    body: StaffApprove | None = None,
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    admin: Principal = Depends(require_admin),
) -> StaffResponse:
    staff = await _get_staff(db, staff_id)
    if not staff.is_registered:
        raise ValidationError("Staff has not completed registration")

    joining_date = (body.joining_date if body else None) or date.today()
    staff.status = STAFF_ACTIVE
    staff.role = "staff"
    staff.date_of_joining = joining_date
    await db.commit()
    await db.refresh(staff)
    logger.info("Staff %s approved by %s", staff.email, admin.email)

    await send_quietly(
        notifier, staff.email, *staff_approved_email(staff.name, joining_date.isoformat())
    )
    return StaffResponse(message="Staff approved", staff=StaffRead.model_validate(staff))


@router.put("/status/{staff_id}", response_model=StaffResponse)
async def update_staff_status(
    staff_id: str,
    body: StaffStatusUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: Principal = Depends(require_admin),
) -> StaffResponse:
    staff = await _get_staff(db, staff_id)
    staff.status = body.status
    await db.commit()
    await db.refresh(staff)
    logger.info("Staff %s status -> %s", staff.email, staff.status)
    return StaffResponse(message=f"Staff {body.status}", staff=StaffRead.model_validate(staff))


# ── Profiles ────────────────────────────────────────────────────────
@router.get("/me", response_model=StaffResponse)
async def read_my_staff_profile(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_staff),
) -> StaffResponse:
    staff = await _get_staff(db, principal.id)
    return StaffResponse(staff=StaffRead.model_validate(staff))


@router.put("/update", response_model=MessageResponse)
async def update_my_profile(
    body: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> MessageResponse:
    """Profile update for whoever is calling; accounts only carry a subset of fields."""
    if principal.kind == KIND_STAFF:
        record = await _get_staff(db, principal.id)
        fields = ("name", "address", "phone", "gender", "pincode")
    else:
        result = await db.execute(select(Account).where(Account.id == principal.id))
        record = result.scalar_one_or_none()
        if record is None:
            raise NotFoundError("User not found")
        fields = ("name", "phone", "pincode")

    for field, value in body.model_dump(exclude_unset=True, include=set(fields)).items():
        if value is not None:
            setattr(record, field, value)

    if body.new_password:
        if not body.current_password or not verify_password(
            body.current_password, record.hashed_password
        ):
            raise ValidationError("Current password is incorrect")
        record.hashed_password = get_password_hash(body.new_password)

    await db.commit()
    logger.info("Profile updated for %s", principal.email)
    return MessageResponse(message="Profile updated successfully")


# ── Admin views ─────────────────────────────────────────────────────
@router.get("/", response_model=StaffListResponse)
async def list_staff(
    db: AsyncSession = Depends(get_db),
    _admin: Principal = Depends(require_admin),
) -> StaffListResponse:
    result = await db.execute(select(Staff).order_by(Staff.created_at.desc()))
    return StaffListResponse(staff=[StaffRead.model_validate(s) for s in result.scalars().all()])


@router.get("/totalstaff", response_model=CountResponse)
async def count_staff(
    db: AsyncSession = Depends(get_db),
    _admin: Principal = Depends(require_admin),
) -> CountResponse:
    total = await db.scalar(select(func.count()).select_from(Staff))
    return CountResponse(total=total or 0)


@router.delete("/{staff_id}", response_model=MessageResponse)
async def delete_staff(
    staff_id: str,
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_admin),
) -> MessageResponse:
    result = await db.execute(
        select(Staff).where(Staff.id == staff_id).options(selectinload(Staff.resignations))
    )
    staff = result.scalar_one_or_none()
    if staff is None:
        raise NotFoundError("Staff not found")
    await db.delete(staff)
    await db.commit()
    logger.info("Staff %s deleted by %s", staff.email, admin.email)
    return MessageResponse(message="Staff deleted successfully")
