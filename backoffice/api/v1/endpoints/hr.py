"""
HR endpoints — resignations and leave requests for active workers.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.api.v1.deps import (get_db, get_notifier, require_admin,
                                    require_staff)
from backoffice.core.exceptions import NotFoundError
from backoffice.core.time_utils import utcnow
from backoffice.models.staff import STAFF_DEACTIVATED, Leave, Resignation, Staff
from backoffice.schemas.account import MessageResponse
from backoffice.schemas.staff import (LeaveCreate, LeaveRead, LeaveStats,
                                      LeaveStatusUpdate, PendingLeaveCount,
                                      ResignationApply, ResignationDecision,
                                      ResignationRead, ResignationResponse)
from backoffice.services.identity import Principal
from backoffice.services.notifications import (Notifier,
                                               resignation_decision_email,
                                               send_quietly)

resignations_router = APIRouter(prefix="/resignations", tags=["resignations"])
leaves_router = APIRouter(prefix="/leaves", tags=["leaves"])
logger = logging.getLogger(__name__)


# ── Resignations ────────────────────────────────────────────────────
@resignations_router.post("/apply", response_model=ResignationResponse, status_code=201)
async def apply_resignation(
    body: ResignationApply,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_staff),
) -> ResignationResponse:
    resignation = Resignation(staff_id=principal.id, reason=body.reason)
    db.add(resignation)
    await db.commit()
    await db.refresh(resignation, attribute_names=["staff"])
    logger.info("Resignation %d filed by %s", resignation.id, principal.email)
    return ResignationResponse(
        message="Resignation applied successfully.",
        resignation=ResignationRead.model_validate(resignation),
    )


@resignations_router.get("/all", response_model=list[ResignationRead])
async def list_resignations(
    db: AsyncSession = Depends(get_db),
    _admin: Principal = Depends(require_admin),
) -> list[ResignationRead]:
    result = await db.execute(
        select(Resignation).order_by(Resignation.applied_at.desc(), Resignation.id.desc())
    )
    return [ResignationRead.model_validate(r) for r in result.scalars().all()]


@resignations_router.put("/{resignation_id}/decision", response_model=ResignationResponse)
async def decide_resignation(
    resignation_id: int,
    body: ResignationDecision,
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    admin: Principal = Depends(require_admin),
) -> ResignationResponse:
    """Approve or reject; approval deactivates the worker in the same transaction."""
    resignation = await db.get(Resignation, resignation_id)
    if resignation is None:
        raise NotFoundError("Resignation not found.")

    resignation.status = body.status
    resignation.admin_comment = body.admin_comment or ""
    resignation.processed_at = utcnow()

    staff: Staff | None = resignation.staff
    if body.status == "approved" and staff is not None:
        staff.status = STAFF_DEACTIVATED
    await db.commit()
    logger.info("Resignation %d %s by %s", resignation.id, body.status, admin.email)

    if staff is not None:
        await send_quietly(
            notifier,
            staff.email,
            *resignation_decision_email(staff.name, body.status, body.admin_comment),
        )
    return ResignationResponse(
        message=f"Resignation {body.status} successfully.",
        resignation=ResignationRead.model_validate(resignation),
    )


# ── Leaves ──────────────────────────────────────────────────────────
@leaves_router.post("/request", response_model=MessageResponse, status_code=201)
async def request_leave(
    body: LeaveCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_staff),
) -> MessageResponse:
    db.add(Leave(email=principal.email, leave_date=body.leave_date, reason=body.reason))
    await db.commit()
    logger.info("Leave requested by %s for %s", principal.email, body.leave_date)
    return MessageResponse(message="Leave request submitted")


@leaves_router.get("/my", response_model=list[LeaveRead])
async def my_leaves(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_staff),
) -> list[LeaveRead]:
    result = await db.execute(
        select(Leave)
        .where(Leave.email == principal.email)
        .order_by(Leave.created_at.desc(), Leave.id.desc())
    )
    return [LeaveRead.model_validate(leave) for leave in result.scalars().all()]


@leaves_router.get("/stats", response_model=LeaveStats)
async def my_leave_stats(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_staff),
) -> LeaveStats:
    result = await db.execute(
        select(Leave.status, func.count())
        .where(Leave.email == principal.email)
        .group_by(Leave.status)
    )
    counts = dict(result.all())
    return LeaveStats(
        total_leaves=sum(counts.values()),
        pending_leaves=counts.get("Pending", 0),
        approved_leaves=counts.get("Approved", 0),
        rejected_leaves=counts.get("Rejected", 0),
    )


@leaves_router.get("/all", response_model=list[LeaveRead])
async def all_leaves(
    db: AsyncSession = Depends(get_db),
    _admin: Principal = Depends(require_admin),
) -> list[LeaveRead]:
    result = await db.execute(select(Leave).order_by(Leave.created_at.desc(), Leave.id.desc()))
    return [LeaveRead.model_validate(leave) for leave in result.scalars().all()]


@leaves_router.patch("/update/{leave_id}", response_model=LeaveRead)
async def update_leave_status(
    leave_id: int,
    body: LeaveStatusUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: Principal = Depends(require_admin),
) -> LeaveRead:
    leave = await db.get(Leave, leave_id)
    if leave is None:
        raise NotFoundError("Leave not found")

    now = utcnow()
    leave.status = body.status
    leave.approved_date = now if body.status == "Approved" else None
    leave.rejected_date = now if body.status == "Rejected" else None
    await db.commit()
    await db.refresh(leave)
    return LeaveRead.model_validate(leave)


@leaves_router.delete("/delete/{leave_id}", response_model=MessageResponse)
async def delete_leave(
    leave_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: Principal = Depends(require_admin),
) -> MessageResponse:
    leave = await db.get(Leave, leave_id)
    if leave is None:
        raise NotFoundError("Leave not found")
    await db.delete(leave)
    await db.commit()
    return MessageResponse(message="Leave deleted successfully")


@leaves_router.get("/count/pending", response_model=PendingLeaveCount)
async def pending_leave_count(
    db: AsyncSession = Depends(get_db),
    _admin: Principal = Depends(require_admin),
) -> PendingLeaveCount:
    total = await db.scalar(
        select(func.count()).select_from(Leave).where(Leave.status == "Pending")
    )
    return PendingLeaveCount(total_pending=total or 0)
