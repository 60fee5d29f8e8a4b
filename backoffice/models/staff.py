"""
Staff model — invited worker principals and their HR records
(resignations, leave requests).
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from backoffice.db.base import Base

STAFF_INVITED = "invited"
STAFF_PENDING = "pending"
STAFF_ACTIVE = "active"
STAFF_DEACTIVATED = "deactivated"


class Staff(Base):
    __tablename__ = "staff"

    id: str = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))  # type: ignore[assignment]
    email: str = Column(String(320), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    hashed_password: str | None = Column(String(128), nullable=True)  # type: ignore[assignment]
    role: str | None = Column(String(20), nullable=True)  # type: ignore[assignment]  # "staff" once approved
    status: str = Column(  # type: ignore[assignment]
        String(20),
        nullable=False,
        default=STAFF_INVITED,
        server_default=STAFF_INVITED,
    )  # invited | pending | active | deactivated
    is_registered: bool = Column(Boolean, default=False, server_default="false")  # type: ignore[assignment]
    invited_by: str | None = Column(String(36), nullable=True)  # type: ignore[assignment]

    name: str | None = Column(String(200), nullable=True)  # type: ignore[assignment]
    address: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    phone: str | None = Column(String(30), nullable=True)  # type: ignore[assignment]
    gender: str | None = Column(String(20), nullable=True)  # type: ignore[assignment]
    pincode: str | None = Column(String(10), nullable=True)  # type: ignore[assignment]
    date_of_joining: date | None = Column(Date, nullable=True)  # type: ignore[assignment]

    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    resignations = relationship(
        "Resignation",
        back_populates="staff",
        cascade="all, delete-orphan",
    )


class Resignation(Base):
    __tablename__ = "resignations"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    staff_id: str = Column(String(36), ForeignKey("staff.id", ondelete="CASCADE"), nullable=False)  # type: ignore[assignment]
    reason: str = Column(String(1000), nullable=False)  # type: ignore[assignment]
    status: str = Column(String(20), nullable=False, default="pending")  # type: ignore[assignment]
    # pending | approved | rejected
    admin_comment: str | None = Column(String(1000), nullable=True)  # type: ignore[assignment]
    applied_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    processed_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]

    staff = relationship("Staff", back_populates="resignations", lazy="selectin")


class Leave(Base):
    __tablename__ = "leaves"
    __table_args__ = (Index("ix_leave_email_status", "email", "status"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    email: str = Column(String(320), nullable=False)  # type: ignore[assignment]
    leave_date: date = Column(Date, nullable=False)  # type: ignore[assignment]
    reason: str = Column(String(1000), nullable=False)  # type: ignore[assignment]
    status: str = Column(String(20), nullable=False, default="Pending")  # type: ignore[assignment]
    # Pending | Approved | Rejected
    approved_date: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    rejected_date: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
