"""
Account model — self-registered principals (shop users and admins).
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, String

from backoffice.db.base import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class Account(Base):
    __tablename__ = "accounts"
    __table_args__ = (
        CheckConstraint(
            "hashed_password IS NOT NULL OR google_id IS NOT NULL",
            name="ck_account_has_credential",
        ),
    )

    id: str = Column(String(36), primary_key=True, default=_uuid)  # type: ignore[assignment]
    email: str = Column(String(320), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    hashed_password: str | None = Column(String(128), nullable=True)  # type: ignore[assignment]
    google_id: str | None = Column(String(64), unique=True, nullable=True)  # type: ignore[assignment]
    role: str = Column(  # type: ignore[assignment]
        String(20),
        nullable=False,
        default="user",
        server_default="user",
    )  # admin | staff | user

    name: str | None = Column(String(200), nullable=True)  # type: ignore[assignment]
    phone: str | None = Column(String(30), nullable=True)  # type: ignore[assignment]
    pincode: str | None = Column(String(10), nullable=True)  # type: ignore[assignment]
    store_name: str | None = Column(String(200), nullable=True)  # type: ignore[assignment]
    store_address: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    landmark: str | None = Column(String(200), nullable=True)  # type: ignore[assignment]

    is_active: bool = Column(Boolean, default=True, server_default="true")  # type: ignore[assignment]
    is_blocked: bool = Column(Boolean, default=False, server_default="false")  # type: ignore[assignment]
    verification_status: str = Column(  # type: ignore[assignment]
        String(20),
        nullable=False,
        default="pending",
        server_default="pending",
    )  # pending | verified | not_verified
    is_verified: bool = Column(Boolean, default=False, server_default="false")  # type: ignore[assignment]

    # At most one live reset ticket; a new request overwrites both columns.
    reset_token_hash: str | None = Column(String(64), nullable=True)  # type: ignore[assignment]
    reset_token_expires_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]

    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
