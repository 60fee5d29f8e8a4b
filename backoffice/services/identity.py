"""
Identity resolution across the two principal stores.

A principal is either a worker (``Staff``) or a self-registered
``Account``. This module is the single place that knows the search order:
worker records are always consulted before accounts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.core.exceptions import AccountNotFound
from backoffice.models.account import Account
from backoffice.models.staff import Staff

logger = logging.getLogger(__name__)

KIND_STAFF = "staff"
KIND_ACCOUNT = "account"


@dataclass(frozen=True)
class Principal:
    id: str
    email: str
    role: str
    name: str
    kind: str
    password_hash: str | None = None
    is_active: bool = True

    @classmethod
    def from_staff(cls, staff: Staff) -> Principal:
        return cls(
            id=staff.id,
            email=staff.email,
            role=staff.role or "staff",
            name=staff.name or staff.email.split("@")[0],
            kind=KIND_STAFF,
            password_hash=staff.hashed_password,
            is_active=staff.status == "active",
        )

    @classmethod
    def from_account(cls, account: Account) -> Principal:
        return cls(
            id=account.id,
            email=account.email,
            role=account.role or "user",
            name=account.name or account.email.split("@")[0],
            kind=KIND_ACCOUNT,
            password_hash=account.hashed_password,
            is_active=bool(account.is_active) and not account.is_blocked,
        )

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def public(self) -> dict:
        """The {id, email, role, name} shape attached to requests and sessions."""
        return {"id": self.id, "email": self.email, "role": self.role, "name": self.name}


@dataclass(frozen=True)
class ExternalProfile:
    provider: str
    external_id: str
    email: str
    name: str | None = None


class IdentityResolver:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _staff_by(self, *criteria) -> Staff | None:
        result = await self.db.execute(select(Staff).where(*criteria))
        return result.scalar_one_or_none()

    async def _account_by(self, *criteria) -> Account | None:
        result = await self.db.execute(select(Account).where(*criteria))
        return result.scalar_one_or_none()

    async def resolve(self, principal_id: str) -> Principal:
        staff = await self._staff_by(Staff.id == principal_id)
        if staff is not None:
            return Principal.from_staff(staff)
        account = await self._account_by(Account.id == principal_id)
        if account is not None:
            return Principal.from_account(account)
        raise AccountNotFound()

    async def resolve_by_email(self, email: str) -> tuple[Principal, Staff | Account] | None:
        """Login lookup: worker first, then account. Returns the record too."""
        email = email.strip().lower()
        staff = await self._staff_by(Staff.email == email)
        if staff is not None:
            return Principal.from_staff(staff), staff
        account = await self._account_by(Account.email == email)
        if account is not None:
            return Principal.from_account(account), account
        return None

    async def _lookup_external(self, profile: ExternalProfile) -> Account | None:
        account = await self._account_by(Account.google_id == profile.external_id)
        if account is None:
            account = await self._account_by(Account.email == profile.email)
        return account

    async def resolve_by_external_identity(self, profile: ExternalProfile) -> Principal:
        """Resolve (or create) the principal behind an external login.

        Workers never sign in through an external provider, but an existing
        worker email owns the identity. Account creation relies on the
        unique constraints on ``email`` and ``google_id``: a concurrent
        duplicate loses the insert and picks up the winner's row.
        """
        email = profile.email.strip().lower()
        profile = ExternalProfile(profile.provider, profile.external_id, email, profile.name)

        staff = await self._staff_by(Staff.email == email)
        if staff is not None:
            return Principal.from_staff(staff)

        account = await self._lookup_external(profile)
        if account is not None:
            if account.google_id is None:
                account.google_id = profile.external_id
                if not account.name and profile.name:
                    account.name = profile.name
                await self.db.commit()
                logger.info("Linked %s identity to account %s", profile.provider, account.id)
            return Principal.from_account(account)

        account = Account(
            email=email,
            google_id=profile.external_id,
            role="user",
            name=profile.name,
        )
        self.db.add(account)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            account = await self._lookup_external(profile)
            if account is None:
                raise
            logger.info("Concurrent %s login for %s resolved to existing account", profile.provider, email)
            return Principal.from_account(account)

        await self.db.refresh(account)
        logger.info("Created account %s from %s login", account.id, profile.provider)
        return Principal.from_account(account)
