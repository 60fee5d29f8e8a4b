"""
Identity resolution across the worker and account stores.
"""

import pytest
from conftest import create_account, create_staff
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.core.exceptions import AccountNotFound
from backoffice.models.account import Account
from backoffice.models.staff import STAFF_PENDING
from backoffice.services.identity import (KIND_ACCOUNT, KIND_STAFF,
                                          ExternalProfile, IdentityResolver)


@pytest.mark.asyncio
async def test_resolve_by_id_picks_the_right_store(db_session: AsyncSession):
    account = await create_account(db_session, "dup@example.com")
    staff = await create_staff(db_session, "dup@example.com")
    resolver = IdentityResolver(db_session)

    by_account = await resolver.resolve(account.id)
    by_staff = await resolver.resolve(staff.id)
    assert (by_account.id, by_account.kind) == (account.id, KIND_ACCOUNT)
    assert (by_staff.id, by_staff.kind) == (staff.id, KIND_STAFF)


@pytest.mark.asyncio
async def test_resolve_unknown_id_raises(db_session: AsyncSession):
    with pytest.raises(AccountNotFound):
        await IdentityResolver(db_session).resolve("missing")


@pytest.mark.asyncio
async def test_email_lookup_prefers_worker(db_session: AsyncSession):
    await create_account(db_session, "dup@example.com")
    staff = await create_staff(db_session, "dup@example.com")
    principal, record = await IdentityResolver(db_session).resolve_by_email(" DUP@example.com ")
    assert principal.id == staff.id
    assert record is staff


@pytest.mark.asyncio
async def test_pending_worker_is_inactive(db_session: AsyncSession):
    staff = await create_staff(db_session, "pending@example.com", status=STAFF_PENDING)
    principal = await IdentityResolver(db_session).resolve(staff.id)
    assert principal.role == "staff"
    assert not principal.is_active


@pytest.mark.asyncio
async def test_external_login_creates_account_once(db_session: AsyncSession):
    profile = ExternalProfile("google", "g-1", "New.Person@Example.com", "New Person")
    first = await IdentityResolver(db_session).resolve_by_external_identity(profile)
    second = await IdentityResolver(db_session).resolve_by_external_identity(profile)

    assert first.id == second.id
    assert first.role == "user"
    assert first.email == "new.person@example.com"
    total = await db_session.scalar(select(func.count()).select_from(Account))
    assert total == 1


@pytest.mark.asyncio
async def test_external_login_links_existing_account(db_session: AsyncSession):
    account = await create_account(db_session, "linked@example.com")
    profile = ExternalProfile("google", "g-2", "linked@example.com", None)
    principal = await IdentityResolver(db_session).resolve_by_external_identity(profile)

    assert principal.id == account.id
    await db_session.refresh(account)
    assert account.google_id == "g-2"


@pytest.mark.asyncio
async def test_external_login_for_worker_email_returns_worker(db_session: AsyncSession):
    staff = await create_staff(db_session, "crew@example.com")
    profile = ExternalProfile("google", "g-3", "crew@example.com", "Crew")
    principal = await IdentityResolver(db_session).resolve_by_external_identity(profile)

    assert principal.id == staff.id
    assert principal.kind == KIND_STAFF
    total = await db_session.scalar(select(func.count()).select_from(Account))
    assert total == 0


class _RacingResolver(IdentityResolver):
    """Misses the existing row on its first lookup, as a concurrent loser would."""

    def __init__(self, db):
        super().__init__(db)
        self.lookups = 0

    async def _lookup_external(self, profile):
        self.lookups += 1
        if self.lookups == 1:
            return None
        return await super()._lookup_external(profile)


@pytest.mark.asyncio
async def test_concurrent_external_login_resolves_to_winner(db_session: AsyncSession):
    winner = Account(email="race@example.com", google_id="g-race", role="user")
    db_session.add(winner)
    await db_session.commit()
    winner_id = winner.id

    resolver = _RacingResolver(db_session)
    profile = ExternalProfile("google", "g-race", "race@example.com", "Racer")
    principal = await resolver.resolve_by_external_identity(profile)

    assert principal.id == winner_id
    assert resolver.lookups == 2
    total = await db_session.scalar(select(func.count()).select_from(Account))
    assert total == 1
