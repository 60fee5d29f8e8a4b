"""
Google sign-in: state handshake, account creation/linking and the token
handed back to the client.
"""

import json
from urllib.parse import parse_qs, urlparse

import pytest
from conftest import create_account, create_staff
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.core.security import token_service
from backoffice.models.staff import STAFF_DEACTIVATED
from backoffice.services.identity import ExternalProfile, IdentityResolver


async def _start(client: AsyncClient) -> str:
    resp = await client.get("/api/v1/auth/google")
    assert resp.status_code == 302
    return parse_qs(urlparse(resp.headers["location"]).query)["state"][0]


@pytest.mark.asyncio
async def test_google_login_mints_standard_token(async_client: AsyncClient, oauth):
    state = await _start(async_client)
    resp = await async_client.get(
        "/api/v1/auth/google/callback", params={"code": "abc", "state": state}
    )
    assert resp.status_code == 302

    target = urlparse(resp.headers["location"])
    assert target.path == "/google-success"
    params = parse_qs(target.query)
    user = json.loads(params["user"][0])
    assert user["email"] == "guser@example.com"
    assert user["role"] == "user"

    claims = token_service.verify(params["token"][0])
    assert claims.principal_id == user["id"]

    me = await async_client.get(
        "/api/v1/auth/me", headers={"Authorization": f"Bearer {params['token'][0]}"}
    )
    assert me.json()["id"] == user["id"]


@pytest.mark.asyncio
async def test_repeat_google_login_reuses_account(async_client: AsyncClient):
    ids = []
    for _ in range(2):
        state = await _start(async_client)
        resp = await async_client.get(
            "/api/v1/auth/google/callback", params={"code": "abc", "state": state}
        )
        user = json.loads(parse_qs(urlparse(resp.headers["location"]).query)["user"][0])
        ids.append(user["id"])
    assert ids[0] == ids[1]


@pytest.mark.asyncio
async def test_state_mismatch_redirects_to_login(async_client: AsyncClient):
    await _start(async_client)
    resp = await async_client.get(
        "/api/v1/auth/google/callback", params={"code": "abc", "state": "forged"}
    )
    assert resp.status_code == 302
    assert resp.headers["location"].endswith("/login?error=google")


@pytest.mark.asyncio
async def test_callback_without_handshake_redirects_to_login(async_client: AsyncClient):
    resp = await async_client.get(
        "/api/v1/auth/google/callback", params={"code": "abc", "state": "whatever"}
    )
    assert resp.headers["location"].endswith("/login?error=google")


@pytest.mark.asyncio
async def test_provider_failure_redirects_to_login(async_client: AsyncClient, oauth):
    oauth.fail = True
    state = await _start(async_client)
    resp = await async_client.get(
        "/api/v1/auth/google/callback", params={"code": "abc", "state": state}
    )
    assert resp.headers["location"].endswith("/login?error=google")


@pytest.mark.asyncio
async def test_worker_email_signs_in_as_worker(
    async_client: AsyncClient, db_session: AsyncSession, oauth
):
    staff = await create_staff(db_session, "crew@example.com")
    oauth.profile = ExternalProfile("google", "g-crew", "crew@example.com", "Crew")
    state = await _start(async_client)
    resp = await async_client.get(
        "/api/v1/auth/google/callback", params={"code": "abc", "state": state}
    )
    user = json.loads(parse_qs(urlparse(resp.headers["location"]).query)["user"][0])
    assert user["id"] == staff.id
    assert user["role"] == "staff"


@pytest.mark.asyncio
async def test_deactivated_worker_is_refused(
    async_client: AsyncClient, db_session: AsyncSession, oauth
):
    await create_staff(db_session, "gone@example.com", status=STAFF_DEACTIVATED)
    oauth.profile = ExternalProfile("google", "g-gone", "gone@example.com", "Gone")
    state = await _start(async_client)
    resp = await async_client.get(
        "/api/v1/auth/google/callback", params={"code": "abc", "state": state}
    )
    assert resp.headers["location"].endswith("/login?error=google")


@pytest.mark.asyncio
async def test_unresolvable_duplicate_redirects_to_login(
    async_client: AsyncClient, db_session: AsyncSession, monkeypatch
):
    await create_account(db_session, "guser@example.com")

    async def _never_found(self, profile):
        return None

    # The insert collides with the existing email and the re-lookup finds nothing
    monkeypatch.setattr(IdentityResolver, "_lookup_external", _never_found)
    state = await _start(async_client)
    resp = await async_client.get(
        "/api/v1/auth/google/callback", params={"code": "abc", "state": state}
    )
    assert resp.status_code == 302
    assert resp.headers["location"].endswith("/login?error=google")
