"""
FastAPI dependencies — auth guards, database session and the external
collaborators (mail, payment gateway, OAuth), which tests override.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.core.exceptions import AppError, AuthError, ForbiddenError
from backoffice.core.security import token_service
from backoffice.db.session import async_session_factory
from backoffice.services.identity import IdentityResolver, Principal
from backoffice.services.notifications import Notifier, build_notifier
from backoffice.services.oauth import OAuthClient, build_oauth_client
from backoffice.services.payments import (PaymentGateway, PaymentVerifier,
                                          build_gateway, build_verifier)

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


# ── Database session ────────────────────────────────────────────────
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


# ── Collaborators ───────────────────────────────────────────────────
def get_notifier() -> Notifier:
    return build_notifier()


def get_payment_gateway() -> PaymentGateway:
    return build_gateway()


def get_payment_verifier() -> PaymentVerifier:
    return build_verifier()


def get_oauth_client() -> OAuthClient:
    return build_oauth_client()


# ── Auth dependencies ───────────────────────────────────────────────
async def get_current_principal(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Principal:
    """Verify the bearer token and resolve it to a worker or account."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthError("No token, authorization denied")

    try:
        claims = token_service.verify(credentials.credentials)
        principal = await IdentityResolver(db).resolve(claims.principal_id)
    except AppError as exc:
        logger.info("Rejected bearer token: %s", exc.message)
        raise AuthError("Token is not valid or expired") from exc

    if not principal.is_active:
        raise ForbiddenError("Your account is not active. Contact admin.")

    request.state.principal = principal.public()
    return principal


def require_role(role: str):
    """Build a dependency that only lets *role* through."""

    async def _require_role(
        principal: Principal = Depends(get_current_principal),
    ) -> Principal:
        if principal.role != role:
            raise ForbiddenError(f"{role.capitalize()} access required")
        return principal

    return _require_role


require_admin = require_role("admin")
require_staff = require_role("staff")


def ensure_self_or_admin(principal: Principal, target_id: str) -> None:
    if principal.id != str(target_id) and not principal.is_admin:
        raise ForbiddenError("Unauthorized action")


async def require_self_or_admin(
    user_id: str,
    principal: Principal = Depends(get_current_principal),
) -> Principal:
    """Guard for routes whose path carries the target principal's ``user_id``."""
    ensure_self_or_admin(principal, user_id)
    return principal
