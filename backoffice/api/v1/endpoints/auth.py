"""
Auth endpoints — registration, login, password reset, Google sign-in and
account profile management.
"""

import json
import logging
import secrets
from urllib.parse import quote, urlencode

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.api.v1.deps import (ensure_self_or_admin, get_current_principal,
                                    get_db, get_notifier, get_oauth_client,
                                    require_admin, require_self_or_admin)
from backoffice.core.config import settings
from backoffice.core.exceptions import (AppError, DuplicateEmail, ForbiddenError,
                                        NotFoundError, ValidationError)
from backoffice.core.rate_limit import limiter
from backoffice.core.security import (constant_time_equals, generate_reset_ticket,
                                      get_password_hash, hash_reset_token,
                                      pwd_context, token_service, verify_password)
from backoffice.core.time_utils import ensure_utc, utcnow
from backoffice.models.account import Account
from backoffice.models.staff import Staff
from backoffice.schemas.account import (AccountListResponse, AccountRead,
                                        AccountResponse, AccountUpdate,
                                        CountResponse, ForgotPasswordRequest,
                                        LoginRequest, LoginResponse,
                                        MessageResponse, PrincipalRead,
                                        RegisterRequest, ResetPasswordRequest)
from backoffice.services.identity import KIND_STAFF, IdentityResolver, Principal
from backoffice.services.notifications import (Notifier, password_reset_email,
                                               send_quietly, welcome_email)
from backoffice.services.oauth import OAuthClient

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)

_FORGOT_MESSAGE = "If that email is registered, a reset link has been sent."
_REDIRECTS = {"admin": "/admin", "staff": "/staff"}


async def _get_account(db: AsyncSession, account_id: str) -> Account:
    result = await db.execute(select(Account).where(Account.id == account_id))
    account = result.scalar_one_or_none()
    if account is None:
        raise NotFoundError("User not found")
    return account


# ── Registration & login ────────────────────────────────────────────
@router.post("/register", response_model=MessageResponse, status_code=201)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def register(
    request: Request,
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> MessageResponse:
    """Self-registration. Uniqueness is enforced by the database constraint."""
    staff = await db.execute(select(Staff.id).where(Staff.email == body.email))
    if staff.scalar_one_or_none() is not None:
        raise DuplicateEmail()

    db.add(Account(email=body.email, hashed_password=get_password_hash(body.password), role="user"))
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise DuplicateEmail() from exc
    logger.info("Registered account %s", body.email)

    await send_quietly(notifier, body.email, *welcome_email())
    return MessageResponse(message="User registered successfully")


@router.post("/login", response_model=LoginResponse)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> LoginResponse:
    """Password login for workers and accounts (workers are checked first)."""
    found = await IdentityResolver(db).resolve_by_email(body.email)
    if found is None:
        pwd_context.dummy_verify()
        raise ValidationError("Invalid email or password")

    principal, _record = found
    if not verify_password(body.password, principal.password_hash):
        raise ValidationError("Invalid email or password")
    if not principal.is_active:
        if principal.kind == KIND_STAFF:
            raise ForbiddenError("Your account is not active. Contact admin.")
        raise ForbiddenError("Your account has been disabled. Contact admin.")

    token = token_service.issue(principal.id, principal.role)
    logger.info("%s login: %s", principal.role, principal.email)
    return LoginResponse(
        msg=f"{principal.role} login successful",
        token=token,
        user=PrincipalRead(**principal.public()),
        redirect=_REDIRECTS.get(principal.role, "/user"),
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(request: Request) -> MessageResponse:
    """Drop any server-side sign-in session. Bearer tokens simply expire."""
    request.session.clear()
    return MessageResponse(message="Logged out")


# ── Password reset ──────────────────────────────────────────────────
@router.post("/forgot-password", response_model=MessageResponse)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def forgot_password(
    request: Request,
    body: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> MessageResponse:
    """Always answers the same way so callers cannot probe for accounts."""
    result = await db.execute(select(Account).where(Account.email == body.email))
    account = result.scalar_one_or_none()
    if account is None:
        return MessageResponse(message=_FORGOT_MESSAGE)

    token, token_hash, expires_at = generate_reset_ticket()
    account.reset_token_hash = token_hash
    account.reset_token_expires_at = expires_at
    await db.commit()

    reset_url = (
        f"{settings.CLIENT_URL}/reset-password?"
        f"{urlencode({'token': token, 'email': account.email})}"
    )
    await send_quietly(notifier, account.email, *password_reset_email(reset_url))
    return MessageResponse(message=_FORGOT_MESSAGE)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    body: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    result = await db.execute(select(Account).where(Account.email == body.email))
    account = result.scalar_one_or_none()

    expires_at = ensure_utc(account.reset_token_expires_at) if account else None
    if (
        account is None
        or not account.reset_token_hash
        or expires_at is None
        or expires_at <= utcnow()
        or not constant_time_equals(account.reset_token_hash, hash_reset_token(body.token))
    ):
        raise ValidationError("Invalid or expired token")

    account.hashed_password = get_password_hash(body.password)
    account.reset_token_hash = None
    account.reset_token_expires_at = None
    await db.commit()
    logger.info("Password reset for %s", account.email)
    return MessageResponse(message="Password reset successful")


# ── Google sign-in ──────────────────────────────────────────────────
def _login_error_redirect() -> RedirectResponse:
    return RedirectResponse(f"{settings.CLIENT_URL}/login?error=google", status_code=302)


@router.get("/google")
async def google_login(
    request: Request,
    oauth: OAuthClient = Depends(get_oauth_client),
) -> RedirectResponse:
    state = secrets.token_urlsafe(24)
    request.session["oauth_state"] = state
    return RedirectResponse(oauth.authorization_url(state), status_code=302)


@router.get("/google/callback")
async def google_callback(
    request: Request,
    code: str | None = None,
    state: str | None = None,
    db: AsyncSession = Depends(get_db),
    oauth: OAuthClient = Depends(get_oauth_client),
) -> RedirectResponse:
    """Finish the handshake and hand the client the same bearer token as /login."""
    expected_state = request.session.pop("oauth_state", None)
    if not code or not state or not expected_state or not constant_time_equals(state, expected_state):
        logger.warning("Google callback rejected: missing code or state mismatch")
        return _login_error_redirect()

    try:
        profile = await oauth.fetch_profile(code)
        principal = await IdentityResolver(db).resolve_by_external_identity(profile)
    except AppError as exc:
        logger.error("Google callback error: %s", exc.message)
        return _login_error_redirect()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("Google callback could not resolve the account: %s", exc)
        return _login_error_redirect()

    if not principal.is_active:
        logger.warning("Google sign-in refused for inactive principal %s", principal.id)
        return _login_error_redirect()

    token = token_service.issue(principal.id, principal.role)
    request.session["principal"] = principal.public()
    user = quote(json.dumps(principal.public()))
    return RedirectResponse(
        f"{settings.CLIENT_URL}/google-success?token={token}&user={user}",
        status_code=302,
    )


# ── Profiles ────────────────────────────────────────────────────────
@router.get("/me", response_model=PrincipalRead)
async def read_current_principal(
    principal: Principal = Depends(get_current_principal),
) -> PrincipalRead:
    return PrincipalRead(**principal.public())


@router.get("/user/{user_id}", response_model=AccountResponse)
async def get_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    _principal: Principal = Depends(require_self_or_admin),
) -> AccountResponse:
    account = await _get_account(db, user_id)
    return AccountResponse(user=AccountRead.model_validate(account))


@router.put("/user/update/{user_id}", response_model=AccountResponse)
async def update_user(
    user_id: str,
    body: AccountUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> AccountResponse:
    """Owner-or-admin profile update. Role and status are not editable here."""
    ensure_self_or_admin(principal, user_id)
    account = await _get_account(db, user_id)

    updates = body.model_dump(exclude_unset=True, exclude={"password"})
    for field, value in updates.items():
        setattr(account, field, value)
    if body.password:
        account.hashed_password = get_password_hash(body.password)

    await db.commit()
    await db.refresh(account)
    logger.info("Account %s updated by %s", user_id, principal.id)
    return AccountResponse(message="Profile updated", user=AccountRead.model_validate(account))


@router.put("/user/verify/{user_id}", response_model=AccountResponse)
async def toggle_verification(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    _admin: Principal = Depends(require_admin),
) -> AccountResponse:
    account = await _get_account(db, user_id)
    account.is_verified = not account.is_verified
    account.verification_status = "verified" if account.is_verified else "not_verified"
    await db.commit()
    await db.refresh(account)
    logger.info("Account %s is now %s", account.email, account.verification_status)
    return AccountResponse(
        message=f"User {'verified' if account.is_verified else 'unverified'} successfully",
        user=AccountRead.model_validate(account),
    )


@router.get("/users", response_model=AccountListResponse)
async def list_users(
    db: AsyncSession = Depends(get_db),
    _admin: Principal = Depends(require_admin),
) -> AccountListResponse:
    result = await db.execute(select(Account).order_by(Account.created_at.desc()))
    return AccountListResponse(
        users=[AccountRead.model_validate(a) for a in result.scalars().all()]
    )


@router.get("/users/count", response_model=CountResponse)
async def count_users(
    db: AsyncSession = Depends(get_db),
    _admin: Principal = Depends(require_admin),
) -> CountResponse:
    total = await db.scalar(select(func.count()).select_from(Account))
    return CountResponse(total=total or 0)
