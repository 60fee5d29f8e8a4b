"""
JWT token issuing / verification, password hashing (bcrypt) and
password-reset tickets.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from passlib.context import CryptContext

from backoffice.core.config import settings
from backoffice.core.exceptions import InvalidToken

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ACCESS_TOKEN = "access"
INVITE_TOKEN = "invite"


# ── Passwords ───────────────────────────────────────────────────────
def verify_password(plain: str, hashed: str | None) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(plain, hashed)


def get_password_hash(plain: str) -> str:
    return pwd_context.hash(plain)


def constant_time_equals(a: str, b: str) -> bool:
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


# ── JWT tokens ──────────────────────────────────────────────────────
@dataclass(frozen=True)
class TokenClaims:
    principal_id: str
    role: str


class TokenService:
    """Issues and verifies signed, time-bounded bearer tokens.

    Tokens are stateless: verification recomputes the signature and checks
    the embedded expiry. There is no refresh or revocation.
    """

    def __init__(self, secret: str, algorithm: str = "HS256"):
        if not secret:
            raise RuntimeError("Token signing secret is not configured")
        self._secret = secret
        self._algorithm = algorithm

    def _encode(self, claims: dict, ttl: timedelta) -> str:
        now = datetime.now(timezone.utc)
        payload = {**claims, "iat": now, "exp": now + ttl}
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def _decode(self, token: str, token_type: str) -> dict:
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except JWTError as exc:
            raise InvalidToken() from exc
        if payload.get("type") != token_type:
            raise InvalidToken()
        exp = payload.get("exp")
        # jose accepts a token whose exp equals "now"; we do not.
        if not isinstance(exp, (int, float)) or exp <= datetime.now(timezone.utc).timestamp():
            raise InvalidToken()
        return payload

    def issue(self, principal_id: str, role: str, ttl: timedelta | None = None) -> str:
        ttl = ttl if ttl is not None else timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        return self._encode({"sub": str(principal_id), "role": role, "type": ACCESS_TOKEN}, ttl)

    def verify(self, token: str) -> TokenClaims:
        payload = self._decode(token, ACCESS_TOKEN)
        sub = payload.get("sub")
        role = payload.get("role")
        if not isinstance(sub, str) or not sub or not isinstance(role, str):
            raise InvalidToken()
        return TokenClaims(principal_id=sub, role=role)

    def issue_invite(self, email: str, ttl: timedelta | None = None) -> str:
        ttl = ttl if ttl is not None else timedelta(days=settings.INVITE_TOKEN_EXPIRE_DAYS)
        return self._encode({"sub": email, "type": INVITE_TOKEN}, ttl)

    def verify_invite(self, token: str) -> str:
        """Return the invited email address encoded in *token*."""
        payload = self._decode(token, INVITE_TOKEN)
        email = payload.get("sub")
        if not isinstance(email, str) or not email:
            raise InvalidToken()
        return email


token_service = TokenService(settings.SECRET_KEY, settings.ALGORITHM)


# ── Password-reset tickets ──────────────────────────────────────────
def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def generate_reset_ticket(
    ttl: timedelta | None = None,
) -> tuple[str, str, datetime]:
    """Return ``(plaintext_token, token_hash, expires_at)``.

    Only the hash is stored; the plaintext goes into the emailed link.
    """
    ttl = ttl if ttl is not None else timedelta(minutes=settings.RESET_TOKEN_EXPIRE_MINUTES)
    token = secrets.token_hex(32)
    return token, hash_reset_token(token), datetime.now(timezone.utc) + ttl
