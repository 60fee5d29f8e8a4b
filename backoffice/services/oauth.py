"""
Google OAuth2 authorization-code flow over httpx.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from urllib.parse import urlencode

import httpx

from backoffice.core.config import settings
from backoffice.core.exceptions import UpstreamError
from backoffice.services.identity import ExternalProfile

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"


class OAuthClient(ABC):
    provider = "oauth"

    @abstractmethod
    def authorization_url(self, state: str) -> str:
        """URL the browser is sent to, carrying *state* back on the callback."""

    @abstractmethod
    async def fetch_profile(self, code: str) -> ExternalProfile:
        """Exchange the authorization *code* for the signed-in user's profile."""


class GoogleOAuthClient(OAuthClient):
    provider = "google"

    def __init__(self, client_id: str, client_secret: str, redirect_uri: str, timeout: float = 10.0):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.timeout = timeout

    def authorization_url(self, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": "openid profile email",
            "state": state,
            "prompt": "select_account",
        }
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def fetch_profile(self, code: str) -> ExternalProfile:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                token_resp = await client.post(
                    GOOGLE_TOKEN_URL,
                    data={
                        "code": code,
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "redirect_uri": self.redirect_uri,
                        "grant_type": "authorization_code",
                    },
                )
                token_resp.raise_for_status()
                access_token = token_resp.json()["access_token"]

                info_resp = await client.get(
                    GOOGLE_USERINFO_URL,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
                info_resp.raise_for_status()
                info = info_resp.json()
        except (httpx.HTTPError, KeyError, ValueError) as exc:
            raise UpstreamError(f"Google sign-in failed: {exc}") from exc

        if not info.get("sub") or not info.get("email"):
            raise UpstreamError("Google profile is missing id or email")
        return ExternalProfile(
            provider=self.provider,
            external_id=str(info["sub"]),
            email=str(info["email"]).lower(),
            name=info.get("name"),
        )


def build_oauth_client() -> OAuthClient:
    return GoogleOAuthClient(
        settings.GOOGLE_CLIENT_ID,
        settings.GOOGLE_CLIENT_SECRET,
        settings.GOOGLE_CALLBACK_URL,
        timeout=settings.EXTERNAL_CALL_TIMEOUT_SECONDS,
    )
