"""
OAuth provider registry and the Google provider.

Providers are registered once at startup with ``use_providers`` and looked up
by name from the login routes. A provider knows how to build its authorization
URL and how to turn an authorization code into an ``OAuthUser``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol
from urllib.parse import urlencode

import httpx

from tools_server.core.log import get_logger

logger = get_logger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"
GOOGLE_SCOPES = ("openid", "email", "profile")


class OAuthError(Exception):
    """Raised when the provider rejects the exchange or cannot be reached."""


@dataclass(frozen=True)
class OAuthUser:
    provider: str
    user_id: str
    email: str
    name: str
    picture: str
    access_token: str


class OAuthProvider(Protocol):
    name: str

    def authorization_url(self, state: str) -> str: ...

    async def fetch_user(self, code: str) -> OAuthUser: ...


class GoogleProvider:
    """Google OpenID Connect login using the authorization-code flow."""

    name = "google"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        callback_url: str,
        *,
        scopes: tuple[str, ...] = GOOGLE_SCOPES,
        timeout_s: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.callback_url = callback_url
        self.scopes = scopes
        self.timeout_s = timeout_s
        self._transport = transport

    def authorization_url(self, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.callback_url,
            "response_type": "code",
            "scope": " ".join(self.scopes),
            "state": state,
            "access_type": "online",
        }
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def fetch_user(self, code: str) -> OAuthUser:
        if not code:
            raise OAuthError("authorization code is missing")
        try:
            async with httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport) as client:
                token_resp = await client.post(
                    GOOGLE_TOKEN_URL,
                    data={
                        "code": code,
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "redirect_uri": self.callback_url,
                        "grant_type": "authorization_code",
                    },
                    headers={"Accept": "application/json"},
                )
                if token_resp.status_code != 200:
                    raise OAuthError(f"token exchange failed with status {token_resp.status_code}")
                access_token = str(token_resp.json().get("access_token") or "")
                if not access_token:
                    raise OAuthError("token response has no access_token")

                info_resp = await client.get(
                    GOOGLE_USERINFO_URL,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
                if info_resp.status_code != 200:
                    raise OAuthError(f"userinfo request failed with status {info_resp.status_code}")
                info = info_resp.json()
        except httpx.HTTPError as exc:
            raise OAuthError(f"provider unreachable: {exc}") from exc
        except ValueError as exc:
            raise OAuthError("provider returned invalid JSON") from exc

        email = str(info.get("email") or "").strip().lower()
        subject = str(info.get("sub") or "").strip()
        if not email or not subject:
            raise OAuthError("userinfo response lacks sub/email")
        return OAuthUser(
            provider=self.name,
            user_id=subject,
            email=email,
            name=str(info.get("name") or ""),
            picture=str(info.get("picture") or ""),
            access_token=access_token,
        )


_providers: dict[str, OAuthProvider] = {}


def use_providers(*providers: OAuthProvider) -> None:
    """Register providers, replacing any previous provider with the same name."""
    for provider in providers:
        _providers[provider.name] = provider
        logger.info("Registered OAuth provider %s", provider.name)


def get_provider(name: str) -> OAuthProvider | None:
    return _providers.get((name or "").strip().lower())


def providers() -> list[str]:
    return sorted(_providers)


def clear_providers() -> None:
    _providers.clear()
