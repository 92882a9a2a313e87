"""
Authentication and identity related use cases.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import hashlib
import hmac
import secrets
from typing import Optional

from starlette.concurrency import run_in_threadpool

from tools_server.core import oauth
from tools_server.core.config import get_settings, session_secret
from tools_server.core.log import get_logger
from tools_server.db.models import User
from tools_server.repositories.sql_repository import SQLRepository
from tools_server.services.session_service import delete_session, issue_session

logger = get_logger(__name__)

ADMIN_ROLE = "admin"
MEMBER_ROLE = "member"
ROLE_PERMISSIONS = {
    ADMIN_ROLE: ["*"],
    MEMBER_ROLE: ["read", "write"],
}


class AuthError(Exception):
    """Base class for authentication-related exceptions."""


class UnknownProviderError(AuthError):
    pass


class StateMismatchError(AuthError):
    pass


class ProviderFailedError(AuthError):
    pass


class DomainNotAllowedError(AuthError):
    pass


@dataclass
class AuthRedirect:
    url: str
    state_cookie: str


@dataclass
class LoginSuccess:
    user: User
    session_token: str
    created: bool


def sign_state(provider: str, state: str) -> str:
    message = f"{provider}:{state}".encode()
    digest = hmac.new(session_secret().encode(), message, hashlib.sha256).hexdigest()
    return f"{provider}:{state}:{digest}"


def verify_state(cookie_value: Optional[str], provider: str, state: Optional[str]) -> bool:
    """Check the signed cookie against the provider name and the returned state."""
    parts = (cookie_value or "").split(":")
    if len(parts) != 3 or not state:
        return False
    cookie_provider, cookie_state, _digest = parts
    if cookie_provider != provider:
        return False
    if not secrets.compare_digest(cookie_state, state):
        return False
    return secrets.compare_digest(sign_state(cookie_provider, cookie_state), cookie_value or "")


@dataclass
class AuthService:
    """Handles the OAuth login/callback flow, logout and profile lookups."""

    def __post_init__(self):
        self.settings = get_settings()
        self.repository = SQLRepository()

    # -------------------------------------- helpers --------------------------------------
    def _provider(self, name: str) -> oauth.OAuthProvider:
        provider = oauth.get_provider(name)
        if provider is None:
            raise UnknownProviderError(f"Unknown provider {name!r}")
        return provider

    def _email_domain(self, email: str) -> str:
        return email.rsplit("@", 1)[-1].lower() if "@" in email else ""

    def _assign_account(self, email: str) -> int:
        """Account for a first-time login: shared per domain or personal."""
        domain = self._email_domain(email)
        if self.settings.allowed_domains:
            account = self.repository.get_account_by_domain(domain)
            if account:
                return account.id
            return self.repository.create_account(domain, domain=domain).id
        return self.repository.create_account(email).id

    def _role_id(self, name: str) -> int:
        return self.repository.ensure_role(name, ROLE_PERMISSIONS[name]).id

    # -------------------------------------- login --------------------------------------
    def begin(self, provider_name: str) -> AuthRedirect:
        provider = self._provider(provider_name)
        state = secrets.token_urlsafe(24)
        return AuthRedirect(url=provider.authorization_url(state), state_cookie=sign_state(provider.name, state))

    async def complete(
        self,
        provider_name: str,
        *,
        code: Optional[str],
        state: Optional[str],
        state_cookie: Optional[str],
    ) -> LoginSuccess:
        provider = self._provider(provider_name)
        if not verify_state(state_cookie, provider.name, state):
            raise StateMismatchError("OAuth state mismatch")
        try:
            profile = await provider.fetch_user(code or "")
        except oauth.OAuthError as exc:
            logger.warning("OAuth callback for %s failed: %s", provider.name, exc)
            raise ProviderFailedError(str(exc)) from exc

        domain = self._email_domain(profile.email)
        if self.settings.allowed_domains and domain not in self.settings.allowed_domains:
            raise DomainNotAllowedError(f"Domain {domain!r} is not allowed")
        return await run_in_threadpool(self._sign_in, profile)

    def _sign_in(self, profile: oauth.OAuthUser) -> LoginSuccess:
        """Create or refresh the user for ``profile`` and issue a session."""
        now = datetime.now(timezone.utc)
        user = self.repository.get_user_by_provider(profile.provider, profile.user_id)
        if user is None:
            user = self.repository.get_user_by_email(profile.email)
        created = user is None
        if user is None:
            account_id = self._assign_account(profile.email)
            role = ADMIN_ROLE if self.repository.count_account_users(account_id) == 0 else MEMBER_ROLE
            user = self.repository.create_user(
                email=profile.email,
                name=profile.name,
                picture=profile.picture,
                provider=profile.provider,
                provider_user_id=profile.user_id,
                account_id=account_id,
                role_id=self._role_id(role),
                last_login_at=now,
            )
            logger.info("Created user %s in account %s as %s", user.email, account_id, role)
        else:
            user = self.repository.update_user(
                user.id,
                name=profile.name or user.name,
                picture=profile.picture or user.picture,
                provider=profile.provider,
                provider_user_id=profile.user_id,
                last_login_at=now,
            )
        token = issue_session(user.id)
        return LoginSuccess(user=user, session_token=token, created=created)

    def logout(self, session_token: Optional[str]) -> None:
        if not session_token:
            return
        delete_session(session_token)

    # -------------------------------------- profile --------------------------------------
    def profile(self, user: User) -> dict:
        role = self.repository.get_role(user.role_id)
        return {
            "id": user.id,
            "email": user.email,
            "name": user.name,
            "picture": user.picture,
            "provider": user.provider,
            "account_id": user.account_id,
            "role": role.name if role else None,
            "last_login_at": user.last_login_at,
        }
