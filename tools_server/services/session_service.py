"""Session helpers (issue tokens, cookies, validation)."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Request, Response

from tools_server.core.config import get_settings
from tools_server.db.models import User
from tools_server.repositories.sql_repository import SQLRepository

SESSION_COOKIE_NAME = "session"
MIN_SESSION_TTL_SECONDS = 60

_repo = SQLRepository()


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    return value.astimezone(timezone.utc) if value.tzinfo else value.replace(tzinfo=timezone.utc)


def session_ttl(settings) -> int:
    """Session lifetime in seconds, shared by the stored token and its cookie."""
    return max(MIN_SESSION_TTL_SECONDS, settings.session_ttl_seconds)


def issue_session(user_id: int) -> str:
    """Create a new session token for ``user_id`` and persist it."""
    settings = get_settings()
    expires_at = datetime.now(timezone.utc) + timedelta(seconds=session_ttl(settings))
    return _repo.create_user_session(user_id, expires_at)


def user_for_token(token: Optional[str]) -> Optional[User]:
    """Resolve a session token to its user; expired sessions are removed."""
    if not token:
        return None
    entity = _repo.get_user_session(token)
    if not entity:
        return None
    if entity.expires_at and _as_utc(entity.expires_at) < datetime.now(timezone.utc):
        _repo.delete_user_session(token)
        return None
    return _repo.get_user(entity.user_id)


def current_user(request: Request) -> Optional[User]:
    """Return the user associated with the current session cookie, if any."""
    return user_for_token(request.cookies.get(SESSION_COOKIE_NAME))


def set_session_cookie(response: Response, token: str) -> None:
    settings = get_settings()
    response.set_cookie(
        SESSION_COOKIE_NAME,
        token,
        httponly=True,
        secure=settings.secure_cookies,
        samesite="lax",
        max_age=session_ttl(settings),
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(SESSION_COOKIE_NAME, path="/")


def delete_session(token: Optional[str]) -> None:
    """Remove a session token from the store."""
    if not token:
        return
    _repo.delete_user_session(token)
