"""
OAuth login/callback/logout/profile routes with a mocked Google provider.
"""
from __future__ import annotations

from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from fastapi.testclient import TestClient

from tools_server.app import create_app
from tools_server.core import oauth
from tools_server.db.migrations import run_migrations
from tools_server.repositories.sql_repository import SQLRepository
from tools_server.services.auth_service import sign_state, verify_state


def _google_transport(userinfo: dict, *, token_status: int = 200) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/token":
            if token_status != 200:
                return httpx.Response(token_status, json={"error": "invalid_grant"})
            return httpx.Response(200, json={"access_token": "access-123", "token_type": "Bearer"})
        if request.url.path == "/v1/userinfo":
            assert request.headers["authorization"] == "Bearer access-123"
            return httpx.Response(200, json=userinfo)
        return httpx.Response(404)

    return httpx.MockTransport(handler)


def _use_google(userinfo: dict, **kwargs) -> None:
    oauth.use_providers(
        oauth.GoogleProvider(
            "client-id",
            "client-secret",
            "http://localhost:8080/auth/google/callback",
            transport=_google_transport(userinfo, **kwargs),
        )
    )


def _userinfo(email: str, sub: str = "google-sub-1") -> dict:
    return {"sub": sub, "email": email, "name": email.split("@")[0].title(), "picture": "https://img/p.png"}


@pytest.fixture()
def login_client(write_config):
    def _make(extra: dict | None = None) -> TestClient:
        write_config(extra)
        run_migrations()
        return TestClient(create_app())

    return _make


def _start_login(client: TestClient) -> str:
    resp = client.get("/auth/google", follow_redirects=False)
    assert resp.status_code == 302
    location = resp.headers["location"]
    assert location.startswith(oauth.GOOGLE_AUTH_URL)
    return parse_qs(urlparse(location).query)["state"][0]


def _finish_login(client: TestClient, state: str):
    return client.get(
        "/auth/google/callback",
        params={"code": "auth-code", "state": state},
        follow_redirects=False,
    )


def test_login_page_lists_registered_provider(login_client):
    client = login_client()
    resp = client.get("/login")
    assert resp.status_code == 200
    assert 'href="/auth/google"' in resp.text


def test_initiate_sets_signed_state_cookie(login_client):
    client = login_client()
    resp = client.get("/auth/google", follow_redirects=False)

    assert resp.status_code == 302
    query = parse_qs(urlparse(resp.headers["location"]).query)
    assert query["client_id"] == ["client-id"]
    assert query["redirect_uri"] == ["http://localhost:8080/auth/google/callback"]
    cookie = client.cookies.get("oauth_state")
    assert verify_state(cookie, "google", query["state"][0])


def test_unknown_provider_is_404(login_client):
    client = login_client()
    assert client.get("/auth/github", follow_redirects=False).status_code == 404


def test_callback_creates_user_and_session(login_client):
    client = login_client()
    _use_google(_userinfo("ann@example.com"))

    state = _start_login(client)
    resp = _finish_login(client, state)
    assert resp.status_code == 302
    assert resp.headers["location"] == "/profile"
    assert client.cookies.get("session")

    profile = client.get("/profile")
    assert profile.status_code == 200
    body = profile.json()
    assert body["email"] == "ann@example.com"
    assert body["name"] == "Ann"
    assert body["role"] == "admin"
    assert body["account_id"] is not None


def test_second_login_reuses_user(login_client):
    client = login_client()
    _use_google(_userinfo("ann@example.com"))
    _finish_login(client, _start_login(client))
    first_id = client.get("/profile").json()["id"]

    _finish_login(client, _start_login(client))
    assert client.get("/profile").json()["id"] == first_id


def test_state_mismatch_is_rejected(login_client):
    client = login_client()
    _use_google(_userinfo("ann@example.com"))
    _start_login(client)

    resp = _finish_login(client, "forged-state")
    assert resp.status_code == 403
    assert client.get("/profile").status_code == 401


def test_tampered_state_cookie_fails_verification():
    cookie = sign_state("google", "abc")
    assert verify_state(cookie, "google", "abc")
    assert not verify_state(cookie[:-1] + ("1" if cookie.endswith("0") else "0"), "google", "abc")
    assert not verify_state(cookie, "github", "abc")
    assert not verify_state(None, "google", "abc")


def test_provider_failure_is_502(login_client):
    client = login_client()
    _use_google(_userinfo("ann@example.com"), token_status=400)

    resp = _finish_login(client, _start_login(client))
    assert resp.status_code == 502


def test_provider_error_param_is_401(login_client):
    client = login_client()
    resp = client.get("/auth/google/callback", params={"error": "access_denied"}, follow_redirects=False)
    assert resp.status_code == 401


def test_allowed_domains_share_one_account(login_client):
    client = login_client({"auth": {"allowedDomains": ["example.com"]}})

    _use_google(_userinfo("ann@example.com", sub="1"))
    _finish_login(client, _start_login(client))
    ann = client.get("/profile").json()

    client.cookies.clear()
    _use_google(_userinfo("bob@example.com", sub="2"))
    _finish_login(client, _start_login(client))
    bob = client.get("/profile").json()

    assert ann["account_id"] == bob["account_id"]
    assert ann["role"] == "admin"
    assert bob["role"] == "member"
    account = SQLRepository().get_account(ann["account_id"])
    assert account.domain == "example.com"


def test_disallowed_domain_is_403(login_client):
    client = login_client({"auth": {"allowedDomains": ["example.com"]}})
    _use_google(_userinfo("eve@elsewhere.org"))

    resp = _finish_login(client, _start_login(client))
    assert resp.status_code == 403


def test_logout_ends_session(login_client):
    client = login_client()
    _use_google(_userinfo("ann@example.com"))
    _finish_login(client, _start_login(client))
    token = client.cookies.get("session")

    resp = client.get("/logout", follow_redirects=False)
    assert resp.status_code == 302
    assert resp.headers["location"] == "/login"

    client.cookies.set("session", token)
    assert client.get("/profile").status_code == 401


def test_profile_requires_login(login_client):
    client = login_client()
    assert client.get("/profile").status_code == 401


def test_auth_routes_only_accept_get(login_client):
    client = login_client()
    assert client.post("/login").status_code == 405
