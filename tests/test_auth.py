from urllib.parse import parse_qs, urlparse

import httpx
from starlette.requests import Request

from app.api import auth as auth_api
from app.config import settings
from app.security import issue_session_token, read_token_claims, resolve_user_id


def _request(headers: dict | None = None, query: str = "") -> Request:
    raw_headers = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    return Request({
        "type": "http",
        "method": "GET",
        "path": "/ws",
        "query_string": query.encode(),
        "headers": raw_headers,
        "client": ("127.0.0.1", 5000),
    })


def test_bearer_token_resolves_identity() -> None:
    token = issue_session_token("alice@example.com", name="Alice")
    request = _request({"Authorization": f"Bearer {token}"})
    assert resolve_user_id(request) == "alice@example.com"
    assert read_token_claims(request)["name"] == "Alice"


def test_session_cookie_resolves_identity() -> None:
    token = issue_session_token("u1")
    request = _request({"Cookie": f"{settings.SESSION_COOKIE_NAME}={token}"})
    assert resolve_user_id(request) == "u1"


def test_declared_header_is_fallback_identity() -> None:
    assert resolve_user_id(_request({"X-User-Id": "u2"})) == "u2"
    assert resolve_user_id(_request()) is None


def test_mismatched_token_and_header_yield_no_identity() -> None:
    token = issue_session_token("u1")
    assert resolve_user_id(_request({"X-User-Id": "u2"}, query=f"token={token}")) is None


def test_invalid_and_expired_tokens_are_ignored() -> None:
    assert resolve_user_id(_request(query="token=garbage")) is None
    expired = issue_session_token("u1", ttl_seconds=-60)
    assert resolve_user_id(_request(query=f"token={expired}")) is None


def test_me_endpoint(client) -> None:
    assert client.get("/auth/me").status_code == 401
    token = issue_session_token("u1", name="User One")
    response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200
    assert response.json() == {"user_id": "u1", "name": "User One"}


def test_google_login_unconfigured(client, monkeypatch) -> None:
    monkeypatch.setattr(settings, "GOOGLE_CLIENT_ID", "")
    monkeypatch.setattr(settings, "GOOGLE_CLIENT_SECRET", "")
    assert client.get("/auth/google", follow_redirects=False).status_code == 503

    response = client.get("/auth/google?code=abc", follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["location"] == "/"
    cookie = response.headers["set-cookie"]
    assert cookie.startswith(f"{settings.SESSION_COOKIE_NAME}=")
    assert "HttpOnly" in cookie
    assert "samesite=strict" in cookie.lower()

    token = response.cookies[settings.SESSION_COOKIE_NAME]
    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["user_id"] == "dev_abc"


def test_google_login_redirects_to_consent(client, monkeypatch) -> None:
    monkeypatch.setattr(settings, "GOOGLE_CLIENT_ID", "client-123")
    monkeypatch.setattr(settings, "GOOGLE_CLIENT_SECRET", "secret")
    response = client.get("/auth/google", follow_redirects=False)
    assert response.status_code == 302
    location = urlparse(response.headers["location"])
    assert location.netloc == "accounts.google.com"
    params = parse_qs(location.query)
    assert params["client_id"] == ["client-123"]
    assert params["redirect_uri"][0].endswith("/auth/google")
    assert params["scope"] == ["openid profile email"]


def test_google_login_exchanges_code(client, monkeypatch) -> None:
    monkeypatch.setattr(settings, "GOOGLE_CLIENT_ID", "client-123")
    monkeypatch.setattr(settings, "GOOGLE_CLIENT_SECRET", "secret")
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.host + request.url.path)
        if request.url.path == "/token":
            assert b"code=xyz" in request.content
            return httpx.Response(200, json={"access_token": "at-1"})
        assert request.headers["authorization"] == "Bearer at-1"
        return httpx.Response(200, json={"id": "42", "email": "alice@example.com", "name": "Alice"})

    real_client = httpx.AsyncClient
    monkeypatch.setattr(
        auth_api.httpx,
        "AsyncClient",
        lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs),
    )

    response = client.get("/auth/google?code=xyz", follow_redirects=False)
    assert response.status_code == 302
    assert seen == ["oauth2.googleapis.com/token", "www.googleapis.com/oauth2/v2/userinfo"]
    token = response.cookies[settings.SESSION_COOKIE_NAME]
    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json() == {"user_id": "alice@example.com", "name": "Alice"}


def test_google_login_rejected_code(client, monkeypatch) -> None:
    monkeypatch.setattr(settings, "GOOGLE_CLIENT_ID", "client-123")
    monkeypatch.setattr(settings, "GOOGLE_CLIENT_SECRET", "secret")
    real_client = httpx.AsyncClient
    monkeypatch.setattr(
        auth_api.httpx,
        "AsyncClient",
        lambda **kwargs: real_client(
            transport=httpx.MockTransport(lambda request: httpx.Response(400, json={"error": "invalid_grant"})),
            **kwargs,
        ),
    )
    assert client.get("/auth/google?code=bad", follow_redirects=False).status_code == 401


def test_me_ignores_declared_header_identity(client) -> None:
    assert client.get("/auth/me", headers={"X-User-Id": "u2"}).status_code == 401


def test_dev_login_refused_when_auth_required(client, monkeypatch) -> None:
    monkeypatch.setattr(settings, "GOOGLE_CLIENT_ID", "")
    monkeypatch.setattr(settings, "GOOGLE_CLIENT_SECRET", "")
    monkeypatch.setattr(settings, "AUTH_REQUIRED", True)
    response = client.get("/auth/google?code=abc", follow_redirects=False)
    assert response.status_code == 503
    assert settings.SESSION_COOKIE_NAME not in response.cookies
