import logging
import time

from jose import JWTError, jwt
from starlette.requests import HTTPConnection

from app.config import settings


def _split_header_names(raw_value: str, fallback: list[str]) -> list[str]:
    names = [item.strip().lower() for item in (raw_value or "").split(",") if item.strip()]
    return names or fallback


USER_HEADER_NAMES = _split_header_names(
    settings.AUTH_USER_HEADERS,
    ["x-user-id", "x-userid"],
)
TOKEN_HEADER_NAMES = _split_header_names(
    settings.AUTH_TOKEN_HEADERS,
    ["authorization", "x-auth-token"],
)
DEV_JWT_SECRET = "stickyboard-dev-secret"
JWT_SECRET = settings.AUTH_JWT_SECRET or settings.GOOGLE_CLIENT_SECRET or DEV_JWT_SECRET
JWT_ALGORITHM = settings.AUTH_JWT_ALGORITHM or "HS256"
logger = logging.getLogger("stickyboard.security")


def _mask_user_id(user_id: str | None) -> str:
    value = (user_id or "").strip()
    if not value:
        return "-"
    if len(value) <= 8:
        return value
    return f"{value[:4]}...{value[-4:]}"


def _connection_meta(connection: HTTPConnection | None) -> tuple[str, str]:
    path = getattr(getattr(connection, "url", None), "path", "-")
    client = getattr(connection, "client", None)
    ip = getattr(client, "host", "-") if client else "-"
    return path, ip


def _audit_auth_failure(
    connection: HTTPConnection | None,
    reason: str,
    *,
    claimed_user_id: str | None = None,
    declared_user_id: str | None = None,
) -> None:
    path, ip = _connection_meta(connection)
    logger.warning(
        "AUTH_DENY reason=%s path=%s ip=%s claimed=%s declared=%s",
        reason,
        path,
        ip,
        _mask_user_id(claimed_user_id),
        _mask_user_id(declared_user_id),
    )


def _audit_auth_fallback(connection: HTTPConnection | None, *, user_id: str | None, source: str) -> None:
    path, ip = _connection_meta(connection)
    logger.info(
        "AUTH_FALLBACK source=%s path=%s ip=%s user=%s",
        source,
        path,
        ip,
        _mask_user_id(user_id),
    )


def _extract_declared_user_id(connection: HTTPConnection) -> str | None:
    headers = getattr(connection, "headers", None)
    if not headers:
        return None
    for name in USER_HEADER_NAMES:
        value = headers.get(name)
        if value and value.strip():
            return value.strip()
    return None


def _extract_auth_token(connection: HTTPConnection) -> str | None:
    headers = getattr(connection, "headers", None)
    token = None
    if headers:
        for name in TOKEN_HEADER_NAMES:
            value = headers.get(name)
            if not value:
                continue
            raw = value.strip()
            if not raw:
                continue
            if name == "authorization":
                if raw.lower().startswith("bearer "):
                    raw = raw.split(" ", 1)[1].strip()
                elif " " in raw:
                    # 仅支持 Bearer 格式
                    continue
            token = raw
            if token:
                break
    if not token:
        query = getattr(connection, "query_params", None)
        if query:
            token = (query.get("token") or query.get("access_token") or "").strip()
    if not token:
        cookies = getattr(connection, "cookies", None) or {}
        token = (cookies.get(settings.SESSION_COOKIE_NAME) or "").strip()
    return token or None


def issue_session_token(user_id: str, *, name: str | None = None, ttl_seconds: int | None = None) -> str:
    now = int(time.time())
    ttl = settings.SESSION_TTL_SECONDS if ttl_seconds is None else ttl_seconds
    claims = {"sub": user_id, "iat": now, "exp": now + ttl}
    if name:
        claims["name"] = name
    return jwt.encode(claims, JWT_SECRET, algorithm=JWT_ALGORITHM)


def read_token_claims(connection: HTTPConnection) -> dict | None:
    """Verified claims of the caller's session token, or None."""
    token = _extract_auth_token(connection)
    if not token:
        return None
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError:
        _audit_auth_failure(connection, "invalid_token")
        return None
    if not payload.get("sub"):
        _audit_auth_failure(connection, "token_missing_sub")
        return None
    return payload


def resolve_user_id(connection: HTTPConnection) -> str | None:
    """Opaque identity of the caller; the room embeds it without checks."""
    claims = read_token_claims(connection)
    declared_user_id = _extract_declared_user_id(connection)
    token_user_id = str(claims["sub"]) if claims else None
    if token_user_id and declared_user_id and token_user_id != declared_user_id:
        _audit_auth_failure(
            connection,
            "token_declared_mismatch",
            claimed_user_id=token_user_id,
            declared_user_id=declared_user_id,
        )
        return None
    if token_user_id:
        return token_user_id
    if declared_user_id:
        _audit_auth_fallback(connection, user_id=declared_user_id, source="header")
        return declared_user_id
    return None
