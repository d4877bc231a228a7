import logging
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import RedirectResponse

from app.config import settings
from app.security import issue_session_token, read_token_claims

router = APIRouter()
logger = logging.getLogger("stickyboard.security")

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"


def _session_redirect(user_id: str, name: str | None = None) -> RedirectResponse:
    response = RedirectResponse(url="/", status_code=302)
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        issue_session_token(user_id, name=name),
        max_age=settings.SESSION_TTL_SECONDS,
        path="/",
        httponly=True,
        samesite="strict",
    )
    return response


@router.get("/google")
async def google_login(request: Request, code: str | None = None):
    client_id = settings.GOOGLE_CLIENT_ID
    secret = settings.GOOGLE_CLIENT_SECRET
    if not client_id or not secret:
        # 开发模式：未配置时用 code 生成伪身份，便于本地联调
        if not code or settings.AUTH_REQUIRED:
            if code:
                logger.warning("AUTH_DEV_LOGIN_REFUSED reason=auth_required")
            raise HTTPException(status_code=503, detail="Google login is not configured")
        return _session_redirect(f"dev_{code}")

    redirect_uri = str(request.url_for("google_login"))
    if not code:
        params = {
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": "openid profile email",
        }
        return RedirectResponse(url=f"{GOOGLE_AUTH_URL}?{urlencode(params)}", status_code=302)

    try:
        async with httpx.AsyncClient(timeout=10) as client:
            token_resp = await client.post(GOOGLE_TOKEN_URL, data={
                "client_id": client_id,
                "client_secret": secret,
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": redirect_uri,
            })
            access_token = token_resp.json().get("access_token")
            if not access_token:
                logger.warning("GOOGLE_TOKEN_EXCHANGE_FAILED status=%s", token_resp.status_code)
                raise HTTPException(status_code=401, detail="Google login failed")
            user_resp = await client.get(
                GOOGLE_USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            user_data = user_resp.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.error("GOOGLE_LOGIN_ERROR error=%s", exc)
        raise HTTPException(status_code=502, detail="Google login unavailable") from exc

    user_id = user_data.get("email") or user_data.get("id")
    if not user_id:
        raise HTTPException(status_code=401, detail="Google account has no identity")
    return _session_redirect(str(user_id), user_data.get("name"))


@router.get("/me")
async def who_am_i(request: Request):
    claims = read_token_claims(request)
    if not claims:
        raise HTTPException(status_code=401, detail="not logged in")
    return {"user_id": str(claims["sub"]), "name": claims.get("name")}
