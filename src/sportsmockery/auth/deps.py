"""FastAPI dependencies for authentication.

Two ways in: a signed session cookie set by the site, or an
``Authorization: Bearer`` access token from the hosted identity provider
(the mobile app sends these). Also gates admin and cron routes.
"""

from __future__ import annotations

import hmac
import logging
from typing import Annotated

import httpx
from fastapi import Depends, HTTPException, Request
from itsdangerous import BadSignature, URLSafeTimedSerializer
from pydantic import BaseModel

from sportsmockery.config import Settings

logger = logging.getLogger(__name__)

# Session cookie lives for 7 days (seconds).
SESSION_MAX_AGE = 7 * 24 * 60 * 60
SESSION_COOKIE_NAME = "sm_session"

_IDENTITY_TIMEOUT = httpx.Timeout(5.0)


class SessionUser(BaseModel):
    """Minimal user info carried in the session cookie."""

    user_id: str
    email: str = ""
    display_name: str = ""


def _get_serializer(settings: Settings) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(settings.session_secret_key, salt="sm-session")


def sign_session(settings: Settings, user: SessionUser) -> str:
    """Cookie value for *user*."""
    return _get_serializer(settings).dumps(user.model_dump())


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def fetch_identity_user(
    settings: Settings,
    token: str,
    transport: httpx.AsyncBaseTransport | None = None,
) -> SessionUser | None:
    """Validate an access token against the identity provider."""
    if not settings.identity_url:
        return None
    url = f"{settings.identity_url.rstrip('/')}/auth/v1/user"
    headers = {"Authorization": f"Bearer {token}", "apikey": settings.identity_anon_key}
    try:
        async with httpx.AsyncClient(timeout=_IDENTITY_TIMEOUT, transport=transport) as client:
            resp = await client.get(url, headers=headers)
    except httpx.HTTPError as exc:
        logger.warning("identity_unreachable error=%s", exc)
        return None
    if resp.status_code != 200:
        return None

    data = resp.json()
    user_id = data.get("id")
    if not user_id:
        return None
    metadata = data.get("user_metadata") or {}
    email = data.get("email") or ""
    return SessionUser(
        user_id=str(user_id),
        email=email,
        display_name=metadata.get("full_name") or metadata.get("username") or email.split("@")[0],
    )


async def get_current_user(request: Request) -> SessionUser | None:
    """Optional auth: the cookie user, else the bearer-token user, else None."""
    settings: Settings = request.app.state.settings

    raw = request.cookies.get(SESSION_COOKIE_NAME)
    if raw:
        try:
            return SessionUser(**_get_serializer(settings).loads(raw, max_age=SESSION_MAX_AGE))
        except BadSignature:
            logger.debug("Invalid or expired session cookie, ignoring")

    token = _bearer_token(request)
    if token is None:
        return None
    transport = getattr(request.app.state, "identity_transport", None)
    return await fetch_identity_user(settings, token, transport)


# Handy type alias for route handlers.
OptionalUser = Annotated[SessionUser | None, Depends(get_current_user)]


async def require_user(user: OptionalUser) -> SessionUser:
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user


CurrentUser = Annotated[SessionUser, Depends(require_user)]


def is_admin(current_user: SessionUser | None, settings: Settings) -> bool:
    if current_user is None:
        return False
    return current_user.user_id in settings.admin_ids


async def require_admin(request: Request, user: OptionalUser) -> SessionUser | None:
    """Gate admin routes. Development allows unauthenticated access."""
    settings: Settings = request.app.state.settings
    if settings.sm_env == "development":
        return user
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    if not is_admin(user, settings):
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


AdminUser = Annotated[SessionUser | None, Depends(require_admin)]


async def require_cron_secret(request: Request) -> None:
    """Cron routes need ``Authorization: Bearer <cron_secret>`` when a secret is set."""
    settings: Settings = request.app.state.settings
    if not settings.cron_secret:
        return
    expected = f"Bearer {settings.cron_secret}".encode()
    provided = request.headers.get("authorization", "").encode()
    if not hmac.compare_digest(provided, expected):
        raise HTTPException(status_code=401, detail="Unauthorized")
