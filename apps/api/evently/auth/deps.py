from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from evently.api.deps import get_settings
from evently.auth.jwt import verify_access_token
from evently.core.config import Settings

TOKEN_COOKIE = "token"


def _unauthorized(detail: str = "Not authorized") -> HTTPException:
    return HTTPException(
        status_code=401,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _extract_token(request: Request) -> str | None:
    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        return auth.removeprefix("Bearer ").strip() or None
    # Browser clients authenticate with an httpOnly cookie.
    return request.cookies.get(TOKEN_COOKIE) or None


def get_current_user_id(
    request: Request,
    config: Annotated[Settings, Depends(get_settings)],
) -> str:
    token = _extract_token(request)
    if not token:
        raise _unauthorized("Not authorized, no token provided")

    # Local dev auth only
    if config.auth_mode == "dev" and config.env == "local":
        prefix = config.dev_auth_prefix
        if not token.startswith(prefix):
            raise _unauthorized(f"invalid dev token (expected prefix {prefix})")
        user_id = token.removeprefix(prefix).strip()
        if not user_id:
            raise _unauthorized("invalid user id in token")
        return user_id

    if config.auth_mode != "jwt":
        raise _unauthorized("auth not configured")

    try:
        claims = verify_access_token(token, config)
    except ValueError:
        raise _unauthorized("Not authorized, token invalid") from None

    user_id = str(claims.get("sub", "")).strip()
    if not user_id:
        raise _unauthorized("Not authorized, token invalid")
    return user_id


CurrentUserId = Annotated[str, Depends(get_current_user_id)]
