from __future__ import annotations

import jwt
from jwt import PyJWTError

from evently.core.config import Settings, settings as default_settings


def verify_access_token(token: str, config: Settings | None = None) -> dict:
    """Decode an access token issued by the identity service."""
    config = config or default_settings
    try:
        return jwt.decode(
            token,
            config.jwt_secret,
            algorithms=[config.jwt_algorithm],
            issuer=config.jwt_issuer,
            audience=config.jwt_audience,
            options={"require": ["sub", "exp"]},
        )
    except PyJWTError as exc:
        raise ValueError("invalid access token") from exc
