"""
Bearer token helpers.

Token issuing belongs to the external identity service; ``create_access_token``
exists for tooling and tests. Verification is exposed through the
``TokenVerifier`` protocol so the auth guard does not depend on PyJWT
directly.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Protocol

import jwt

from src.core.config import Config


class TokenVerifier(Protocol):
    """Credential-verification collaborator."""

    def verify(self, token: str) -> dict[str, Any]:
        """
        Return the verified claims of *token*.

        Raises:
            jwt.ExpiredSignatureError: token expired
            jwt.InvalidTokenError: any other signature or claim failure
        """
        ...


def create_access_token(
    data: dict[str, Any],
    config: Config,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Sign an access token with the configured secret, issuer and audience."""
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES))
    payload = {
        **data,
        "iat": now,
        "exp": expire,
        "iss": config.JWT_ISSUER,
        "aud": config.JWT_AUDIENCE,
    }
    return jwt.encode(payload, config.SECRET_KEY, algorithm=config.ALGORITHM)


def decode_access_token(token: str, config: Config) -> dict[str, Any]:
    """Decode and validate an access token (signature, expiry, issuer, audience)."""
    return jwt.decode(
        token,
        config.SECRET_KEY,
        algorithms=[config.ALGORITHM],
        issuer=config.JWT_ISSUER,
        audience=config.JWT_AUDIENCE,
        options={"require": ["exp", "iat"]},
    )


class JWTTokenVerifier:
    """``TokenVerifier`` backed by PyJWT and the shared HS256 secret."""

    def __init__(self, config: Config):
        self.config = config

    def verify(self, token: str) -> dict[str, Any]:
        return decode_access_token(token, self.config)
