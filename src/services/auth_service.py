"""
Authentication guard.

Resolves the bearer credential on a request into a ``PrincipalDTO`` and
enforces role allow-lists. Token verification itself is delegated to a
``TokenVerifier``; issuing tokens is out of scope.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, Optional

import jwt
from fastapi import Request

from src.core.config import Config
from src.core.errors import (
    access_denied,
    authentication_failed,
    authentication_required,
    token_expired,
)
from src.core.logging import get_logger
from src.core.security import TokenVerifier
from src.dtos.principal_dto import PrincipalDTO, Role
from src.repositories.auth_repository import AuthRepository

logger = get_logger(__name__)

BEARER_PREFIX = "Bearer "


def _timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    return None


class AuthService:
    """Service for authenticating and authorizing requests."""

    def __init__(
        self,
        config: Config,
        token_verifier: TokenVerifier,
        auth_repository: Optional[AuthRepository] = None,
    ):
        """
        Args:
            config: Application configuration
            token_verifier: Verifies bearer tokens into claims
            auth_repository: When given, the principal's account must exist
                and not be banned or deleted
        """
        self.config = config
        self.token_verifier = token_verifier
        self.auth_repository = auth_repository

    def extract_token(self, request: Request) -> Optional[str]:
        """
        Read the credential from ``Authorization: Bearer <token>``.

        Falls back to the auth cookie when enabled. A present but malformed
        Authorization header never falls back.
        """
        header = request.headers.get("authorization")
        if header is not None:
            if not header.startswith(BEARER_PREFIX):
                return None
            token = header[len(BEARER_PREFIX):].strip()
            return token or None

        if self.config.AUTH_COOKIE_FALLBACK:
            return request.cookies.get(self.config.AUTH_COOKIE_NAME) or None

        return None

    async def authenticate_request(self, request: Request) -> PrincipalDTO:
        """
        Authenticate *request*.

        Returns:
            PrincipalDTO built from verified claims

        Raises:
            AppError: AUTHENTICATION_REQUIRED, AUTHENTICATION_FAILED or
                TOKEN_EXPIRED
        """
        token = self.extract_token(request)
        if token is None:
            raise authentication_required("Missing or malformed bearer token")

        try:
            claims = self.token_verifier.verify(token)
        except jwt.ExpiredSignatureError:
            logger.info("auth_token_expired", path=request.url.path)
            raise token_expired()
        except jwt.InvalidTokenError as e:
            logger.warning("auth_token_invalid", path=request.url.path, error=str(e))
            raise authentication_failed("Invalid token")

        principal = self.principal_from_claims(claims)

        if self.auth_repository is not None:
            await self._verify_account(principal)

        logger.debug("request_authenticated", user_id=principal.id, role=principal.role.value)
        return principal

    def principal_from_claims(self, claims: dict[str, Any]) -> PrincipalDTO:
        user_id = claims.get("userId") or claims.get("user_id") or claims.get("sub")
        if not user_id:
            raise authentication_failed("Token carries no subject")

        try:
            role = Role(claims.get("user_type") or claims.get("role"))
        except ValueError:
            raise authentication_failed("Token carries an unknown role")

        return PrincipalDTO(
            id=str(user_id),
            email=claims.get("email") or "",
            role=role,
            token_issued_at=_timestamp(claims.get("iat")),
            token_expires_at=_timestamp(claims.get("exp")),
            name=claims.get("full_name") or claims.get("name"),
        )

    def authorize(self, principal: PrincipalDTO, allowed_roles: Iterable[Role | str]) -> None:
        """
        Raise ACCESS_DENIED unless *principal* holds one of *allowed_roles*.

        An empty allow-list admits any authenticated principal.
        """
        roles = tuple(allowed_roles)
        if not roles or principal.has_role(*roles):
            return

        logger.warning(
            "access_denied",
            user_id=principal.id,
            role=principal.role.value,
            allowed_roles=[Role(r).value for r in roles],
        )
        raise access_denied(f"Role {principal.role.value} is not allowed")

    async def _verify_account(self, principal: PrincipalDTO) -> None:
        user = await self.auth_repository.get_user_by_id(principal.id)
        if user is None:
            raise authentication_failed("User not found")
        if user.is_blocked:
            logger.warning("blocked_account_rejected", user_id=principal.id, status=user.account_status)
            raise authentication_failed(f"Account {user.account_status}")
