"""
CSRF protection using the double-submit cookie pattern.
"""

import hmac
import secrets

from fastapi import Request, Response

from src.core.config import Config
from src.core.logging import get_logger

logger = get_logger(__name__)

CSRF_PROTECTED_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
CSRF_REISSUE_METHODS = frozenset({"GET", "HEAD"})


class CSRFService:
    """
    Issues and validates CSRF tokens.

    A token is written to an HTTP-only cookie and mirrored in a response
    header; the client echoes the header value on state-changing requests
    and the two must match.
    """

    def __init__(self, config: Config):
        self.config = config

    def generate_token(self) -> str:
        return secrets.token_hex(self.config.CSRF_TOKEN_BYTES)

    def set_token_cookie(self, response: Response) -> str:
        """
        Issue a fresh token on *response*.

        Returns:
            The issued token
        """
        token = self.generate_token()
        response.set_cookie(
            key=self.config.CSRF_COOKIE_NAME,
            value=token,
            max_age=self.config.CSRF_TOKEN_MAX_AGE_SECONDS,
            path="/",
            httponly=True,
            secure=self.config.is_production,
            samesite="strict",
        )
        response.headers[self.config.CSRF_HEADER_NAME] = token
        return token

    def validate_token(self, request: Request) -> bool:
        header_token = request.headers.get(self.config.CSRF_HEADER_NAME)
        cookie_token = request.cookies.get(self.config.CSRF_COOKIE_NAME)

        if not header_token or not cookie_token:
            logger.warning(
                "csrf_token_missing",
                header_present=bool(header_token),
                cookie_present=bool(cookie_token),
                path=request.url.path,
                method=request.method,
            )
            return False

        if not hmac.compare_digest(header_token.encode(), cookie_token.encode()):
            logger.warning("csrf_token_mismatch", path=request.url.path, method=request.method)
            return False

        return True

    @staticmethod
    def requires_validation(method: str) -> bool:
        return method.upper() in CSRF_PROTECTED_METHODS

    @staticmethod
    def should_reissue(method: str) -> bool:
        return method.upper() in CSRF_REISSUE_METHODS
