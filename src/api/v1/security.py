"""
Security endpoints: CSRF token issuing.
"""

from dataclasses import replace
from typing import Annotated

from fastapi import APIRouter, Depends, status

from src.api.dependencies.security import require_security
from src.api.security.pipeline import SecurityContext
from src.api.security.presets import SecurityPresets
from src.api.v1.schemas.security import CsrfTokenResponse
from src.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/security")

# Public limits; CSRF enabled so that the GET re-issues a token
CSRF_TOKEN_ROUTE = replace(SecurityPresets.PUBLIC, require_csrf=True)


@router.get("/csrf-token", response_model=CsrfTokenResponse, status_code=status.HTTP_200_OK)
async def get_csrf_token(
    ctx: Annotated[SecurityContext, Depends(require_security(CSRF_TOKEN_ROUTE))],
):
    """
    Issue a CSRF token.

    The token is set as an HTTP-only cookie and returned in the
    ``x-csrf-token`` header and in the body; clients echo it in the header
    on state-changing requests.
    """
    logger.info("csrf_token_issued", client_ip=ctx.client_ip)
    return CsrfTokenResponse(csrf_token=ctx.csrf_token)
