"""
Authentication API endpoints.

Tokens are issued by the external identity service; this API only resolves
them into principals.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from src.api.dependencies.security import require_security
from src.api.security.pipeline import SecurityContext
from src.api.security.presets import SecurityPresets
from src.api.v1.schemas.security import PrincipalResponse
from src.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/auth")


@router.get("/me", response_model=PrincipalResponse, status_code=status.HTTP_200_OK)
async def get_current_principal(
    ctx: Annotated[SecurityContext, Depends(require_security(SecurityPresets.CUSTOMER))],
):
    """
    Return the authenticated principal.
    """
    principal = ctx.principal
    logger.debug("current_principal_requested", user_id=principal.id)
    return PrincipalResponse(
        id=principal.id,
        email=principal.email,
        role=principal.role.value,
        name=principal.name,
        token_issued_at=principal.token_issued_at,
        token_expires_at=principal.token_expires_at,
    )
