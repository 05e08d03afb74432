"""
Admin validation endpoint: runs the rule-based Validator over submitted values.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from pydantic import ValidationError

from src.api.dependencies.security import require_security
from src.api.security.pipeline import SecurityContext
from src.api.security.presets import SecurityPresets
from src.api.v1.schemas.security import (
    FieldValidationErrorResponse,
    ValidateRequest,
    ValidateResponse,
)
from src.core.errors import validation_error
from src.core.logging import get_logger
from src.dtos.validation_dto import ValidationRule
from src.services.validator import Validator

logger = get_logger(__name__)

router = APIRouter(prefix="/admin")


@router.post("/validate", response_model=ValidateResponse, status_code=status.HTTP_200_OK)
async def validate_values(
    ctx: Annotated[SecurityContext, Depends(require_security(SecurityPresets.ADMIN))],
):
    """
    Validate a rule set.

    The body is read from the sanitized security context, not re-parsed from
    the raw request.
    """
    try:
        payload = ValidateRequest.model_validate(ctx.body or {})
    except ValidationError as e:
        raise validation_error(
            "Invalid validation request",
            {"errors": e.errors(include_url=False, include_context=False, include_input=False)},
        )

    result = Validator.validate([
        ValidationRule(
            field=rule.field,
            value=rule.value,
            rules=rule.rules,
            custom_message=rule.custom_message,
        )
        for rule in payload.rules
    ])

    logger.info(
        "validation_requested",
        user_id=ctx.principal.id,
        fields=len(payload.rules),
        is_valid=result.is_valid,
    )

    return ValidateResponse(
        is_valid=result.is_valid,
        errors=[FieldValidationErrorResponse(**error.to_dict()) for error in result.errors],
    )
