"""
Admin rate-limit monitoring endpoints.
"""

import math
from typing import Annotated, Optional

from dishka import FromDishka
from dishka.integrations.fastapi import DishkaRoute
from fastapi import APIRouter, Depends, Query, status

from src.api.dependencies.security import require_security
from src.api.security.pipeline import SecurityContext
from src.api.security.presets import SecurityPresets
from src.api.v1.schemas.security import (
    PaginationResponse,
    RateLimitClearResponse,
    RateLimitEntryResponse,
    RateLimitOverviewResponse,
    RateLimitStatisticsResponse,
    RateLimitStatusResponse,
    TopViolatorResponse,
    ViolationPatternResponse,
)
from src.core.logging import get_logger
from src.dtos.rate_limit_dto import IdentityKind, RateLimitEntry
from src.services.rate_limiter_service import RateLimiterService, is_violation_key
from src.services.validator import Validator

logger = get_logger(__name__)

router = APIRouter(
    prefix="/admin/rate-limits",
    route_class=DishkaRoute,
)

AdminContext = Annotated[SecurityContext, Depends(require_security(SecurityPresets.ADMIN))]


def _target(key: str) -> str:
    for kind in IdentityKind:
        if f":{kind.value}:" in key:
            return kind.value
    return IdentityKind.IP.value


def _entry_response(entry: RateLimitEntry) -> RateLimitEntryResponse:
    return RateLimitEntryResponse(
        key=entry.key,
        count=entry.count,
        window_start=entry.window_started_at,
        window_reset_at=entry.window_reset_at,
        last_request=entry.last_request_at,
        type="violation" if is_violation_key(entry.key) else "rate_limit",
        identifier=entry.key.split(":")[0],
        target=_target(entry.key),
    )


@router.get("", response_model=RateLimitOverviewResponse, status_code=status.HTTP_200_OK)
async def get_rate_limits(
    ctx: AdminContext,
    service: FromDishka[RateLimiterService],
    type: str = Query("all", description="'all', 'violations' or a purpose prefix"),
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
):
    """
    View active rate-limit counters, statistics and violation patterns.
    """
    pagination = Validator.validate_pagination(page, limit)
    overview = await service.get_overview(type, pagination["page"], pagination["limit"])

    logger.info(
        "rate_limit_overview_requested",
        user_id=ctx.principal.id,
        type=type,
        records=len(overview.entries),
    )

    total_pages = math.ceil(overview.total_records / overview.limit) if overview.limit else 0
    return RateLimitOverviewResponse(
        rate_limits=[_entry_response(e) for e in overview.entries],
        statistics=RateLimitStatisticsResponse(
            total_active_keys=overview.total_active_keys,
            total_requests=overview.total_requests,
            avg_requests_per_key=overview.avg_requests_per_key,
            max_requests_per_key=overview.max_requests_per_key,
        ),
        top_violators=[
            TopViolatorResponse(key=e.key, count=e.count, last_request=e.last_request_at)
            for e in overview.top_violators
        ],
        violation_patterns=[
            ViolationPatternResponse(
                key=e.key.replace(":violations", "", 1),
                violation_count=e.count,
                last_violation=e.last_request_at,
            )
            for e in overview.violation_patterns
        ],
        pagination=PaginationResponse(
            current_page=overview.page,
            per_page=overview.limit,
            total_records=overview.total_records,
            total_pages=total_pages,
            has_next=overview.page * overview.limit < overview.total_records,
            has_prev=overview.page > 1,
        ),
    )


@router.get("/status", response_model=RateLimitStatusResponse, status_code=status.HTTP_200_OK)
async def get_rate_limit_status(
    ctx: AdminContext,
    service: FromDishka[RateLimiterService],
    key: str = Query(..., min_length=1),
):
    """
    Current counter for one rendered key, without counting a request.
    """
    entry = await service.get_status(key)
    if entry is None:
        return RateLimitStatusResponse(key=key, active=False)

    return RateLimitStatusResponse(
        key=key,
        active=True,
        count=entry.count,
        window_reset_at=entry.window_reset_at,
        last_request=entry.last_request_at,
    )


@router.delete("", response_model=RateLimitClearResponse, status_code=status.HTTP_200_OK)
async def clear_rate_limits(
    ctx: AdminContext,
    service: FromDishka[RateLimiterService],
    key: Optional[str] = Query(None),
    type: Optional[str] = Query(None),
):
    """
    Clear rate limits (admin emergency action).

    With ``key`` one counter and its violation history are removed; with
    ``type`` every matching counter; with neither, expired counters are swept.
    """
    if key:
        deleted = await service.reset_limits(key)
        message = f"Rate limit cleared for key: {key}"
    elif type:
        deleted = await service.clear_by_type(type)
        message = f"Cleared {deleted} rate limit records of type: {type}"
    else:
        deleted = await service.sweep()
        message = f"Cleared {deleted} expired rate limit records"

    logger.warning(
        "rate_limits_cleared",
        user_id=ctx.principal.id,
        key=key,
        type=type,
        deleted=deleted,
    )
    return RateLimitClearResponse(message=message, deleted=deleted)
