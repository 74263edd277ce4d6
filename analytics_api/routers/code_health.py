from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from ..core.config import CODE_HEALTH_CACHE_TTL
from ..core.context import AppContext
from ..core.errors import ValidationError
from ..utils.time_windows import QueryWindow
from .deps import cached_response, get_context, query_window, require_api_key

router = APIRouter(dependencies=[Depends(require_api_key)])


@router.get("/charts/suggestions-by-category")
async def suggestions_by_category(
    request: Request,
    window: QueryWindow = Depends(query_window),
    ctx: AppContext = Depends(get_context),
):
    return await cached_response(
        request, CODE_HEALTH_CACHE_TTL, lambda: ctx.code_health.suggestions_by_category(window)
    )


@router.get("/charts/suggestions-by-repository")
async def suggestions_by_repository(
    request: Request,
    window: QueryWindow = Depends(query_window),
    ctx: AppContext = Depends(get_context),
):
    return await cached_response(
        request, CODE_HEALTH_CACHE_TTL, lambda: ctx.code_health.suggestions_by_repository(window)
    )


@router.get("/charts/bug-ratio")
async def bug_ratio_chart(
    request: Request,
    window: QueryWindow = Depends(query_window),
    ctx: AppContext = Depends(get_context),
):
    return await cached_response(
        request, CODE_HEALTH_CACHE_TTL, lambda: ctx.code_health.bug_ratio_chart(window)
    )


@router.get("/highlights/bug-ratio")
async def bug_ratio_highlight(
    request: Request,
    window: QueryWindow = Depends(query_window),
    ctx: AppContext = Depends(get_context),
):
    return await cached_response(
        request, CODE_HEALTH_CACHE_TTL, lambda: ctx.code_health.bug_ratio_highlight(window)
    )


@router.get("/highlights/suggestions-implementation-rate")
async def suggestions_implementation_rate(
    request: Request,
    organizationId: Optional[str] = Query(None),
    repository: Optional[str] = Query(None),
    ctx: AppContext = Depends(get_context),
):
    if not organizationId or not organizationId.strip():
        raise ValidationError("Missing required parameters: organizationId")
    return await cached_response(
        request,
        CODE_HEALTH_CACHE_TTL,
        lambda: ctx.code_health.suggestions_implementation_rate(organizationId.strip(), repository or None),
    )
