from fastapi import APIRouter, Depends, Query, Request

from ..core.config import PRODUCTIVITY_CACHE_TTL
from ..core.context import AppContext
from ..utils.time_windows import QueryWindow
from .deps import cached_response, get_context, query_window, require_api_key

router = APIRouter(dependencies=[Depends(require_api_key)])


@router.get("/charts/deploy-frequency")
async def deploy_frequency_chart(
    request: Request,
    window: QueryWindow = Depends(query_window),
    ctx: AppContext = Depends(get_context),
):
    return await cached_response(
        request, PRODUCTIVITY_CACHE_TTL, lambda: ctx.productivity.deploy_frequency_chart(window)
    )


@router.get("/highlights/deploy-frequency")
async def deploy_frequency_highlight(
    request: Request,
    window: QueryWindow = Depends(query_window),
    ctx: AppContext = Depends(get_context),
):
    return await cached_response(
        request, PRODUCTIVITY_CACHE_TTL, lambda: ctx.productivity.deploy_frequency_highlight(window)
    )


@router.get("/charts/lead-time-for-change")
async def lead_time_chart(
    request: Request,
    window: QueryWindow = Depends(query_window),
    ctx: AppContext = Depends(get_context),
):
    return await cached_response(
        request, PRODUCTIVITY_CACHE_TTL, lambda: ctx.productivity.lead_time_chart(window)
    )


@router.get("/highlights/lead-time-for-change")
async def lead_time_highlight(
    request: Request,
    window: QueryWindow = Depends(query_window),
    ctx: AppContext = Depends(get_context),
):
    return await cached_response(
        request, PRODUCTIVITY_CACHE_TTL, lambda: ctx.productivity.lead_time_highlight(window)
    )


@router.get("/highlights/pr-size")
async def pr_size_highlight(
    request: Request,
    window: QueryWindow = Depends(query_window),
    ctx: AppContext = Depends(get_context),
):
    return await cached_response(
        request, PRODUCTIVITY_CACHE_TTL, lambda: ctx.productivity.pr_size_highlight(window)
    )


@router.get("/charts/pull-requests-by-developer")
async def pull_requests_by_developer(
    request: Request,
    window: QueryWindow = Depends(query_window),
    ctx: AppContext = Depends(get_context),
):
    return await cached_response(
        request, PRODUCTIVITY_CACHE_TTL, lambda: ctx.productivity.pull_requests_by_developer(window)
    )


@router.get("/charts/pull-requests-opened-vs-closed")
async def opened_vs_closed(
    request: Request,
    window: QueryWindow = Depends(query_window),
    ctx: AppContext = Depends(get_context),
):
    return await cached_response(
        request, PRODUCTIVITY_CACHE_TTL, lambda: ctx.productivity.opened_vs_closed(window)
    )


@router.get("/charts/lead-time-breakdown")
async def lead_time_breakdown(
    request: Request,
    window: QueryWindow = Depends(query_window),
    ctx: AppContext = Depends(get_context),
):
    return await cached_response(
        request, PRODUCTIVITY_CACHE_TTL, lambda: ctx.productivity.lead_time_breakdown(window)
    )


@router.get("/charts/developer-activity")
async def developer_activity(
    request: Request,
    window: QueryWindow = Depends(query_window),
    ctx: AppContext = Depends(get_context),
):
    return await cached_response(
        request, PRODUCTIVITY_CACHE_TTL, lambda: ctx.productivity.developer_activity(window)
    )


@router.get("/dashboard/company")
async def company_dashboard(
    request: Request,
    window: QueryWindow = Depends(query_window),
    complete: bool = Query(False, description="Also fetch the highlight metrics"),
    ctx: AppContext = Depends(get_context),
):
    produce = ctx.dashboard.complete if complete else ctx.dashboard.company
    return await cached_response(request, PRODUCTIVITY_CACHE_TTL, lambda: produce(window))
