from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from ..core.config import COCKPIT_CACHE_TTL
from ..core.context import AppContext
from .deps import cached_response, get_context, require_api_key

router = APIRouter(dependencies=[Depends(require_api_key)])


@router.get("/validate")
async def validate(
    request: Request,
    organizationId: Optional[str] = Query(None),
    ctx: AppContext = Depends(get_context),
):
    return await cached_response(
        request, COCKPIT_CACHE_TTL, lambda: ctx.cockpit.validate(organizationId or "")
    )
