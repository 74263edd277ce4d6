from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..core.context import AppContext
from ..models.schemas import HealthStatus
from .deps import get_context

router = APIRouter()


def _render(health: HealthStatus, strict: bool = True) -> JSONResponse:
    status_code = 503 if strict and health.status != "UP" else 200
    return JSONResponse(
        status_code=status_code,
        content=health.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


@router.get("")
async def basic(ctx: AppContext = Depends(get_context)):
    return _render(await ctx.health.basic(), strict=False)


@router.get("/ready")
async def ready(ctx: AppContext = Depends(get_context)):
    return _render(await ctx.health.readiness())


@router.get("/productivity")
async def productivity(ctx: AppContext = Depends(get_context)):
    return _render(await ctx.health.api("productivity"))


@router.get("/code-health")
async def code_health(ctx: AppContext = Depends(get_context)):
    return _render(await ctx.health.api("code-health"))


@router.get("/cockpit")
async def cockpit(ctx: AppContext = Depends(get_context)):
    return _render(await ctx.health.api("cockpit"))


@router.get("/bigquery")
async def bigquery(ctx: AppContext = Depends(get_context)):
    return _render(await ctx.health.check_warehouse())
