from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .core.config import Settings, load_settings
from .core.context import build_context
from .core.errors import AnalyticsError
from .core.logging_config import get_logger, setup_logging
from .core.middleware import RateLimitMiddleware, RequestIDMiddleware, SecurityHeadersMiddleware
from .routers import cockpit, code_health, health, productivity
from .services.cache import ResponseCache
from .services.warehouse import WarehouseGateway

logger = get_logger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"status": "error", "error": message})


def create_app(
    settings: Optional[Settings] = None,
    gateway: Optional[WarehouseGateway] = None,
    cache: Optional[ResponseCache] = None,
) -> FastAPI:
    settings = settings if settings is not None else load_settings()
    setup_logging(settings.log_level, settings.log_json)

    app = FastAPI(title="Engineering Analytics API", version="1.0.0")
    app.state.context = build_context(settings, gateway=gateway, cache=cache)
    # The last middleware added runs outermost.
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(AnalyticsError)
    async def analytics_error_handler(request: Request, exc: AnalyticsError):
        if exc.status_code >= 500:
            logger.error(exc.message, extra={"path": request.url.path})
        return _error(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        fields = [str(err["loc"][-1]) for err in exc.errors()]
        return _error(400, f"Invalid parameters: {', '.join(fields)}")

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error("Unhandled error", exc_info=exc, extra={"path": request.url.path})
        return _error(500, "Internal server error")

    app.include_router(productivity.router, prefix="/api/productivity", tags=["Productivity"])
    app.include_router(code_health.router, prefix="/api/code-health", tags=["Code Health"])
    app.include_router(cockpit.router, prefix="/api/cockpit", tags=["Cockpit"])
    app.include_router(health.router, prefix="/api/health", tags=["Health"])

    logger.info(
        "Analytics API configured",
        extra={"project_id": settings.project_id, "auth_enabled": bool(settings.api_key)},
    )
    return app


app = create_app()


def run() -> None:
    settings = app.state.context.settings
    uvicorn.run(app, host="0.0.0.0", port=settings.port, log_config=None)


if __name__ == "__main__":
    run()
