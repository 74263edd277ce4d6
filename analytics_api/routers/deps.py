import secrets
from typing import Awaitable, Callable, Optional

from fastapi import Query, Request
from fastapi.encoders import jsonable_encoder

from ..core.context import AppContext
from ..core.errors import AuthError, ConfigurationError
from ..core.logging_config import get_logger
from ..utils.time_windows import QueryWindow, parse_window

logger = get_logger(__name__)


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def require_api_key(request: Request) -> None:
    api_key = request.headers.get("x-api-key")
    if not api_key:
        raise AuthError("API Key is required", status_code=401)

    expected = get_context(request).settings.api_key
    if not expected:
        logger.error("API_KEY is not configured; rejecting authenticated request")
        raise ConfigurationError("API authentication not configured")

    if not secrets.compare_digest(api_key.encode(), expected.encode()):
        logger.warning("Invalid API key", extra={"path": request.url.path})
        raise AuthError("Invalid API Key", status_code=403)


def query_window(
    organizationId: Optional[str] = Query(None),
    startDate: Optional[str] = Query(None, description="YYYY-MM-DD"),
    endDate: Optional[str] = Query(None, description="YYYY-MM-DD"),
    repository: Optional[str] = Query(None, description="Full repository name"),
) -> QueryWindow:
    return parse_window(organizationId, startDate, endDate, repository)


def cache_key(request: Request) -> str:
    query = request.url.query
    return f"{request.url.path}?{query}" if query else request.url.path


async def cached_response(request: Request, ttl: int, produce: Callable[[], Awaitable[object]]) -> dict:
    """Serve ``{"status": "success", "data": ...}`` from cache or compute and store it."""
    cache = get_context(request).cache
    key = cache_key(request)
    payload = cache.get(key)
    if payload is not None:
        return payload

    payload = {"status": "success", "data": jsonable_encoder(await produce())}
    cache.set(key, payload, ttl)
    return payload
