import asyncio
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict

import psutil

from ..core.logging_config import get_logger
from ..models.schemas import HealthStatus
from .cache import ResponseCache
from .warehouse import WarehouseGateway

logger = get_logger(__name__)

MEMORY_WARNING_PERCENT = 85.0
MEMORY_CRITICAL_PERCENT = 95.0

API_ENDPOINTS = {
    "productivity": [
        "/api/productivity/charts/deploy-frequency",
        "/api/productivity/highlights/deploy-frequency",
        "/api/productivity/charts/lead-time-for-change",
        "/api/productivity/highlights/lead-time-for-change",
        "/api/productivity/highlights/pr-size",
        "/api/productivity/charts/pull-requests-by-developer",
        "/api/productivity/charts/pull-requests-opened-vs-closed",
        "/api/productivity/charts/lead-time-breakdown",
        "/api/productivity/charts/developer-activity",
        "/api/productivity/dashboard/company",
    ],
    "code-health": [
        "/api/code-health/charts/suggestions-by-category",
        "/api/code-health/charts/suggestions-by-repository",
        "/api/code-health/charts/bug-ratio",
        "/api/code-health/highlights/bug-ratio",
        "/api/code-health/highlights/suggestions-implementation-rate",
    ],
    "cockpit": ["/api/cockpit/validate"],
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _elapsed(started: float) -> str:
    return f"{round((time.perf_counter() - started) * 1000)}ms"


class HealthService:
    """Liveness and readiness probes. Probe failures are reported, never raised."""

    def __init__(
        self,
        gateway: WarehouseGateway,
        cache: ResponseCache,
        memory_percent: Callable[[], float] = lambda: psutil.virtual_memory().percent,
    ):
        self.gateway = gateway
        self.cache = cache
        self.memory_percent = memory_percent

    async def _probe(self, name: str, check: Callable[[], Awaitable[None]]) -> HealthStatus:
        started = time.perf_counter()
        try:
            await check()
        except Exception as exc:
            logger.error(f"{name} health check failed", exc_info=True)
            return HealthStatus(status="DOWN", timestamp=_now(), response_time=_elapsed(started), error=str(exc))
        return HealthStatus(status="UP", timestamp=_now(), response_time=_elapsed(started))

    async def check_warehouse(self) -> HealthStatus:
        return await self._probe("Warehouse", self.gateway.ping)

    async def check_datasets(self) -> HealthStatus:
        async def datasets_visible():
            datasets = await self.gateway.list_datasets()
            if not datasets:
                raise RuntimeError("No datasets visible to the warehouse client")

        return await self._probe("Warehouse datasets", datasets_visible)

    async def check_cache(self) -> HealthStatus:
        async def round_trip():
            key = "health-check-test"
            self.cache.set(key, "test-value", 1)
            try:
                if self.cache.get(key) != "test-value":
                    raise RuntimeError("Cache test failed")
            finally:
                self.cache.delete(key)

        status = await self._probe("Cache", round_trip)
        stats = self.cache.stats()
        status.details = f"keys={stats['keys']} hits={stats['hits']} misses={stats['misses']}"
        return status

    async def check_memory(self) -> HealthStatus:
        started = time.perf_counter()
        try:
            usage = float(self.memory_percent())
        except Exception as exc:
            logger.error("Memory health check failed", exc_info=True)
            return HealthStatus(status="DOWN", timestamp=_now(), response_time=_elapsed(started), error=str(exc))

        if usage < MEMORY_WARNING_PERCENT:
            status, details = "UP", f"Memory usage: {usage:.1f}%"
        elif usage < MEMORY_CRITICAL_PERCENT:
            status, details = "WARNING", f"High memory usage: {usage:.1f}%"
        else:
            status, details = "DOWN", f"Critical memory usage: {usage:.1f}%"
        return HealthStatus(status=status, timestamp=_now(), response_time=_elapsed(started), details=details)

    async def basic(self) -> HealthStatus:
        return HealthStatus(status="UP", timestamp=_now(), response_time="0ms")

    async def readiness(self) -> HealthStatus:
        started = time.perf_counter()
        warehouse, cache, memory = await asyncio.gather(
            self.check_warehouse(), self.check_cache(), self.check_memory()
        )
        dependencies = {"bigquery": warehouse, "cache": cache, "memory": memory}
        return HealthStatus(
            status=_overall(dependencies),
            timestamp=_now(),
            response_time=_elapsed(started),
            dependencies=dependencies,
        )

    async def api(self, name: str) -> HealthStatus:
        started = time.perf_counter()
        warehouse, cache = await asyncio.gather(self.check_datasets(), self.check_cache())
        dependencies: Dict[str, HealthStatus] = {
            f"bigquery_{name.replace('-', '_')}": warehouse,
            "cache": cache,
        }
        status = _overall(dependencies)
        return HealthStatus(
            status=status,
            api=name,
            timestamp=_now(),
            response_time=_elapsed(started),
            endpoints={endpoint: "UP" if status == "UP" else "DOWN" for endpoint in API_ENDPOINTS[name]},
            dependencies=dependencies,
        )


def _overall(dependencies: Dict[str, HealthStatus]) -> str:
    return "UP" if all(dep.status == "UP" for dep in dependencies.values()) else "DOWN"
