from dataclasses import dataclass
from typing import Optional

from ..services.cache import ResponseCache
from ..services.cockpit import CockpitService
from ..services.code_health import CodeHealthService
from ..services.dashboard import DashboardService
from ..services.health import HealthService
from ..services.productivity import ProductivityService
from ..services.warehouse import WarehouseGateway
from .config import Settings


@dataclass
class AppContext:
    """Everything a request handler needs, built once per process."""

    settings: Settings
    gateway: WarehouseGateway
    cache: ResponseCache
    productivity: ProductivityService
    code_health: CodeHealthService
    cockpit: CockpitService
    dashboard: DashboardService
    health: HealthService


def build_context(
    settings: Settings,
    gateway: Optional[WarehouseGateway] = None,
    cache: Optional[ResponseCache] = None,
) -> AppContext:
    gateway = gateway if gateway is not None else WarehouseGateway(settings)
    cache = cache if cache is not None else ResponseCache()
    productivity = ProductivityService(gateway)
    code_health = CodeHealthService(gateway)
    return AppContext(
        settings=settings,
        gateway=gateway,
        cache=cache,
        productivity=productivity,
        code_health=code_health,
        cockpit=CockpitService(gateway),
        dashboard=DashboardService(gateway, productivity, code_health),
        health=HealthService(gateway, cache),
    )
