from ..core.config import COCKPIT_PR_SAMPLE_LIMIT
from ..core.errors import ValidationError
from ..core.logging_config import get_logger
from ..models.schemas import CockpitValidation
from .metrics import to_int
from .warehouse import MONGO, PULL_REQUESTS, WarehouseGateway

logger = get_logger(__name__)


class CockpitService:
    def __init__(self, gateway: WarehouseGateway):
        self.gateway = gateway

    async def validate(self, organization_id: str) -> CockpitValidation:
        """Cheap pre-flight: does the organization have any pull requests at all?

        Counts at most COCKPIT_PR_SAMPLE_LIMIT rows so the scan stops early.
        """
        if not organization_id or not organization_id.strip():
            raise ValidationError("Missing required parameter: organizationId")

        query = f"""
      SELECT COUNT(*) AS count
      FROM (
        SELECT 1
        FROM {self.gateway.table_path(MONGO, PULL_REQUESTS)}
        WHERE organizationId = @organizationId
        LIMIT {int(COCKPIT_PR_SAMPLE_LIMIT)}
      )
    """
        rows = await self.gateway.execute_query(
            query, {"organizationId": organization_id.strip()}, name="cockpit_validation"
        )
        count = to_int(rows[0].get("count")) if rows else 0
        result = CockpitValidation(has_data=count > 0, pull_requests_count=count)

        logger.info(
            "Cockpit validation",
            extra={"organization_id": organization_id, "has_data": result.has_data, "prs": count},
        )
        return result
