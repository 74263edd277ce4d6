"""BigQuery access for every metric service.

All user-supplied values reach the warehouse as named query parameters;
query text only ever varies by the presence or absence of fixed clauses.
"""

import time
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional

from fastapi.concurrency import run_in_threadpool
from google.cloud import bigquery

from ..core.config import Settings
from ..core.errors import UpstreamQueryError
from ..core.logging_config import get_logger

logger = get_logger(__name__)

MONGO = "MONGO"
POSTGRES = "POSTGRES"
CUSTOM_TABLES = "CUSTOM_TABLES"

PULL_REQUESTS = "pullRequests"
COMMITS = "commits_view"
PULL_REQUEST_AUTHORS = "pull_request_author_view"
PULL_REQUEST_TYPES = "pull_request_types"


def to_query_parameter(name: str, value: Any):
    if isinstance(value, (list, tuple)):
        return bigquery.ArrayQueryParameter(name, "STRING", [str(item) for item in value])
    if isinstance(value, bool):
        return bigquery.ScalarQueryParameter(name, "BOOL", value)
    if isinstance(value, int):
        return bigquery.ScalarQueryParameter(name, "INT64", value)
    if isinstance(value, float):
        return bigquery.ScalarQueryParameter(name, "FLOAT64", value)
    # datetime is a date subclass, so it has to be checked first
    if isinstance(value, datetime):
        return bigquery.ScalarQueryParameter(name, "TIMESTAMP", value)
    if isinstance(value, date):
        return bigquery.ScalarQueryParameter(name, "DATE", value)
    return bigquery.ScalarQueryParameter(name, "STRING", str(value))


class WarehouseGateway:
    """Runs parameterized queries and resolves logical table names."""

    def __init__(self, settings: Settings, client: Optional[bigquery.Client] = None):
        self.settings = settings
        self._client = client
        self.datasets = {
            MONGO: settings.mongo_dataset,
            POSTGRES: settings.postgres_dataset,
            CUSTOM_TABLES: settings.custom_tables_dataset,
        }

    @property
    def client(self) -> bigquery.Client:
        # Created on first use so the app can start without credentials.
        if self._client is None:
            if self.settings.credentials_file:
                self._client = bigquery.Client.from_service_account_json(
                    self.settings.credentials_file, project=self.settings.project_id or None
                )
            else:
                self._client = bigquery.Client(project=self.settings.project_id or None)
        return self._client

    def table_path(self, dataset: str, table: str) -> str:
        try:
            dataset_name = self.datasets[dataset]
        except KeyError:
            raise ValueError(f"Unknown dataset alias {dataset!r}")
        return f"`{self.settings.project_id}.{dataset_name}.{table}`"

    def _run(self, query: str, params: Mapping[str, Any]) -> List[Dict[str, Any]]:
        job_config = bigquery.QueryJobConfig(
            query_parameters=[to_query_parameter(name, value) for name, value in params.items()]
        )
        result = self.client.query(query, job_config=job_config).result()
        return [dict(row.items()) for row in result]

    async def execute_query(
        self, query: str, params: Optional[Mapping[str, Any]] = None, *, name: str = "query"
    ) -> List[Dict[str, Any]]:
        params = dict(params or {})
        started = time.perf_counter()
        try:
            rows = await run_in_threadpool(self._run, query, params)
        except Exception as exc:
            logger.error(
                "Warehouse query failed",
                exc_info=True,
                extra={"query_name": name, "params": {k: str(v) for k, v in params.items()}},
            )
            raise UpstreamQueryError("Error executing query") from exc

        logger.debug(
            "Warehouse query executed",
            extra={
                "query_name": name,
                "rows": len(rows),
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
        return rows

    async def ping(self) -> None:
        rows = await self.execute_query("SELECT 1 AS test", name="health_ping")
        if not rows:
            raise UpstreamQueryError("Query returned empty result")

    async def list_datasets(self) -> List[str]:
        datasets = await run_in_threadpool(lambda: list(self.client.list_datasets()))
        return [dataset.dataset_id for dataset in datasets]
