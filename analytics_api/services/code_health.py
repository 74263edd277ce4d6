from datetime import date, datetime, timezone
from typing import Callable, List, Optional

from ..core.config import IMPLEMENTATION_RATE_LOOKBACK_DAYS
from ..models.schemas import (
    BugRatioHighlight,
    BugRatioPeriod,
    BugRatioPoint,
    RepositorySuggestions,
    SuggestionCategoryCount,
    SuggestionsImplementationRate,
)
from ..utils.time_windows import QueryWindow, trailing_window
from . import comparison
from .metrics import round2, safe_ratio, to_int
from .queries import (
    PERIOD_CASE,
    closed_in_both_periods,
    closed_in_window,
    in_window,
    period_params,
    repository_filter,
    week_start,
)
from .warehouse import CUSTOM_TABLES, MONGO, PULL_REQUEST_TYPES, PULL_REQUESTS, WarehouseGateway

BUG_FIX_TYPE = "bug_fix"
IMPLEMENTED_STATUSES = ["implemented", "partially_implemented"]

SUGGESTIONS_JOIN = """
        CROSS JOIN UNNEST(JSON_EXTRACT_ARRAY(pr.files)) AS file_obj
        CROSS JOIN UNNEST(JSON_EXTRACT_ARRAY(file_obj, '$.suggestions')) AS sug"""

SENT = "JSON_VALUE(sug, '$.deliveryStatus') = 'sent'"


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


def _bug_ratio_period(row: Optional[dict]) -> tuple[BugRatioPeriod, float]:
    row = row or {}
    total, bug_fixes = to_int(row.get("total_prs")), to_int(row.get("bug_fix_prs"))
    ratio = safe_ratio(bug_fixes, total)
    return BugRatioPeriod(total_prs=total, bug_fix_prs=bug_fixes, ratio=round2(ratio)), ratio


class CodeHealthService:
    """Review-suggestion and defect metrics."""

    def __init__(self, gateway: WarehouseGateway, clock: Callable[[], date] = _utc_today):
        self.gateway = gateway
        self.clock = clock

    @property
    def pull_requests(self) -> str:
        return self.gateway.table_path(MONGO, PULL_REQUESTS)

    @property
    def pull_request_types(self) -> str:
        return self.gateway.table_path(CUSTOM_TABLES, PULL_REQUEST_TYPES)

    def _sent_suggestions_where(self, window: QueryWindow) -> str:
        return f"""pr.organizationId = @organizationId
          AND pr.closedAt IS NOT NULL AND pr.closedAt <> ''
          AND {in_window("pr.parsed_closed_at")}
          AND {SENT}
          {repository_filter(window)}"""

    async def suggestions_by_category(self, window: QueryWindow) -> List[SuggestionCategoryCount]:
        query = f"""
      SELECT
        JSON_VALUE(sug, '$.label') AS suggestion_category,
        COUNT(*) AS suggestions_count
      FROM {self.pull_requests} AS pr{SUGGESTIONS_JOIN}
      WHERE {self._sent_suggestions_where(window)}
      GROUP BY suggestion_category
      ORDER BY suggestions_count DESC
    """
        rows = await self.gateway.execute_query(query, window.params(), name="suggestions_by_category")
        return [
            SuggestionCategoryCount(
                category=row.get("suggestion_category") or "Unknown",
                count=to_int(row.get("suggestions_count")),
            )
            for row in rows
        ]

    async def suggestions_by_repository(self, window: QueryWindow) -> List[RepositorySuggestions]:
        query = f"""
      WITH repo_suggestions AS (
        SELECT
          JSON_VALUE(pr.repository, '$.name') AS repository,
          JSON_VALUE(sug, '$.label') AS suggestion_category,
          COUNT(*) AS suggestions_count
        FROM {self.pull_requests} AS pr{SUGGESTIONS_JOIN}
        WHERE {self._sent_suggestions_where(window)}
        GROUP BY repository, suggestion_category
      )
      SELECT
        repository,
        ARRAY_AGG(
          STRUCT(suggestion_category AS category, suggestions_count AS count)
          ORDER BY suggestions_count DESC
        ) AS categories,
        SUM(suggestions_count) AS total_count
      FROM repo_suggestions
      GROUP BY repository
      ORDER BY total_count DESC
    """
        rows = await self.gateway.execute_query(
            query, window.params(), name="suggestions_by_repository"
        )
        return [
            RepositorySuggestions(
                repository=row.get("repository") or "Unknown",
                total_count=to_int(row.get("total_count")),
                categories=[
                    SuggestionCategoryCount(
                        category=category.get("category") or "Unknown",
                        count=to_int(category.get("count")),
                    )
                    for category in row.get("categories") or []
                ],
            )
            for row in rows
        ]

    def _bug_ratio_select(self, bucket: str) -> str:
        return f"""
        {bucket} AS bucket,
        COUNT(DISTINCT pr._id) AS total_prs,
        COUNT(DISTINCT IF(t.type = '{BUG_FIX_TYPE}', pr._id, NULL)) AS bug_fix_prs
      FROM {self.pull_requests} AS pr
      LEFT JOIN {self.pull_request_types} AS t
        ON t.pull_request_id = pr._id"""

    async def bug_ratio_chart(self, window: QueryWindow) -> List[BugRatioPoint]:
        query = f"""
      SELECT{self._bug_ratio_select(week_start("pr.parsed_closed_at"))}
      WHERE {closed_in_window()}
        {repository_filter(window)}
      GROUP BY bucket
      ORDER BY bucket
    """
        rows = await self.gateway.execute_query(query, window.params(), name="bug_ratio_chart")
        points = []
        for row in rows:
            period, _ = _bug_ratio_period(row)
            points.append(
                BugRatioPoint(
                    week_start=row["bucket"],
                    total_prs=period.total_prs,
                    bug_fix_prs=period.bug_fix_prs,
                    ratio=period.ratio,
                )
            )
        return points

    async def bug_ratio_highlight(self, window: QueryWindow) -> BugRatioHighlight:
        query = f"""
      SELECT{self._bug_ratio_select(PERIOD_CASE)}
      WHERE {closed_in_both_periods()}
        {repository_filter(window)}
      GROUP BY bucket
    """
        rows = await self.gateway.execute_query(query, period_params(window), name="bug_ratio_highlight")
        by_period = {row["bucket"]: row for row in rows}
        current, current_ratio = _bug_ratio_period(by_period.get("current"))
        previous, previous_ratio = _bug_ratio_period(by_period.get("previous"))
        return BugRatioHighlight(
            current_period=current,
            previous_period=previous,
            comparison=comparison.compare(current_ratio, previous_ratio, comparison.BUG_RATIO),
        )

    async def suggestions_implementation_rate(
        self, organization_id: str, repository: Optional[str] = None
    ) -> SuggestionsImplementationRate:
        """Share of sent suggestions implemented over the trailing two weeks.

        The lookback always ends today, whatever window the caller asked for.
        """
        window = trailing_window(
            organization_id, self.clock(), IMPLEMENTATION_RATE_LOOKBACK_DAYS, repository
        )
        query = f"""
      SELECT
        COUNT(*) AS suggestions_sent,
        COUNTIF(JSON_VALUE(sug, '$.implementationStatus') IN UNNEST(@implementedStatuses)) AS suggestions_implemented
      FROM {self.pull_requests} AS pr{SUGGESTIONS_JOIN}
      WHERE pr.organizationId = @organizationId
        AND {in_window("pr.parsed_created_at")}
        AND {SENT}
        {repository_filter(window)}
    """
        params = dict(window.params(), implementedStatuses=IMPLEMENTED_STATUSES)
        rows = await self.gateway.execute_query(query, params, name="suggestions_implementation_rate")
        row = rows[0] if rows else {}
        sent = to_int(row.get("suggestions_sent"))
        implemented = to_int(row.get("suggestions_implemented"))
        return SuggestionsImplementationRate(
            suggestions_sent=sent,
            suggestions_implemented=implemented,
            implementation_rate=round2(safe_ratio(implemented, sent) * 100),
        )
