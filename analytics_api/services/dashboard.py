import asyncio

from ..models.schemas import (
    AdditionalMetrics,
    CompanyDashboard,
    CompanyRanking,
    DashboardMetrics,
    DashboardPeriod,
    SuggestionCategoryCount,
    TopDeveloper,
)
from ..utils.time_windows import QueryWindow
from .code_health import SENT, SUGGESTIONS_JOIN, CodeHealthService
from .metrics import round2, to_int
from .productivity import ProductivityService
from .queries import closed_in_window, in_window, repository_filter
from .warehouse import MONGO, PULL_REQUEST_AUTHORS, PULL_REQUESTS, WarehouseGateway

TOP_CATEGORIES = 3


class DashboardService:
    """Organization-wide summary built on top of the metric services."""

    def __init__(
        self,
        gateway: WarehouseGateway,
        productivity: ProductivityService,
        code_health: CodeHealthService,
    ):
        self.gateway = gateway
        self.productivity = productivity
        self.code_health = code_health

    def _company_query(self, window: QueryWindow) -> str:
        prs = self.gateway.table_path(MONGO, PULL_REQUESTS)
        authors = self.gateway.table_path(MONGO, PULL_REQUEST_AUTHORS)
        repo = repository_filter(window)
        all_closed = f"""pr.closedAt IS NOT NULL AND pr.closedAt <> ''
          AND pr.status = 'closed'
          AND {in_window("pr.parsed_closed_at")}"""
        sent_suggestions = f"""pr.organizationId = @organizationId
          AND pr.closedAt IS NOT NULL AND pr.closedAt <> ''
          AND {in_window("pr.parsed_closed_at")}
          AND {SENT}
          {repo}"""

        return f"""
      WITH company_metrics AS (
        SELECT COUNT(*) AS total_prs
        FROM {prs} AS pr
        WHERE {closed_in_window()}
          {repo}
      ),
      suggestion_metrics AS (
        SELECT
          COUNT(*) AS total_suggestions,
          COUNTIF(JSON_VALUE(sug, '$.severity') = 'critical') AS critical_suggestions
        FROM {prs} AS pr{SUGGESTIONS_JOIN}
        WHERE {sent_suggestions}
      ),
      top_categories AS (
        SELECT
          JSON_VALUE(sug, '$.label') AS category,
          COUNT(*) AS count,
          ROW_NUMBER() OVER (ORDER BY COUNT(*) DESC) AS category_rank
        FROM {prs} AS pr{SUGGESTIONS_JOIN}
        WHERE {sent_suggestions}
        GROUP BY category
        HAVING category IS NOT NULL
      ),
      top_developer AS (
        SELECT
          JSON_VALUE(auth.author_username) AS name,
          COUNT(DISTINCT pr._id) AS total_prs
        FROM {prs} AS pr
        JOIN {authors} AS auth
          ON pr._id = auth.pull_request_id
        WHERE {closed_in_window()}
          {repo}
        GROUP BY name
        ORDER BY total_prs DESC
        LIMIT 1
      ),
      all_companies AS (
        SELECT
          COUNT(*) AS total_prs_all_companies,
          COUNT(DISTINCT pr.organizationId) AS total_companies
        FROM {prs} AS pr
        WHERE {all_closed}
      ),
      company_ranking AS (
        SELECT
          pr.organizationId,
          ROW_NUMBER() OVER (ORDER BY COUNT(*) DESC) AS company_rank
        FROM {prs} AS pr
        WHERE {all_closed}
        GROUP BY pr.organizationId
      )
      SELECT
        cm.total_prs,
        sm.total_suggestions,
        sm.critical_suggestions,
        ARRAY(
          SELECT AS STRUCT category, count
          FROM top_categories
          WHERE category_rank <= {TOP_CATEGORIES}
          ORDER BY category_rank
        ) AS top_suggestions_categories,
        (SELECT name FROM top_developer) AS top_developer,
        (SELECT total_prs FROM top_developer) AS top_developer_prs,
        ac.total_prs_all_companies,
        ac.total_companies,
        cr.company_rank,
        ROUND(SAFE_DIVIDE(cm.total_prs, ac.total_prs_all_companies) * 100, 2) AS company_percentage
      FROM company_metrics AS cm
      CROSS JOIN suggestion_metrics AS sm
      CROSS JOIN all_companies AS ac
      LEFT JOIN company_ranking AS cr
        ON cr.organizationId = @organizationId
    """

    async def company(self, window: QueryWindow) -> CompanyDashboard:
        rows = await self.gateway.execute_query(
            self._company_query(window), window.params(), name="company_dashboard"
        )
        result = rows[0] if rows else {}

        categories = [
            SuggestionCategoryCount(category=item.get("category") or "Unknown", count=to_int(item.get("count")))
            for item in (result.get("top_suggestions_categories") or [])[:TOP_CATEGORIES]
        ]
        metrics = DashboardMetrics(
            total_prs=to_int(result.get("total_prs")),
            critical_suggestions=to_int(result.get("critical_suggestions")),
            total_suggestions=to_int(result.get("total_suggestions")),
            top_suggestions_categories=categories,
            top_developer=TopDeveloper(
                name=result.get("top_developer") or "N/A",
                total_prs=to_int(result.get("top_developer_prs")),
            ),
            company_ranking=CompanyRanking(
                rank=to_int(result.get("company_rank")),
                total_companies=to_int(result.get("total_companies")),
                percentage_of_total_prs=round2(result.get("company_percentage")),
                total_prs_all_companies=to_int(result.get("total_prs_all_companies")),
            ),
        )
        return CompanyDashboard(
            organization_id=window.organization_id,
            period=DashboardPeriod(start_date=window.start_date, end_date=window.end_date),
            metrics=metrics,
        )

    async def complete(self, window: QueryWindow) -> CompanyDashboard:
        """Basic dashboard plus the highlight metrics, fetched concurrently.

        Any failing sub-query fails the whole dashboard.
        """
        (
            basic,
            implementation,
            cycle_time,
            deploy_frequency,
            bug_ratio,
            breakdown,
        ) = await asyncio.gather(
            self.company(window),
            self.code_health.suggestions_implementation_rate(window.organization_id, window.repository),
            self.productivity.lead_time_highlight(window),
            self.productivity.deploy_frequency_highlight(window),
            self.code_health.bug_ratio_highlight(window),
            self.productivity.lead_time_breakdown(window),
        )

        basic.additional_metrics = AdditionalMetrics(
            suggestions_applied_percentage=implementation.implementation_rate,
            suggestions_implemented_count=implementation.suggestions_implemented,
            cycle_time=cycle_time,
            deploy_frequency=deploy_frequency,
            bug_ratio=bug_ratio,
            lead_time_breakdown=breakdown,
        )
        return basic
