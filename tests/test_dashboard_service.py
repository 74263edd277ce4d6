from datetime import date

import pytest

from analytics_api.core.errors import UpstreamQueryError
from analytics_api.services.code_health import CodeHealthService
from analytics_api.services.dashboard import DashboardService
from analytics_api.services.productivity import ProductivityService
from analytics_api.utils.time_windows import QueryWindow

from fakes import FakeGateway

JANUARY = QueryWindow("org-1", date(2024, 1, 1), date(2024, 1, 31))

COMPANY_ROW = {
    "total_prs": 40,
    "total_suggestions": 120,
    "critical_suggestions": 6,
    "top_suggestions_categories": [
        {"category": "style", "count": 50},
        {"category": "security", "count": 30},
        {"category": None, "count": 20},
        {"category": "tests", "count": 10},
    ],
    "top_developer": "ana",
    "top_developer_prs": 12,
    "total_prs_all_companies": 400,
    "total_companies": 9,
    "company_rank": 2,
    "company_percentage": 10.0,
}


def make_service(gateway):
    return DashboardService(gateway, ProductivityService(gateway), CodeHealthService(gateway))


class TestCompanyDashboard:
    @pytest.mark.asyncio
    async def test_basic_metrics(self):
        gateway = FakeGateway(rows={"company_dashboard": [COMPANY_ROW]})

        result = await make_service(gateway).company(JANUARY)

        assert result.organization_id == "org-1"
        assert result.period.start_date == date(2024, 1, 1)
        assert result.metrics.total_prs == 40
        assert [c.category for c in result.metrics.top_suggestions_categories] == ["style", "security", "Unknown"]
        assert result.metrics.top_developer.name == "ana"
        assert result.metrics.company_ranking.rank == 2
        assert result.metrics.company_ranking.percentage_of_total_prs == 10.0
        assert result.additional_metrics is None
        assert gateway.names() == ["company_dashboard"]

    @pytest.mark.asyncio
    async def test_defaults_without_data(self):
        gateway = FakeGateway()

        result = await make_service(gateway).company(JANUARY)

        dumped = result.model_dump(by_alias=True)["metrics"]
        assert dumped["topDeveloper"] == {"name": "N/A", "totalPRs": 0}
        assert dumped["companyRanking"] == {
            "rank": 0,
            "totalCompanies": 0,
            "percentageOfTotalPRs": 0.0,
            "totalPRsAllCompanies": 0,
        }


class TestCompleteDashboard:
    @pytest.mark.asyncio
    async def test_sub_queries_run_concurrently(self):
        gateway = FakeGateway(
            rows={
                "company_dashboard": [COMPANY_ROW],
                "suggestions_implementation_rate": [{"suggestions_sent": 10, "suggestions_implemented": 4}],
                "deploy_frequency_highlight": [{"period": "current", "total_deployments": 5}],
            }
        )

        result = await make_service(gateway).complete(JANUARY)

        assert gateway.max_in_flight > 1
        assert sorted(gateway.names()) == sorted(
            [
                "company_dashboard",
                "suggestions_implementation_rate",
                "lead_time_highlight",
                "deploy_frequency_highlight",
                "bug_ratio_highlight",
                "lead_time_breakdown",
            ]
        )
        extra = result.additional_metrics
        assert extra.suggestions_applied_percentage == 40.0
        assert extra.suggestions_implemented_count == 4
        assert extra.deploy_frequency.current_period.total_deployments == 5
        assert extra.lead_time_breakdown == []

    @pytest.mark.asyncio
    async def test_any_failure_fails_the_dashboard(self):
        gateway = FakeGateway(rows={"company_dashboard": [COMPANY_ROW]}, failures={"bug_ratio_highlight"})

        with pytest.raises(UpstreamQueryError):
            await make_service(gateway).complete(JANUARY)
