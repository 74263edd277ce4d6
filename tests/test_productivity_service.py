from datetime import date

import pytest

from analytics_api.services.productivity import ProductivityService
from analytics_api.utils.time_windows import QueryWindow

from fakes import FakeGateway

JANUARY = QueryWindow("org-1", date(2024, 1, 1), date(2024, 1, 31))


def make_service(**rows):
    gateway = FakeGateway(rows=rows)
    return ProductivityService(gateway), gateway


# ============================================================
# Deploy frequency
# ============================================================

class TestDeployFrequency:
    @pytest.mark.asyncio
    async def test_chart_does_not_fill_empty_weeks(self):
        service, _ = make_service(
            deploy_frequency_chart=[
                {"week_start": "2024-01-01", "pr_count": 4},
                {"week_start": "2024-01-15", "pr_count": 2},
                {"week_start": "2024-01-22", "pr_count": 7},
            ]
        )

        points = await service.deploy_frequency_chart(JANUARY)

        assert [p.week_start for p in points] == [date(2024, 1, 1), date(2024, 1, 15), date(2024, 1, 22)]
        assert [p.pr_count for p in points] == [4, 2, 7]

    @pytest.mark.asyncio
    async def test_highlight_averages_per_week(self):
        service, gateway = make_service(
            deploy_frequency_highlight=[
                {"period": "current", "total_deployments": 10},
                {"period": "previous", "total_deployments": 5},
            ]
        )

        result = await service.deploy_frequency_highlight(JANUARY)

        assert result.current_period.total_deployments == 10
        assert result.current_period.average_per_week == 2.0
        assert result.previous_period.average_per_week == 1.0
        assert result.comparison.percentage_change == 100.0
        assert result.comparison.trend == "improved"

        params = gateway.last("deploy_frequency_highlight")["params"]
        assert params["currentStartDate"] == date(2024, 1, 1)
        assert params["previousEndDate"] == date(2023, 12, 31)
        assert params["previousStartDate"] == date(2023, 11, 30)

    @pytest.mark.asyncio
    async def test_highlight_without_data(self):
        service, _ = make_service()

        result = await service.deploy_frequency_highlight(JANUARY)

        assert result.current_period.total_deployments == 0
        assert result.comparison.trend == "unchanged"


# ============================================================
# Lead time
# ============================================================

class TestLeadTime:
    @pytest.mark.asyncio
    async def test_chart_p75_per_week(self):
        service, _ = make_service(
            lead_time_chart=[
                {"bucket": "2024-01-01", "lead_time_minutes": 10},
                {"bucket": "2024-01-01", "lead_time_minutes": 20},
                {"bucket": "2024-01-01", "lead_time_minutes": 30},
                {"bucket": "2024-01-01", "lead_time_minutes": 40},
                {"bucket": "2024-01-08", "lead_time_minutes": 120},
            ]
        )

        points = await service.lead_time_chart(JANUARY)

        assert len(points) == 2
        assert points[0].lead_time_p75_minutes == 32.5
        assert points[1].lead_time_p75_minutes == 120.0
        assert points[1].lead_time_p75_hours == 2.0

    @pytest.mark.asyncio
    async def test_chart_empty(self):
        service, _ = make_service()

        assert await service.lead_time_chart(JANUARY) == []

    @pytest.mark.asyncio
    async def test_highlight_lower_is_better(self):
        service, _ = make_service(
            lead_time_highlight=[
                {"bucket": "current", "lead_time_minutes": 100},
                {"bucket": "previous", "lead_time_minutes": 120},
            ]
        )

        result = await service.lead_time_highlight(JANUARY)

        assert result.current_period.lead_time_p75_minutes == 100.0
        assert result.previous_period.lead_time_p75_minutes == 120.0
        assert result.comparison.percentage_change == -16.67
        assert result.comparison.trend == "improved"

    @pytest.mark.asyncio
    async def test_breakdown_total_is_sum_of_percentiles(self):
        service, _ = make_service(
            lead_time_breakdown=[
                {"week_start": "2024-01-01", "coding_seconds": 3600, "pickup_seconds": 0, "review_seconds": 7200},
                {"week_start": "2024-01-01", "coding_seconds": 7200, "pickup_seconds": 600, "review_seconds": 0},
            ]
        )

        [point] = await service.lead_time_breakdown(JANUARY)

        assert point.pr_count == 2
        assert point.coding_time_minutes == 105.0
        # zero-length stages are left out of the percentile
        assert point.pickup_time_minutes == 10.0
        assert point.review_time_minutes == 120.0
        assert point.total_time_minutes == 235.0
        assert point.total_time_hours == 3.92

    @pytest.mark.asyncio
    async def test_breakdown_stage_without_samples_is_zero(self):
        service, _ = make_service(
            lead_time_breakdown=[
                {"week_start": "2024-01-08", "coding_seconds": 0, "pickup_seconds": 120, "review_seconds": 60},
            ]
        )

        [point] = await service.lead_time_breakdown(JANUARY)

        assert point.coding_time_minutes == 0.0
        assert point.total_time_minutes == 3.0


# ============================================================
# Pull requests
# ============================================================

class TestPullRequests:
    @pytest.mark.asyncio
    async def test_pr_size_average(self):
        service, _ = make_service(
            pr_size_highlight=[
                {"period": "current", "pr_size": 50},
                {"period": "current", "pr_size": 150},
                {"period": "current", "pr_size": 200},
                {"period": "current", "pr_size": 100},
            ]
        )

        result = await service.pr_size_highlight(JANUARY)

        assert result.current_period.average_pr_size == 125.0
        assert result.current_period.total_prs == 4
        assert result.previous_period.total_prs == 0
        assert result.comparison.percentage_change == 100.0
        assert result.comparison.trend == "worsened"
        assert result.model_dump(by_alias=True)["currentPeriod"] == {"averagePRSize": 125.0, "totalPRs": 4}

    @pytest.mark.asyncio
    async def test_by_developer_unknown_author(self):
        service, _ = make_service(
            pull_requests_by_developer=[
                {"week_start": "2024-01-01", "author": None, "pr_count": 1},
                {"week_start": "2024-01-01", "author": "ana", "pr_count": 3},
            ]
        )

        points = await service.pull_requests_by_developer(JANUARY)

        assert [(p.author, p.pr_count) for p in points] == [("Unknown", 1), ("ana", 3)]

    @pytest.mark.asyncio
    async def test_opened_vs_closed_ratio_defaults_to_zero(self):
        service, _ = make_service(
            opened_vs_closed=[
                {"week_start": "2024-01-01", "opened_count": 4, "closed_count": 2, "ratio": 0.5},
                {"week_start": "2024-01-08", "opened_count": 0, "closed_count": 3, "ratio": None},
            ]
        )

        points = await service.opened_vs_closed(JANUARY)

        assert [p.ratio for p in points] == [0.5, 0.0]

    @pytest.mark.asyncio
    async def test_developer_activity_drops_empty_rows(self):
        service, _ = make_service(
            developer_activity=[
                {"developer": "ana", "date": "2024-01-02", "commit_count": 3, "pr_count": 1},
                {"developer": "ben", "date": "2024-01-02", "commit_count": 0, "pr_count": 0},
                {"developer": "ben", "date": "2024-01-03", "commit_count": 0, "pr_count": 2},
            ]
        )

        activity = await service.developer_activity(JANUARY)

        assert [(a.developer, a.activity_date) for a in activity] == [
            ("ana", date(2024, 1, 2)),
            ("ben", date(2024, 1, 3)),
        ]
        assert activity[0].model_dump(by_alias=True)["date"] == date(2024, 1, 2)


# ============================================================
# Query parameterization
# ============================================================

class TestRepositoryFilter:
    @pytest.mark.asyncio
    async def test_no_repository_clause_without_filter(self):
        service, gateway = make_service()

        await service.deploy_frequency_chart(JANUARY)

        call = gateway.last("deploy_frequency_chart")
        assert "@repository" not in call["query"]
        assert "repository" not in call["params"]

    @pytest.mark.asyncio
    async def test_repository_is_bound_not_inlined(self):
        service, gateway = make_service()
        window = QueryWindow("org-1", date(2024, 1, 1), date(2024, 1, 31), "acme/api'; DROP TABLE x; --")

        await service.pr_size_highlight(window)

        call = gateway.last("pr_size_highlight")
        assert "@repository" in call["query"]
        assert "DROP TABLE" not in call["query"]
        assert call["params"]["repository"] == window.repository

    @pytest.mark.asyncio
    async def test_end_date_is_inclusive(self):
        service, gateway = make_service()

        await service.lead_time_chart(JANUARY)

        assert "DATE_ADD(@endDate, INTERVAL 1 DAY)" in gateway.last("lead_time_chart")["query"]
