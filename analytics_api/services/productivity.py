from typing import List

import numpy as np
import pandas as pd

from ..models.schemas import (
    DeployFrequencyHighlight,
    DeployFrequencyPeriod,
    DeployFrequencyPoint,
    DeveloperActivity,
    LeadTimeBreakdownPoint,
    LeadTimeHighlight,
    LeadTimePeriod,
    LeadTimePoint,
    OpenedVsClosedPoint,
    PRSizeHighlight,
    PRSizePeriod,
    PullRequestsByDeveloperPoint,
)
from ..utils.time_windows import QueryWindow
from . import comparison
from .metrics import minutes_to_hours, p75, round2, to_int
from .queries import (
    PERIOD_CASE,
    closed_in_both_periods,
    closed_in_window,
    in_window,
    period_params,
    repository_filter,
    week_start,
)
from .warehouse import COMMITS, MONGO, PULL_REQUEST_AUTHORS, PULL_REQUESTS, WarehouseGateway

FIRST_COMMIT = "MIN(SAFE_CAST(JSON_VALUE(c.commit_timestamp) AS TIMESTAMP))"
LAST_COMMIT = "MAX(SAFE_CAST(JSON_VALUE(c.commit_timestamp) AS TIMESTAMP))"


def _by_period(frame: pd.DataFrame, column: str, agg) -> dict:
    if frame.empty:
        return {}
    return frame.groupby("period")[column].agg(agg).to_dict()


class ProductivityService:
    """Delivery metrics computed from closed pull requests and their commits."""

    def __init__(self, gateway: WarehouseGateway):
        self.gateway = gateway

    @property
    def pull_requests(self) -> str:
        return self.gateway.table_path(MONGO, PULL_REQUESTS)

    @property
    def commits(self) -> str:
        return self.gateway.table_path(MONGO, COMMITS)

    @property
    def authors(self) -> str:
        return self.gateway.table_path(MONGO, PULL_REQUEST_AUTHORS)

    # ------------------------------------------------------------------
    # Deploy frequency
    # ------------------------------------------------------------------
    async def deploy_frequency_chart(self, window: QueryWindow) -> List[DeployFrequencyPoint]:
        query = f"""
      SELECT
        {week_start("pr.parsed_closed_at")} AS week_start,
        COUNT(*) AS pr_count
      FROM {self.pull_requests} AS pr
      WHERE {closed_in_window()}
        {repository_filter(window)}
      GROUP BY week_start
      ORDER BY week_start
    """
        rows = await self.gateway.execute_query(query, window.params(), name="deploy_frequency_chart")
        return [
            DeployFrequencyPoint(week_start=row["week_start"], pr_count=to_int(row["pr_count"]))
            for row in rows
        ]

    async def deploy_frequency_highlight(self, window: QueryWindow) -> DeployFrequencyHighlight:
        query = f"""
      SELECT
        {PERIOD_CASE} AS period,
        COUNT(*) AS total_deployments
      FROM {self.pull_requests} AS pr
      WHERE {closed_in_both_periods()}
        {repository_filter(window)}
      GROUP BY period
    """
        rows = await self.gateway.execute_query(
            query, period_params(window), name="deploy_frequency_highlight"
        )
        totals = {row["period"]: to_int(row["total_deployments"]) for row in rows}

        # Both windows have the same length, so they share the week count.
        current_total = totals.get("current", 0)
        previous_total = totals.get("previous", 0)
        current_avg = current_total / window.weeks
        previous_avg = previous_total / window.weeks

        return DeployFrequencyHighlight(
            current_period=DeployFrequencyPeriod(
                total_deployments=current_total, average_per_week=round2(current_avg)
            ),
            previous_period=DeployFrequencyPeriod(
                total_deployments=previous_total, average_per_week=round2(previous_avg)
            ),
            comparison=comparison.compare(current_avg, previous_avg, comparison.DEPLOY_FREQUENCY),
        )

    # ------------------------------------------------------------------
    # Lead time
    # ------------------------------------------------------------------
    def _lead_time_query(self, window: QueryWindow, bucket: str, where: str) -> str:
        return f"""
      WITH pr_lead_times AS (
        SELECT
          pr._id,
          {bucket} AS bucket,
          TIMESTAMP_DIFF(pr.parsed_closed_at, {FIRST_COMMIT}, MINUTE) AS lead_time_minutes
        FROM {self.pull_requests} AS pr
        JOIN {self.commits} AS c
          ON pr._id = c.pull_request_id
        WHERE {where}
          {repository_filter(window)}
        GROUP BY pr._id, pr.parsed_closed_at, bucket
        HAVING COUNT(c.commit_hash) > 0
      )
      SELECT bucket, lead_time_minutes
      FROM pr_lead_times
      WHERE lead_time_minutes IS NOT NULL
      ORDER BY bucket
    """

    async def lead_time_chart(self, window: QueryWindow) -> List[LeadTimePoint]:
        query = self._lead_time_query(window, week_start("pr.parsed_closed_at"), closed_in_window())
        rows = await self.gateway.execute_query(query, window.params(), name="lead_time_chart")
        frame = pd.DataFrame(rows, columns=["bucket", "lead_time_minutes"])
        if frame.empty:
            return []

        weekly = frame.groupby("bucket", sort=True)["lead_time_minutes"].agg(p75)
        return [
            LeadTimePoint(
                week_start=week,
                lead_time_p75_minutes=round2(minutes),
                lead_time_p75_hours=minutes_to_hours(minutes),
            )
            for week, minutes in weekly.items()
        ]

    async def lead_time_highlight(self, window: QueryWindow) -> LeadTimeHighlight:
        query = self._lead_time_query(window, PERIOD_CASE, closed_in_both_periods())
        rows = await self.gateway.execute_query(
            query, period_params(window), name="lead_time_highlight"
        )
        frame = pd.DataFrame(rows, columns=["bucket", "lead_time_minutes"]).rename(
            columns={"bucket": "period"}
        )
        percentiles = _by_period(frame, "lead_time_minutes", p75)
        current = round2(percentiles.get("current"))
        previous = round2(percentiles.get("previous"))

        return LeadTimeHighlight(
            current_period=LeadTimePeriod(
                lead_time_p75_minutes=current, lead_time_p75_hours=minutes_to_hours(current)
            ),
            previous_period=LeadTimePeriod(
                lead_time_p75_minutes=previous, lead_time_p75_hours=minutes_to_hours(previous)
            ),
            comparison=comparison.compare(
                percentiles.get("current", 0), percentiles.get("previous", 0), comparison.LEAD_TIME
            ),
        )

    async def lead_time_breakdown(self, window: QueryWindow) -> List[LeadTimeBreakdownPoint]:
        """Weekly p75 of coding, pickup and review time.

        The total is the sum of the three percentiles, not the percentile of
        the summed durations.
        """
        query = f"""
      WITH pr_stages AS (
        SELECT
          pr._id,
          {week_start("pr.parsed_closed_at")} AS week_start,
          SAFE_CAST(pr.openedAt AS TIMESTAMP) AS opened_at,
          pr.parsed_closed_at AS closed_at,
          {FIRST_COMMIT} AS first_commit,
          {LAST_COMMIT} AS last_commit
        FROM {self.pull_requests} AS pr
        JOIN {self.commits} AS c
          ON pr._id = c.pull_request_id
        WHERE {closed_in_window()}
          {repository_filter(window)}
        GROUP BY pr._id, week_start, opened_at, closed_at
      )
      SELECT
        week_start,
        TIMESTAMP_DIFF(last_commit, first_commit, SECOND) AS coding_seconds,
        TIMESTAMP_DIFF(opened_at, last_commit, SECOND) AS pickup_seconds,
        TIMESTAMP_DIFF(closed_at, opened_at, SECOND) AS review_seconds
      FROM pr_stages
      WHERE first_commit IS NOT NULL
        AND last_commit IS NOT NULL
        AND opened_at IS NOT NULL
        AND closed_at IS NOT NULL
        AND first_commit <= last_commit
        AND opened_at <= closed_at
      ORDER BY week_start
    """
        rows = await self.gateway.execute_query(query, window.params(), name="lead_time_breakdown")
        stages = ["coding_seconds", "pickup_seconds", "review_seconds"]
        frame = pd.DataFrame(rows, columns=["week_start"] + stages)
        if frame.empty:
            return []

        # Zero-length stages carry no signal and are left out of the percentile.
        frame[stages] = frame[stages].apply(pd.to_numeric, errors="coerce").replace(0, np.nan)
        grouped = frame.groupby("week_start", sort=True)
        weekly = grouped[stages].agg(p75).fillna(0) / 60
        counts = grouped.size()

        points = []
        for week, minutes in weekly.iterrows():
            total = minutes["coding_seconds"] + minutes["pickup_seconds"] + minutes["review_seconds"]
            points.append(
                LeadTimeBreakdownPoint(
                    week_start=week,
                    pr_count=int(counts[week]),
                    coding_time_minutes=round2(minutes["coding_seconds"]),
                    coding_time_hours=minutes_to_hours(minutes["coding_seconds"]),
                    pickup_time_minutes=round2(minutes["pickup_seconds"]),
                    pickup_time_hours=minutes_to_hours(minutes["pickup_seconds"]),
                    review_time_minutes=round2(minutes["review_seconds"]),
                    review_time_hours=minutes_to_hours(minutes["review_seconds"]),
                    total_time_minutes=round2(total),
                    total_time_hours=minutes_to_hours(total),
                )
            )
        return points

    # ------------------------------------------------------------------
    # Pull requests
    # ------------------------------------------------------------------
    async def pr_size_highlight(self, window: QueryWindow) -> PRSizeHighlight:
        query = f"""
      SELECT
        {PERIOD_CASE} AS period,
        pr.totalChanges AS pr_size
      FROM {self.pull_requests} AS pr
      WHERE {closed_in_both_periods()}
        {repository_filter(window)}
    """
        rows = await self.gateway.execute_query(query, period_params(window), name="pr_size_highlight")
        frame = pd.DataFrame(rows, columns=["period", "pr_size"])
        frame["pr_size"] = pd.to_numeric(frame["pr_size"], errors="coerce")
        averages = _by_period(frame, "pr_size", "mean")
        counts = _by_period(frame, "pr_size", "size")

        current = averages.get("current", 0)
        previous = averages.get("previous", 0)
        return PRSizeHighlight(
            current_period=PRSizePeriod(
                average_pr_size=round2(current), total_prs=to_int(counts.get("current", 0))
            ),
            previous_period=PRSizePeriod(
                average_pr_size=round2(previous), total_prs=to_int(counts.get("previous", 0))
            ),
            comparison=comparison.compare(current, previous, comparison.PR_SIZE),
        )

    async def pull_requests_by_developer(self, window: QueryWindow) -> List[PullRequestsByDeveloperPoint]:
        query = f"""
      SELECT
        {week_start("pr.parsed_closed_at")} AS week_start,
        JSON_VALUE(auth.author_username) AS author,
        COUNT(DISTINCT pr._id) AS pr_count
      FROM {self.pull_requests} AS pr
      JOIN {self.authors} AS auth
        ON pr._id = auth.pull_request_id
      WHERE {closed_in_window()}
        {repository_filter(window)}
      GROUP BY week_start, author
      ORDER BY week_start, author
    """
        rows = await self.gateway.execute_query(
            query, window.params(), name="pull_requests_by_developer"
        )
        return [
            PullRequestsByDeveloperPoint(
                week_start=row["week_start"],
                author=row["author"] or "Unknown",
                pr_count=to_int(row["pr_count"]),
            )
            for row in rows
        ]

    async def opened_vs_closed(self, window: QueryWindow) -> List[OpenedVsClosedPoint]:
        query = f"""
      WITH opened AS (
        SELECT
          TIMESTAMP_TRUNC(pr.parsed_created_at, WEEK(MONDAY)) AS week_start,
          COUNT(*) AS opened_count
        FROM {self.pull_requests} AS pr
        WHERE pr.createdAt IS NOT NULL
          AND {in_window("pr.parsed_created_at")}
          AND pr.organizationId = @organizationId
          {repository_filter(window)}
        GROUP BY week_start
      ),
      closed AS (
        SELECT
          TIMESTAMP_TRUNC(pr.parsed_closed_at, WEEK(MONDAY)) AS week_start,
          COUNT(*) AS closed_count
        FROM {self.pull_requests} AS pr
        WHERE {closed_in_window()}
          {repository_filter(window)}
        GROUP BY week_start
      )
      SELECT
        FORMAT_TIMESTAMP('%Y-%m-%d', COALESCE(o.week_start, c.week_start)) AS week_start,
        COALESCE(o.opened_count, 0) AS opened_count,
        COALESCE(c.closed_count, 0) AS closed_count,
        SAFE_DIVIDE(COALESCE(c.closed_count, 0), NULLIF(COALESCE(o.opened_count, 0), 0)) AS ratio
      FROM opened AS o
      FULL JOIN closed AS c
        ON o.week_start = c.week_start
      ORDER BY week_start
    """
        rows = await self.gateway.execute_query(query, window.params(), name="opened_vs_closed")
        return [
            OpenedVsClosedPoint(
                week_start=row["week_start"],
                opened_count=to_int(row["opened_count"]),
                closed_count=to_int(row["closed_count"]),
                ratio=round2(row.get("ratio")),
            )
            for row in rows
        ]

    async def developer_activity(self, window: QueryWindow) -> List[DeveloperActivity]:
        query = f"""
      WITH commit_activity AS (
        SELECT
          FORMAT_DATE('%Y-%m-%d', DATE(SAFE_CAST(JSON_VALUE(c.commit_timestamp) AS TIMESTAMP))) AS activity_date,
          JSON_VALUE(c.commit_author) AS developer,
          COUNT(DISTINCT JSON_VALUE(c.commit_hash)) AS commit_count
        FROM {self.commits} AS c
        JOIN {self.pull_requests} AS pr
          ON c.pull_request_id = pr._id
        WHERE {in_window("SAFE_CAST(JSON_VALUE(c.commit_timestamp) AS TIMESTAMP)")}
          AND pr.organizationId = @organizationId
          {repository_filter(window)}
          AND JSON_VALUE(c.commit_author) IS NOT NULL
          AND TRIM(JSON_VALUE(c.commit_author)) != ''
        GROUP BY activity_date, developer
      ),
      pr_activity AS (
        SELECT
          FORMAT_DATE('%Y-%m-%d', DATE(pr.parsed_created_at)) AS activity_date,
          JSON_VALUE(auth.author_username) AS developer,
          COUNT(DISTINCT pr._id) AS pr_count
        FROM {self.pull_requests} AS pr
        JOIN {self.authors} AS auth
          ON pr._id = auth.pull_request_id
        WHERE {in_window("pr.parsed_created_at")}
          AND pr.organizationId = @organizationId
          {repository_filter(window)}
          AND JSON_VALUE(auth.author_username) IS NOT NULL
          AND TRIM(JSON_VALUE(auth.author_username)) != ''
        GROUP BY activity_date, developer
      )
      SELECT
        COALESCE(c.developer, p.developer) AS developer,
        COALESCE(c.activity_date, p.activity_date) AS date,
        COALESCE(c.commit_count, 0) AS commit_count,
        COALESCE(p.pr_count, 0) AS pr_count
      FROM commit_activity AS c
      FULL OUTER JOIN pr_activity AS p
        ON c.developer = p.developer
        AND c.activity_date = p.activity_date
      WHERE COALESCE(c.commit_count, 0) + COALESCE(p.pr_count, 0) > 0
      ORDER BY developer ASC, date ASC
    """
        rows = await self.gateway.execute_query(query, window.params(), name="developer_activity")
        activity = []
        for row in rows:
            commits, prs = to_int(row.get("commit_count")), to_int(row.get("pr_count"))
            if commits == 0 and prs == 0:
                continue
            activity.append(
                DeveloperActivity(
                    developer=row["developer"],
                    activity_date=row["date"],
                    commit_count=commits,
                    pr_count=prs,
                )
            )
        return activity
