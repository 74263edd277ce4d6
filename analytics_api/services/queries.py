"""SQL fragments shared by the metric services.

Fragments take only fixed parameter names; values are always bound by the
gateway. Window bounds are whole days: ``end`` is inclusive, so the upper
bound is midnight of the following day.
"""

from ..utils.time_windows import QueryWindow, previous_window

WEEK_START = "FORMAT_TIMESTAMP('%Y-%m-%d', TIMESTAMP_TRUNC({column}, WEEK(MONDAY)))"


def week_start(column: str) -> str:
    return WEEK_START.format(column=column)


def in_window(column: str, start: str = "startDate", end: str = "endDate") -> str:
    return (
        f"{column} >= TIMESTAMP(@{start}) "
        f"AND {column} < TIMESTAMP(DATE_ADD(@{end}, INTERVAL 1 DAY))"
    )


def closed_in_window(alias: str = "pr", start: str = "startDate", end: str = "endDate") -> str:
    return f"""{alias}.closedAt IS NOT NULL AND {alias}.closedAt <> ''
          AND {alias}.status = 'closed'
          AND {in_window(f"{alias}.parsed_closed_at", start, end)}
          AND {alias}.organizationId = @organizationId"""


def repository_filter(window: QueryWindow, alias: str = "pr") -> str:
    return f"AND {alias}.repo_full_name = @repository" if window.repository else ""


# Both periods are fetched in one scan from previousStartDate to currentEndDate.
PERIOD_CASE = (
    "CASE WHEN pr.parsed_closed_at >= TIMESTAMP(@currentStartDate) "
    "THEN 'current' ELSE 'previous' END"
)


def closed_in_both_periods(alias: str = "pr") -> str:
    return closed_in_window(alias, start="previousStartDate", end="currentEndDate")


def period_params(window: QueryWindow) -> dict:
    previous = previous_window(window)
    params = {
        "organizationId": window.organization_id,
        "currentStartDate": window.start_date,
        "currentEndDate": window.end_date,
        "previousStartDate": previous.start_date,
        "previousEndDate": previous.end_date,
    }
    if window.repository:
        params["repository"] = window.repository
    return params
