from datetime import date
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Serialized with camelCase keys; constructed with snake_case names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Comparison(ApiModel):
    percentage_change: float
    trend: Literal["improved", "worsened", "unchanged"]


# Deploy frequency

class DeployFrequencyPoint(ApiModel):
    week_start: date
    pr_count: int

class DeployFrequencyPeriod(ApiModel):
    total_deployments: int
    average_per_week: float

class DeployFrequencyHighlight(ApiModel):
    current_period: DeployFrequencyPeriod
    previous_period: DeployFrequencyPeriod
    comparison: Comparison


# Lead time

class LeadTimePoint(ApiModel):
    week_start: date
    lead_time_p75_minutes: float
    lead_time_p75_hours: float

class LeadTimePeriod(ApiModel):
    lead_time_p75_minutes: float
    lead_time_p75_hours: float

class LeadTimeHighlight(ApiModel):
    current_period: LeadTimePeriod
    previous_period: LeadTimePeriod
    comparison: Comparison

class LeadTimeBreakdownPoint(ApiModel):
    week_start: date
    pr_count: int
    coding_time_minutes: float
    coding_time_hours: float
    pickup_time_minutes: float
    pickup_time_hours: float
    review_time_minutes: float
    review_time_hours: float
    total_time_minutes: float
    total_time_hours: float


# Pull requests

class PRSizePeriod(ApiModel):
    average_pr_size: float = Field(alias="averagePRSize")
    total_prs: int = Field(alias="totalPRs")

class PRSizeHighlight(ApiModel):
    current_period: PRSizePeriod
    previous_period: PRSizePeriod
    comparison: Comparison

class PullRequestsByDeveloperPoint(ApiModel):
    week_start: date
    author: str
    pr_count: int

class OpenedVsClosedPoint(ApiModel):
    week_start: date
    opened_count: int
    closed_count: int
    ratio: float

class DeveloperActivity(ApiModel):
    developer: str
    activity_date: date = Field(alias="date")
    commit_count: int
    pr_count: int


# Code health

class BugRatioPoint(ApiModel):
    week_start: date
    total_prs: int = Field(alias="totalPRs")
    bug_fix_prs: int = Field(alias="bugFixPRs")
    ratio: float

class BugRatioPeriod(ApiModel):
    total_prs: int = Field(alias="totalPRs")
    bug_fix_prs: int = Field(alias="bugFixPRs")
    ratio: float

class BugRatioHighlight(ApiModel):
    current_period: BugRatioPeriod
    previous_period: BugRatioPeriod
    comparison: Comparison

class SuggestionCategoryCount(ApiModel):
    category: str
    count: int

class RepositorySuggestions(ApiModel):
    repository: str
    total_count: int
    categories: List[SuggestionCategoryCount]

class SuggestionsImplementationRate(ApiModel):
    suggestions_sent: int
    suggestions_implemented: int
    implementation_rate: float


# Cockpit

class CockpitValidation(ApiModel):
    has_data: bool
    pull_requests_count: int


# Dashboard

class DashboardPeriod(ApiModel):
    start_date: date
    end_date: date

class TopDeveloper(ApiModel):
    name: str = "N/A"
    total_prs: int = Field(0, alias="totalPRs")

class CompanyRanking(ApiModel):
    rank: int
    total_companies: int
    percentage_of_total_prs: float = Field(alias="percentageOfTotalPRs")
    total_prs_all_companies: int = Field(alias="totalPRsAllCompanies")

class DashboardMetrics(ApiModel):
    total_prs: int = Field(alias="totalPRs")
    critical_suggestions: int
    total_suggestions: int
    top_suggestions_categories: List[SuggestionCategoryCount]
    top_developer: TopDeveloper
    company_ranking: CompanyRanking

class AdditionalMetrics(ApiModel):
    suggestions_applied_percentage: float
    suggestions_implemented_count: int
    cycle_time: LeadTimeHighlight
    deploy_frequency: DeployFrequencyHighlight
    bug_ratio: BugRatioHighlight
    lead_time_breakdown: List[LeadTimeBreakdownPoint]

class CompanyDashboard(ApiModel):
    organization_id: str
    period: DashboardPeriod
    metrics: DashboardMetrics
    additional_metrics: Optional[AdditionalMetrics] = None


# Health

class HealthStatus(ApiModel):
    status: Literal["UP", "WARNING", "DOWN"]
    timestamp: str
    response_time: Optional[str] = None
    error: Optional[str] = None
    details: Optional[str] = None
    api: Optional[str] = None
    endpoints: Optional[Dict[str, str]] = None
    dependencies: Optional[Dict[str, "HealthStatus"]] = None
