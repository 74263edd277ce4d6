import math
import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from ..core.errors import ValidationError

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass(frozen=True)
class QueryWindow:
    organization_id: str
    start_date: date
    end_date: date
    repository: Optional[str] = None

    @property
    def days(self) -> int:
        """Inclusive number of days covered by the window."""
        return (self.end_date - self.start_date).days + 1

    @property
    def weeks(self) -> int:
        return max(1, math.ceil(self.days / 7))

    def params(self) -> dict:
        """Named query parameters; ``repository`` only when it filters."""
        params = {
            "organizationId": self.organization_id,
            "startDate": self.start_date,
            "endDate": self.end_date,
        }
        if self.repository:
            params["repository"] = self.repository
        return params


def previous_window(window: QueryWindow) -> QueryWindow:
    """The period immediately before ``window``, ending the day before it starts.

    2024-03-01..2024-03-07 -> 2024-02-22..2024-02-29.
    """
    previous_end = window.start_date - timedelta(days=1)
    previous_start = previous_end - timedelta(days=window.days)
    return QueryWindow(window.organization_id, previous_start, previous_end, window.repository)


def parse_date(value: str, name: str) -> date:
    if not DATE_PATTERN.match(value):
        raise ValidationError("Invalid date format. Use YYYY-MM-DD")
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"Invalid {name}: {value} is not a calendar date")


def parse_window(
    organization_id: Optional[str],
    start_date: Optional[str],
    end_date: Optional[str],
    repository: Optional[str] = None,
) -> QueryWindow:
    """Validate raw query-string values into a QueryWindow."""
    provided = {"organizationId": organization_id, "startDate": start_date, "endDate": end_date}
    missing = [name for name, value in provided.items() if not value or not value.strip()]
    if missing:
        raise ValidationError(f"Missing required parameters: {', '.join(missing)}")

    start = parse_date(start_date.strip(), "startDate")
    end = parse_date(end_date.strip(), "endDate")
    if start > end:
        raise ValidationError("startDate must be on or before endDate")

    return QueryWindow(
        organization_id=organization_id.strip(),
        start_date=start,
        end_date=end,
        repository=repository.strip() if repository and repository.strip() else None,
    )


def trailing_window(organization_id: str, today: date, days: int, repository: Optional[str] = None) -> QueryWindow:
    """A window of ``days`` days ending today (inclusive)."""
    return QueryWindow(organization_id, today - timedelta(days=days - 1), today, repository)
