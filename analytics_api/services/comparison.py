"""Current-vs-previous period comparison.

Every highlight compares one metric value across two adjacent windows of
equal length. Whether a rise is good news depends on the metric, so each
caller passes the metric's polarity explicitly.
"""

from enum import Enum

from ..models.schemas import Comparison
from .metrics import round2


class Polarity(str, Enum):
    HIGHER_IS_BETTER = "higher_is_better"
    LOWER_IS_BETTER = "lower_is_better"


DEPLOY_FREQUENCY = Polarity.HIGHER_IS_BETTER
LEAD_TIME = Polarity.LOWER_IS_BETTER
PR_SIZE = Polarity.LOWER_IS_BETTER
BUG_RATIO = Polarity.LOWER_IS_BETTER


def percentage_change(current: float, previous: float) -> float:
    if previous > 0:
        return round2((current - previous) / previous * 100)
    if current > 0:
        return 100.0
    return 0.0


def classify_trend(change: float, polarity: Polarity) -> str:
    if change == 0:
        return "unchanged"
    went_up = change > 0
    if polarity is Polarity.HIGHER_IS_BETTER:
        return "improved" if went_up else "worsened"
    return "worsened" if went_up else "improved"


def compare(current: float, previous: float, polarity: Polarity) -> Comparison:
    """Percentage change of ``current`` over ``previous`` and its trend.

    A previous value of 0 with a positive current value counts as a 100%
    rise: "worsened" for lower-is-better metrics, "improved" otherwise.
    """
    change = percentage_change(float(current or 0), float(previous or 0))
    return Comparison(percentage_change=change, trend=classify_trend(change, polarity))
