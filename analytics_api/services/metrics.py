import numpy as np
import pandas as pd


def round2(value) -> float:
    """Round for presentation; missing or non-finite values become 0."""
    if value is None:
        return 0.0
    value = float(value)
    if not np.isfinite(value):
        return 0.0
    return round(value, 2)


def safe_ratio(numerator, denominator) -> float:
    if not denominator:
        return 0.0
    return float(numerator) / float(denominator)


def p75(values: pd.Series) -> float:
    """75th percentile with linear interpolation; NaN when there are no samples."""
    clean = pd.to_numeric(values, errors="coerce").dropna()
    if clean.empty:
        return float("nan")
    return float(clean.quantile(0.75))


def minutes_to_hours(minutes) -> float:
    return round2(float(minutes or 0) / 60)


def to_int(value) -> int:
    if value is None:
        return 0
    try:
        if np.isnan(value):
            return 0
    except TypeError:
        pass
    return int(value)
