"""
Percent-return normalization shared by the subject, leader and benchmark
series, plus the presentation clamp that zeroes the noisy start of a chart.
"""
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Mapping, Optional, Sequence

from app.core.config import settings

PERCENT = Decimal("0.0001")


def _as_decimal(value) -> Optional[Decimal]:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def percent_change(value, baseline) -> Optional[float]:
    value, baseline = _as_decimal(value), _as_decimal(baseline)
    if value is None or not baseline:
        return None
    change = (value / baseline - 1) * 100
    return float(change.quantize(PERCENT, rounding=ROUND_HALF_UP))


def to_percent_series(
    domain: Sequence[date],
    values: Mapping[date, object],
    baseline=None
) -> List[Optional[float]]:
    """
    Percent change of ``values`` against ``baseline`` for every day of ``domain``.

    Days without a value carry the last known value forward. Without an
    explicit baseline the first value encountered is used, so the first
    valued point is always 0. Points before any value exists are None.
    """
    series: List[Optional[float]] = []
    base = _as_decimal(baseline)
    last = None

    for day in domain:
        current = values.get(day)
        if current is not None:
            last = current
        if last is None:
            series.append(None)
            continue
        if base is None:
            base = _as_decimal(last)
        series.append(percent_change(last, base))

    return series


def find_clamp_index(series: Sequence[Optional[float]], threshold: Optional[float] = None) -> int:
    threshold = settings.NOISE_CLAMP_THRESHOLD if threshold is None else threshold
    for index, value in enumerate(series):
        if value is not None and abs(value) <= threshold:
            return index
    return 0


def apply_noise_clamp(series_list: Sequence[List[Optional[float]]], index: int) -> List[List[Optional[float]]]:
    """Force every point before ``index`` to 0 in each series, keeping them aligned."""
    return [[0.0] * min(index, len(s)) + list(s[index:]) for s in series_list]
