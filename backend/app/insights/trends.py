from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, Iterable, List, Mapping, Optional

from backend.app.insights.stats import clean_samples
from backend.app.insights.types import BriefingMetrics, MetricComparison, MetricSample, Trend


@dataclass(frozen=True)
class PeriodBounds:
    period_days: int
    current_start: date
    current_end: date
    previous_start: date
    previous_end: date


def period_bounds(as_of: date, period_days: int) -> PeriodBounds:
    """Current window ends on as_of; the previous window has equal length and ends the day before."""
    if period_days < 1:
        raise ValueError("period_days must be positive")
    current_start = as_of - timedelta(days=period_days - 1)
    previous_end = current_start - timedelta(days=1)
    previous_start = previous_end - timedelta(days=period_days - 1)
    return PeriodBounds(
        period_days=period_days,
        current_start=current_start,
        current_end=as_of,
        previous_start=previous_start,
        previous_end=previous_end,
    )


def window_total(samples: Iterable[MetricSample], start: date, end: date) -> float:
    return sum(s.value for s in clean_samples(samples) if start <= s.date <= end)


def _pct_change(current: float, previous: float) -> float:
    if previous == 0:
        if current > 0:
            return 100.0
        if current < 0:
            return -100.0
        return 0.0
    return (current - previous) / abs(previous) * 100.0


def classify_trend(change_percent: float, stable_band_pct: float = 2.0) -> Trend:
    if abs(change_percent) < stable_band_pct:
        return "stable"
    return "up" if change_percent > 0 else "down"


def compare(current: float, previous: float, stable_band_pct: float = 2.0) -> MetricComparison:
    change_percent = _pct_change(current, previous)
    return MetricComparison(
        current=current,
        previous=previous,
        change=current - previous,
        change_percent=change_percent,
        trend=classify_trend(change_percent, stable_band_pct),
    )


def day_over_day(samples: Iterable[MetricSample], stable_band_pct: float = 2.0) -> Optional[MetricComparison]:
    """Latest day vs the calendar day before it. None without data."""
    clean = clean_samples(samples)
    if not clean:
        return None
    anchor = clean[-1].date
    bounds = period_bounds(anchor, 1)
    return compare(
        window_total(clean, bounds.current_start, bounds.current_end),
        window_total(clean, bounds.previous_start, bounds.previous_end),
        stable_band_pct,
    )


def week_over_week(samples: Iterable[MetricSample], stable_band_pct: float = 2.0) -> Optional[MetricComparison]:
    """Last 7 calendar days (anchored on the latest sample) vs the 7 before."""
    clean = clean_samples(samples)
    if not clean:
        return None
    anchor = clean[-1].date
    bounds = period_bounds(anchor, 7)
    return compare(
        window_total(clean, bounds.current_start, bounds.current_end),
        window_total(clean, bounds.previous_start, bounds.previous_end),
        stable_band_pct,
    )


def _ticket(revenue: float, transactions: float) -> float:
    return revenue / transactions if transactions > 0 else 0.0


def period_comparisons(
    histories: Mapping[str, Iterable[MetricSample]],
    bounds: PeriodBounds,
    stable_band_pct: float = 2.0,
) -> BriefingMetrics:
    """
    Current vs previous window totals for the four additive metrics.
    Average transaction value is revenue / transactions within each window.
    """
    totals: Dict[str, List[float]] = {}
    for metric in ("transactions", "revenue", "customers", "cashback"):
        samples = list(histories.get(metric) or [])
        totals[metric] = [
            window_total(samples, bounds.current_start, bounds.current_end),
            window_total(samples, bounds.previous_start, bounds.previous_end),
        ]

    def cmp(metric: str) -> MetricComparison:
        current, previous = totals[metric]
        return compare(current, previous, stable_band_pct)

    txn_cur, txn_prev = totals["transactions"]
    rev_cur, rev_prev = totals["revenue"]

    return BriefingMetrics(
        transactions=cmp("transactions"),
        revenue=cmp("revenue"),
        customers=cmp("customers"),
        cashback=cmp("cashback"),
        avg_transaction_value=compare(
            _ticket(rev_cur, txn_cur),
            _ticket(rev_prev, txn_prev),
            stable_band_pct,
        ),
    )
