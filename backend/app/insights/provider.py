from __future__ import annotations

from datetime import date, timedelta
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Sequence

from backend.app.insights.types import METRIC_TYPES, MetricSample, MetricType


class MetricHistoryProvider(Protocol):
    """
    Source of daily metric samples for one merchant.

    Contract:
    - samples are ascending by date, at most one per day
    - days with no data are absent (not zero)
    - errors (I/O, timeouts) are raised to the caller; the core never swallows them
    """

    def get_metric_history(self, merchant_id: str, metric: MetricType, days: int) -> List[MetricSample]:
        ...


def fetch_histories(
    provider: MetricHistoryProvider,
    merchant_id: str,
    days: int,
    metrics: Sequence[MetricType] = METRIC_TYPES,
) -> Dict[str, List[MetricSample]]:
    return {metric: list(provider.get_metric_history(merchant_id, metric, days)) for metric in metrics}


class InMemoryMetricHistoryProvider:
    """
    Dict-backed provider for tests and demos.

    series: {merchant_id: {metric: [MetricSample, ...]}}
    The window is anchored on `as_of` (default: latest sample date across the merchant's series).
    """

    def __init__(
        self,
        series: Optional[Mapping[str, Mapping[str, Iterable[MetricSample]]]] = None,
        as_of: Optional[date] = None,
    ):
        self._series: Dict[str, Dict[str, List[MetricSample]]] = {}
        self.as_of = as_of
        for merchant_id, by_metric in (series or {}).items():
            for metric, samples in by_metric.items():
                self.set_series(merchant_id, metric, samples)

    def set_series(self, merchant_id: str, metric: str, samples: Iterable[MetricSample]) -> None:
        self._series.setdefault(merchant_id, {})[metric] = sorted(samples, key=lambda s: s.date)

    def _anchor(self, merchant_id: str) -> Optional[date]:
        if self.as_of is not None:
            return self.as_of
        last_dates = [rows[-1].date for rows in self._series.get(merchant_id, {}).values() if rows]
        return max(last_dates) if last_dates else None

    def get_metric_history(self, merchant_id: str, metric: MetricType, days: int) -> List[MetricSample]:
        rows = self._series.get(merchant_id, {}).get(metric, [])
        anchor = self._anchor(merchant_id)
        if not rows or anchor is None or days <= 0:
            return []
        start = anchor - timedelta(days=days - 1)
        return [s for s in rows if start <= s.date <= anchor]
