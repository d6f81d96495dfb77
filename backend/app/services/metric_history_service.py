from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.insights.types import MetricSample, MetricType
from backend.app.models import DailyMetric

logger = logging.getLogger(__name__)


def _num(x) -> Optional[float]:
    if x is None:
        return None
    try:
        return float(x)
    except (TypeError, ValueError):
        return None


def _avg_transaction(row: DailyMetric) -> Optional[float]:
    txns = _num(row.transactions_count)
    if txns is None:
        return None
    if txns <= 0:
        return 0.0
    revenue = _num(row.revenue)
    return revenue / txns if revenue is not None else None


_EXTRACTORS: Dict[str, Callable[[DailyMetric], Optional[float]]] = {
    "transactions": lambda row: _num(row.transactions_count),
    "revenue": lambda row: _num(row.revenue),
    "customers": lambda row: _num(row.unique_customers),
    "cashback": lambda row: _num(row.cashback_paid),
    "avg_transaction": _avg_transaction,
}


class SqlMetricHistoryProvider:
    """
    MetricHistoryProvider over the daily_metrics table.

    The window is [as_of - days + 1, as_of]; as_of defaults to today (UTC).
    NULL columns are skipped, so a missing value is absent rather than zero.
    """

    def __init__(self, db: Session, as_of: Optional[date] = None):
        self.db = db
        self.as_of = as_of

    def _anchor(self) -> date:
        return self.as_of or datetime.now(timezone.utc).date()

    def get_metric_history(self, merchant_id: str, metric: MetricType, days: int) -> List[MetricSample]:
        extract = _EXTRACTORS.get(metric)
        if extract is None:
            raise ValueError(f"unknown metric: {metric}")
        if days <= 0:
            return []

        end = self._anchor()
        start = end - timedelta(days=days - 1)
        rows = (
            self.db.execute(
                select(DailyMetric)
                .where(
                    DailyMetric.merchant_id == merchant_id,
                    DailyMetric.day >= start,
                    DailyMetric.day <= end,
                )
                .order_by(DailyMetric.day.asc())
            )
            .scalars()
            .all()
        )

        samples: List[MetricSample] = []
        skipped = 0
        for row in rows:
            value = extract(row)
            if value is None:
                skipped += 1
                continue
            samples.append(MetricSample(date=row.day, value=value))

        if skipped:
            logger.debug(
                "Skipped %s null daily_metrics rows merchant_id=%s metric=%s",
                skipped,
                merchant_id,
                metric,
            )
        return samples
