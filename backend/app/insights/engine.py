from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Dict, List, Optional

from backend.app.insights.anomalies import AnomalyDetector
from backend.app.insights.briefing import ExecutiveBriefingComposer
from backend.app.insights.config import DEFAULT_CONFIG, InsightsConfig
from backend.app.insights.provider import MetricHistoryProvider, fetch_histories
from backend.app.insights.recommendations import RecommendationEngine
from backend.app.insights.types import (
    PERIOD_DAYS,
    Anomaly,
    BriefingPeriod,
    ExecutiveBriefing,
    MetricSample,
    Recommendation,
)

_RECOMMENDATION_METRICS = ("revenue", "transactions", "customers", "cashback")


def _data_anchor(provider: MetricHistoryProvider, histories: Dict[str, List[MetricSample]]) -> Optional[date]:
    """The provider's own anchor if it has one, else the latest fetched sample date."""
    anchor = getattr(provider, "as_of", None)
    if anchor is not None:
        return anchor
    last_dates = [samples[-1].date for samples in histories.values() if samples]
    return max(last_dates) if last_dates else None


class InsightsEngine:
    """
    Provider-facing entry points. Fetches the windows each computation needs,
    then hands plain lists to the pure components. Provider errors propagate.
    """

    def __init__(self, provider: MetricHistoryProvider, config: Optional[InsightsConfig] = None):
        self.provider = provider
        self.config = config or DEFAULT_CONFIG
        self.detector = AnomalyDetector(self.config)
        self.recommender = RecommendationEngine(self.config)
        self.composer = ExecutiveBriefingComposer(self.config, self.detector, self.recommender)

    def detect_anomalies(self, merchant_id: str, now: Optional[datetime] = None) -> List[Anomaly]:
        # +1: the latest day is compared against the baseline_days before it
        days = self.config.anomalies.baseline_days + 1
        histories = fetch_histories(self.provider, merchant_id, days)
        return self.detector.detect(merchant_id, histories, now=now)

    def generate_recommendations(self, merchant_id: str, now: Optional[datetime] = None) -> List[Recommendation]:
        histories = fetch_histories(
            self.provider,
            merchant_id,
            self.config.recommendations.history_days,
            metrics=_RECOMMENDATION_METRICS,
        )
        return self.recommender.generate(merchant_id, histories, now=now)

    def compose_briefing(
        self,
        merchant_id: str,
        period: BriefingPeriod = "daily",
        as_of: Optional[date] = None,
        merchant_name: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ExecutiveBriefing:
        if period not in PERIOD_DAYS:
            raise ValueError(f"period must be one of {sorted(PERIOD_DAYS)}, got {period!r}")
        now = now or datetime.now(timezone.utc)
        days = max(
            self.config.recommendations.history_days,
            self.config.anomalies.baseline_days + 1,
            2 * PERIOD_DAYS[period],
        )
        histories = fetch_histories(self.provider, merchant_id, days)
        if as_of is None:
            as_of = _data_anchor(self.provider, histories) or now.date()
        return self.composer.compose(
            merchant_id,
            histories,
            period=period,
            as_of=as_of,
            merchant_name=merchant_name,
            now=now,
        )
