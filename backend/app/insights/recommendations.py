from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional

from backend.app.insights.config import DEFAULT_CONFIG, InsightsConfig
from backend.app.insights.stats import clean_samples, trend, weekday_average, weekend_average
from backend.app.insights.types import (
    MetricSample,
    MetricType,
    Priority,
    Recommendation,
    RecommendationImpact,
    RecommendationType,
)

PRIORITY_ORDER: Dict[str, int] = {"high": 0, "medium": 1, "low": 2}


@dataclass(frozen=True)
class RecommendationSignals:
    """Inputs the rule set reads. Trends are fractions (0.12 == +12%)."""
    revenue_trend: float
    transactions_trend: float
    customers_trend: float
    cashback_rate_pct: float
    weekday_avg_transactions: float
    weekend_avg_transactions: float
    avg_transaction_value: Optional[float]  # None without revenue in the basket window
    basket_transactions: float


def rank(recommendations: Iterable[Recommendation], limit: Optional[int] = None) -> List[Recommendation]:
    # sorted() is stable, so rule order breaks priority ties
    ranked = sorted(recommendations, key=lambda r: PRIORITY_ORDER.get(r.priority, len(PRIORITY_ORDER)))
    return ranked[:limit] if limit is not None else ranked


class RecommendationEngine:
    def __init__(self, config: Optional[InsightsConfig] = None):
        self.config = config or DEFAULT_CONFIG
        self.thresholds = self.config.recommendations

    def _series(self, histories: Mapping[str, Iterable[MetricSample]], metric: str) -> List[MetricSample]:
        return clean_samples(histories.get(metric) or [])

    def _trend(self, samples: List[MetricSample]) -> float:
        t = self.thresholds
        if len(samples) < t.min_history_days:
            return 0.0
        return trend([s.value for s in samples], t.trend_window, t.trend_window)

    def compute_signals(self, histories: Mapping[str, Iterable[MetricSample]]) -> RecommendationSignals:
        t = self.thresholds
        revenue = self._series(histories, "revenue")
        transactions = self._series(histories, "transactions")
        customers = self._series(histories, "customers")
        cashback = self._series(histories, "cashback")

        recent_revenue = sum(s.value for s in revenue[-t.cashback_rate_window:])
        recent_cashback = sum(s.value for s in cashback[-t.cashback_rate_window:])
        cashback_rate = recent_cashback / recent_revenue * 100.0 if recent_revenue > 0 else 0.0

        basket_txns = sum(s.value for s in transactions[-t.basket_window:])
        basket_revenue = revenue[-t.basket_window:]
        avg_ticket: Optional[float] = None
        if basket_revenue:
            revenue_total = sum(s.value for s in basket_revenue)
            avg_ticket = revenue_total / basket_txns if basket_txns > 0 else 0.0

        return RecommendationSignals(
            revenue_trend=self._trend(revenue),
            transactions_trend=self._trend(transactions),
            customers_trend=self._trend(customers),
            cashback_rate_pct=cashback_rate,
            weekday_avg_transactions=weekday_average(transactions),
            weekend_avg_transactions=weekend_average(transactions),
            avg_transaction_value=avg_ticket,
            basket_transactions=basket_txns,
        )

    def _make(
        self,
        merchant_id: str,
        key: str,
        rec_type: RecommendationType,
        priority: Priority,
        title: str,
        description: str,
        action: str,
        metric: MetricType,
        estimated_change: float,
        confidence: float,
        created_at: str,
    ) -> Recommendation:
        return Recommendation(
            id=f"rec-{key}-{uuid.uuid4().hex[:9]}",
            merchant_id=merchant_id,
            type=rec_type,
            priority=priority,
            title=title,
            description=description,
            action=action,
            created_at=created_at,
            impact=RecommendationImpact(
                metric=metric,
                estimated_change=estimated_change,
                confidence=confidence,
            ),
        )

    def evaluate(
        self,
        merchant_id: str,
        signals: RecommendationSignals,
        now: Optional[datetime] = None,
    ) -> List[Recommendation]:
        """Every rule that fires, in rule order (unranked)."""
        t = self.thresholds
        created_at = (now or datetime.now(timezone.utc)).isoformat()
        s = signals
        out: List[Recommendation] = []

        if s.transactions_trend < t.cashback_increase_below_trend:
            target = s.cashback_rate_pct + t.cashback_increase_step_pp
            out.append(
                self._make(
                    merchant_id,
                    "cashback",
                    "optimization",
                    "high",
                    "Increase Cashback to Boost Transactions",
                    (
                        f"Transaction volume is declining ({s.transactions_trend * 100:.1f}% trend). "
                        f"Consider increasing cashback rate from {s.cashback_rate_pct:.1f}% to {target:.1f}% "
                        "to attract more customers."
                    ),
                    f"Increase cashback rate by {t.cashback_increase_step_pp:g}% for 2 weeks",
                    "transactions",
                    12.0,
                    0.75,
                    created_at,
                )
            )

        if s.transactions_trend > t.cashback_reduce_above_trend and s.cashback_rate_pct > t.cashback_reduce_min_rate_pct:
            target = s.cashback_rate_pct - t.cashback_reduce_step_pp
            out.append(
                self._make(
                    merchant_id,
                    "cashback-opt",
                    "optimization",
                    "medium",
                    "Optimize Cashback Spending",
                    (
                        f"Strong transaction growth ({s.transactions_trend * 100:.1f}% trend) suggests you can "
                        f"reduce cashback rate from {s.cashback_rate_pct:.1f}% to {target:.1f}% "
                        "while maintaining momentum."
                    ),
                    f"Reduce cashback rate by {t.cashback_reduce_step_pp:g}% and monitor for 1 week",
                    "cashback",
                    -10.0,
                    0.70,
                    created_at,
                )
            )

        if s.customers_trend < t.retention_below_trend:
            out.append(
                self._make(
                    merchant_id,
                    "retention",
                    "retention",
                    "high",
                    "Customer Retention Risk Detected",
                    (
                        f"Unique customer count is declining ({s.customers_trend * 100:.1f}% trend). "
                        "This could indicate customers switching to competitors."
                    ),
                    "Launch a loyalty bonus: 2x cashback for returning customers this week",
                    "customers",
                    15.0,
                    0.80,
                    created_at,
                )
            )

        if s.revenue_trend > t.growth_min_revenue_trend and s.transactions_trend > t.growth_min_transactions_trend:
            out.append(
                self._make(
                    merchant_id,
                    "growth",
                    "growth",
                    "medium",
                    "Growth Momentum Detected",
                    (
                        f"Both revenue ({s.revenue_trend * 100:.1f}%) and transactions "
                        f"({s.transactions_trend * 100:.1f}%) are trending upward. This is a good time to expand."
                    ),
                    "Consider launching a new category promotion to accelerate growth",
                    "revenue",
                    20.0,
                    0.65,
                    created_at,
                )
            )

        weekday_avg = s.weekday_avg_transactions
        weekend_avg = s.weekend_avg_transactions
        if weekday_avg > 0 and weekend_avg < weekday_avg * t.weekend_gap_ratio:
            gap = (1 - weekend_avg / weekday_avg) * 100
            out.append(
                self._make(
                    merchant_id,
                    "weekend",
                    "optimization",
                    "medium",
                    "Weekend Performance Gap",
                    (
                        f"Weekend transactions are {gap:.0f}% lower than weekdays. "
                        "Consider weekend-specific promotions."
                    ),
                    'Launch "Weekend Bonus": +1% extra cashback on Sat-Sun',
                    "transactions",
                    25.0,
                    0.70,
                    created_at,
                )
            )

        if (
            s.basket_transactions > 0
            and s.avg_transaction_value is not None
            and s.avg_transaction_value < t.basket_min_avg_value
        ):
            out.append(
                self._make(
                    merchant_id,
                    "basket",
                    "growth",
                    "low",
                    "Increase Average Basket Size",
                    (
                        f"Average transaction is {s.avg_transaction_value:.0f}. "
                        "Consider tiered cashback to encourage larger purchases."
                    ),
                    f"Offer bonus cashback for purchases over {t.basket_min_avg_value * 2:g}",
                    "revenue",
                    15.0,
                    0.60,
                    created_at,
                )
            )

        return out

    def generate(
        self,
        merchant_id: str,
        histories: Mapping[str, Iterable[MetricSample]],
        now: Optional[datetime] = None,
    ) -> List[Recommendation]:
        signals = self.compute_signals(histories)
        return rank(self.evaluate(merchant_id, signals, now=now), self.thresholds.max_recommendations)
