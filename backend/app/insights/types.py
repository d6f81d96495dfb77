"""
Insights core - typed records.

Everything the core produces is a frozen dataclass made of plain values
(str / int / float / bool / lists / nested dataclasses), so
`dataclasses.asdict` gives a JSON-ready dict with no further conversion.
Timestamps are ISO strings for the same reason.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Literal, Optional, Sequence, Tuple

MetricType = Literal["transactions", "revenue", "customers", "cashback", "avg_transaction"]
AnomalyType = Literal["spike", "drop", "trend_change", "unusual_pattern"]
AnomalySeverity = Literal["low", "medium", "high", "critical"]
RecommendationType = Literal["optimization", "retention", "growth"]
Priority = Literal["low", "medium", "high"]
Trend = Literal["up", "down", "stable"]
AlertSeverity = Literal["warning", "critical"]
Sentiment = Literal["positive", "negative", "neutral"]
BriefingPeriod = Literal["daily", "weekly"]

METRIC_TYPES: Tuple[MetricType, ...] = (
    "transactions",
    "revenue",
    "customers",
    "cashback",
    "avg_transaction",
)

PERIOD_DAYS: Dict[str, int] = {"daily": 1, "weekly": 7}


@dataclass(frozen=True)
class MetricSample:
    """One daily observation. Missing days are absent, never zero-filled."""
    date: date
    value: float


MetricSeries = Sequence[MetricSample]
MetricHistories = Dict[str, List[MetricSample]]


@dataclass(frozen=True)
class SeriesStats:
    count: int
    mean: float
    stddev: float
    min: float
    max: float
    slope: float


@dataclass(frozen=True)
class Anomaly:
    id: str
    merchant_id: str
    metric: MetricType
    type: AnomalyType
    severity: AnomalySeverity
    value: float
    expected_value: float
    deviation: float  # percent
    detected_at: str  # ISO datetime
    description: str
    recommendation: Optional[str] = None
    z_score: Optional[float] = None
    seasonality_adjusted: bool = False


@dataclass(frozen=True)
class RecommendationImpact:
    metric: MetricType
    estimated_change: float  # percent
    confidence: float  # 0..1


@dataclass(frozen=True)
class Recommendation:
    id: str
    merchant_id: str
    type: RecommendationType
    priority: Priority
    title: str
    description: str
    action: str
    created_at: str  # ISO datetime
    impact: Optional[RecommendationImpact] = None


@dataclass(frozen=True)
class MetricComparison:
    current: float
    previous: float
    change: float
    change_percent: float
    trend: Trend


@dataclass(frozen=True)
class BriefingMetrics:
    transactions: MetricComparison
    revenue: MetricComparison
    customers: MetricComparison
    cashback: MetricComparison
    avg_transaction_value: MetricComparison

    def items(self) -> List[Tuple[str, MetricComparison]]:
        return [
            ("transactions", self.transactions),
            ("revenue", self.revenue),
            ("customers", self.customers),
            ("cashback", self.cashback),
            ("avg_transaction_value", self.avg_transaction_value),
        ]


@dataclass(frozen=True)
class BriefingAlert:
    severity: AlertSeverity
    metric: MetricType
    message: str


@dataclass(frozen=True)
class BriefingHighlight:
    title: str
    description: str
    sentiment: Sentiment
    metric: Optional[str] = None


@dataclass(frozen=True)
class ExecutiveBriefing:
    id: str
    merchant_id: str
    period: BriefingPeriod
    period_start: str  # ISO date
    period_end: str  # ISO date
    generated_at: str  # ISO datetime
    summary: str
    metrics: BriefingMetrics
    performance_score: int
    highlights: List[BriefingHighlight] = field(default_factory=list)
    alerts: List[BriefingAlert] = field(default_factory=list)
    top_recommendations: List[Recommendation] = field(default_factory=list)
    merchant_name: Optional[str] = None
