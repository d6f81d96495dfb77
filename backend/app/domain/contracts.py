from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel

MetricName = Literal["transactions", "revenue", "customers", "cashback", "avg_transaction"]


class AnomalyResult(BaseModel):
    id: str
    merchant_id: str
    metric: MetricName
    type: Literal["spike", "drop", "trend_change", "unusual_pattern"]
    severity: Literal["low", "medium", "high", "critical"]
    value: float
    expected_value: float
    deviation: float
    detected_at: str
    description: str
    recommendation: Optional[str] = None
    z_score: Optional[float] = None
    seasonality_adjusted: bool = False


class RecommendationImpactResult(BaseModel):
    metric: MetricName
    estimated_change: float
    confidence: float


class RecommendationResult(BaseModel):
    id: str
    merchant_id: str
    type: Literal["optimization", "retention", "growth"]
    priority: Literal["low", "medium", "high"]
    title: str
    description: str
    action: str
    created_at: str
    impact: Optional[RecommendationImpactResult] = None


class MetricComparisonResult(BaseModel):
    current: float
    previous: float
    change: float
    change_percent: float
    trend: Literal["up", "down", "stable"]


class BriefingMetricsResult(BaseModel):
    transactions: MetricComparisonResult
    revenue: MetricComparisonResult
    customers: MetricComparisonResult
    cashback: MetricComparisonResult
    avg_transaction_value: MetricComparisonResult


class BriefingAlertResult(BaseModel):
    severity: Literal["warning", "critical"]
    metric: MetricName
    message: str


class BriefingHighlightResult(BaseModel):
    title: str
    description: str
    sentiment: Literal["positive", "negative", "neutral"]
    metric: Optional[str] = None


class ExecutiveBriefingResult(BaseModel):
    id: str
    merchant_id: str
    merchant_name: Optional[str] = None
    period: Literal["daily", "weekly"]
    period_start: str
    period_end: str
    generated_at: str
    summary: str
    metrics: BriefingMetricsResult
    highlights: List[BriefingHighlightResult]
    alerts: List[BriefingAlertResult]
    top_recommendations: List[RecommendationResult]
    performance_score: int


class AnomaliesOut(BaseModel):
    merchant_id: str
    anomalies: List[AnomalyResult]


class RecommendationsOut(BaseModel):
    merchant_id: str
    recommendations: List[RecommendationResult]
