from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class AnomalyThresholds:
    """
    Cutoffs are percentages of deviation from the expected baseline.

    Severity bands are lower bounds on |deviation|:
    - low      < medium_pct
    - medium   < high_pct
    - high     < critical_pct
    - critical >= critical_pct
    """
    spike_pct: float = 40.0
    drop_pct: float = 40.0
    trend_change_pct: float = 10.0
    unusual_pct: float = 20.0
    stable_band_pct: float = 2.0

    medium_pct: float = 20.0
    high_pct: float = 40.0
    critical_pct: float = 70.0

    baseline_days: int = 30
    min_data_points: int = 7
    trend_window: int = 7
    min_same_weekday_points: int = 3


@dataclass(frozen=True)
class RecommendationThresholds:
    history_days: int = 60
    min_history_days: int = 14
    trend_window: int = 7
    cashback_rate_window: int = 7
    basket_window: int = 14

    cashback_increase_below_trend: float = -0.05
    cashback_reduce_above_trend: float = 0.10
    cashback_reduce_min_rate_pct: float = 3.0
    cashback_increase_step_pp: float = 0.5
    cashback_reduce_step_pp: float = 0.3

    retention_below_trend: float = -0.08
    growth_min_revenue_trend: float = 0.05
    growth_min_transactions_trend: float = 0.05
    weekend_gap_ratio: float = 0.6
    basket_min_avg_value: float = 50.0

    max_recommendations: int = 5


@dataclass(frozen=True)
class ScoreWeights:
    neutral: float = 50.0
    max_points_per_metric: float = 8.0
    change_cap_pct: float = 25.0
    critical_alert_penalty: float = 10.0
    warning_alert_penalty: float = 4.0
    stable_band_pct: float = 2.0
    max_highlights: int = 5
    min_highlights: int = 3
    top_recommendations: int = 3


@dataclass(frozen=True)
class InsightsConfig:
    anomalies: AnomalyThresholds = field(default_factory=AnomalyThresholds)
    recommendations: RecommendationThresholds = field(default_factory=RecommendationThresholds)
    score: ScoreWeights = field(default_factory=ScoreWeights)

    def __post_init__(self) -> None:
        validate_config(self)


def validate_config(config: InsightsConfig) -> None:
    a = config.anomalies
    if not (0 < a.medium_pct < a.high_pct < a.critical_pct):
        raise ValueError("severity bands must be positive and strictly ascending")
    if a.spike_pct < a.unusual_pct or a.drop_pct < a.unusual_pct:
        raise ValueError("spike/drop thresholds must not be below the unusual_pattern threshold")
    if a.baseline_days < 1 or a.trend_window < 1:
        raise ValueError("anomaly windows must be positive")
    if a.min_data_points < 2:
        raise ValueError("min_data_points must be at least 2")

    r = config.recommendations
    if r.history_days < 1 or r.trend_window < 1 or r.basket_window < 1 or r.cashback_rate_window < 1:
        raise ValueError("recommendation windows must be positive")
    if r.max_recommendations < 1:
        raise ValueError("max_recommendations must be at least 1")

    s = config.score
    if s.change_cap_pct <= 0:
        raise ValueError("change_cap_pct must be positive")
    if s.min_highlights > s.max_highlights:
        raise ValueError("min_highlights must not exceed max_highlights")


def _env_float(name: str) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def _env_int(name: str) -> Optional[int]:
    value = _env_float(name)
    return int(value) if value is not None else None


def load_insights_config() -> InsightsConfig:
    """Defaults overridden by KACHING_* environment variables."""
    anomaly_overrides = {
        key: value
        for key, value in {
            "spike_pct": _env_float("KACHING_SPIKE_PCT"),
            "drop_pct": _env_float("KACHING_DROP_PCT"),
            "trend_change_pct": _env_float("KACHING_TREND_CHANGE_PCT"),
            "unusual_pct": _env_float("KACHING_UNUSUAL_PCT"),
            "baseline_days": _env_int("KACHING_BASELINE_DAYS"),
            "min_data_points": _env_int("KACHING_MIN_DATA_POINTS"),
        }.items()
        if value is not None
    }
    recommendation_overrides = {}
    history_days = _env_int("KACHING_HISTORY_DAYS")
    if history_days is not None:
        recommendation_overrides["history_days"] = history_days

    return InsightsConfig(
        anomalies=replace(AnomalyThresholds(), **anomaly_overrides),
        recommendations=replace(RecommendationThresholds(), **recommendation_overrides),
    )


DEFAULT_CONFIG = InsightsConfig()
