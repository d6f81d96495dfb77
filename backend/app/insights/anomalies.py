from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from backend.app.insights.config import DEFAULT_CONFIG, InsightsConfig
from backend.app.insights.stats import clean_samples, mean, stddev, trend
from backend.app.insights.types import (
    METRIC_TYPES,
    Anomaly,
    AnomalySeverity,
    AnomalyType,
    MetricSample,
    MetricType,
)

logger = logging.getLogger(__name__)


METRIC_LABELS: Dict[str, str] = {
    "transactions": "transactions",
    "revenue": "revenue",
    "customers": "unique customers",
    "cashback": "cashback paid",
    "avg_transaction": "average transaction value",
}

_MONEY_METRICS = {"revenue", "cashback", "avg_transaction"}

_SEVERITY_RANK: Dict[str, int] = {"critical": 4, "high": 3, "medium": 2, "low": 1}
_TYPE_ORDER: Dict[str, int] = {"spike": 0, "drop": 1, "trend_change": 2, "unusual_pattern": 3}

_WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

ANOMALY_PLAYBOOK: Dict[str, Dict[str, str]] = {
    "transactions": {
        "spike": "Investigate what drove increased activity. Consider if this can be replicated.",
        "drop": "Check for technical issues, competitor promotions, or seasonal factors.",
        "trend_change": "Monitor closely over next few days to confirm trend direction.",
        "unusual_pattern": "Review transaction logs for any unusual customer behavior.",
    },
    "revenue": {
        "spike": "Analyze which products/categories drove growth. Consider inventory impact.",
        "drop": "Review pricing, promotions, and customer feedback for issues.",
        "trend_change": "Evaluate if trend aligns with business strategy or needs intervention.",
        "unusual_pattern": "Check for large transactions or refunds affecting totals.",
    },
    "customers": {
        "spike": "Great acquisition! Ensure onboarding experience meets expectations.",
        "drop": "Review customer feedback, check for churn indicators.",
        "trend_change": "Assess marketing campaign effectiveness and customer lifecycle.",
        "unusual_pattern": "Investigate customer demographics and acquisition channels.",
    },
    "cashback": {
        "spike": "Review if cashback rates are sustainable. Check for abuse patterns.",
        "drop": "Ensure cashback is being properly tracked and credited.",
        "trend_change": "Evaluate cashback strategy effectiveness.",
        "unusual_pattern": "Audit cashback transactions for irregularities.",
    },
    "avg_transaction": {
        "spike": "Identify high-value transactions. Opportunity for premium segment.",
        "drop": "Check for discount abuse or product mix shift.",
        "trend_change": "Review pricing strategy and product recommendations.",
        "unusual_pattern": "Analyze basket composition for insights.",
    },
}


def severity_rank(severity: str) -> int:
    return _SEVERITY_RANK.get((severity or "").lower(), 0)


def _pct_deviation(actual: float, expected: float) -> float:
    if expected == 0:
        return 0.0
    return (actual - expected) / abs(expected) * 100.0


def _direction(value_pct: float, threshold_pct: float) -> int:
    if value_pct >= threshold_pct:
        return 1
    if value_pct <= -threshold_pct:
        return -1
    return 0


def _fmt_value(metric: str, value: float) -> str:
    if metric in _MONEY_METRICS:
        return f"{value:,.2f}"
    return f"{value:,.0f}"


def _new_id(metric: str, anomaly_type: str) -> str:
    return f"anomaly_{metric}_{anomaly_type}_{uuid.uuid4().hex[:9]}"


def describe(
    metric: str,
    anomaly_type: str,
    value: float,
    expected: float,
    deviation: float,
    weekday: Optional[str] = None,
) -> str:
    label = METRIC_LABELS.get(metric, metric)
    pct = f"{abs(deviation):.1f}"

    if anomaly_type == "spike":
        return (
            f"{label[:1].upper() + label[1:]} spiked {pct}% above expected "
            f"({_fmt_value(metric, value)} vs {_fmt_value(metric, expected)} expected)"
        )
    if anomaly_type == "drop":
        return (
            f"{label[:1].upper() + label[1:]} dropped {pct}% below expected "
            f"({_fmt_value(metric, value)} vs {_fmt_value(metric, expected)} expected)"
        )
    if anomaly_type == "trend_change":
        direction = "upward" if deviation > 0 else "downward"
        return f"Significant trend change detected in {label} - {direction} shift of {pct}%"

    text = f"Unusual pattern detected in {label} - deviation of {pct}% from normal"
    if weekday:
        text += f" for a typical {weekday}"
    return text


def dedupe(anomalies: Iterable[Anomaly]) -> List[Anomaly]:
    """One anomaly per (metric, type): the most severe, then the largest |deviation|."""
    best: Dict[Tuple[str, str], Anomaly] = {}
    for a in anomalies:
        key = (a.metric, a.type)
        current = best.get(key)
        if current is None or (severity_rank(a.severity), abs(a.deviation)) > (
            severity_rank(current.severity),
            abs(current.deviation),
        ):
            best[key] = a
    return list(best.values())


def sort_anomalies(anomalies: Iterable[Anomaly]) -> List[Anomaly]:
    metric_order = {m: i for i, m in enumerate(METRIC_TYPES)}
    return sorted(
        anomalies,
        key=lambda a: (
            -severity_rank(a.severity),
            -abs(a.deviation),
            metric_order.get(a.metric, len(metric_order)),
            _TYPE_ORDER.get(a.type, len(_TYPE_ORDER)),
        ),
    )


class AnomalyDetector:
    """
    Compares each metric's latest day against a trailing baseline and
    classifies the deviation into spike / drop / trend_change / unusual_pattern.

    Stateless: the same histories always produce the same anomalies
    (ids and detected_at aside).
    """

    def __init__(self, config: Optional[InsightsConfig] = None):
        self.config = config or DEFAULT_CONFIG
        self.thresholds = self.config.anomalies

    def severity_for(self, deviation: float) -> AnomalySeverity:
        t = self.thresholds
        magnitude = abs(deviation)
        if magnitude >= t.critical_pct:
            return "critical"
        if magnitude >= t.high_pct:
            return "high"
        if magnitude >= t.medium_pct:
            return "medium"
        return "low"

    def _build(
        self,
        merchant_id: str,
        metric: MetricType,
        anomaly_type: AnomalyType,
        value: float,
        expected: float,
        deviation: float,
        detected_at: str,
        z_score: Optional[float] = None,
        weekday: Optional[str] = None,
    ) -> Anomaly:
        severity = self.severity_for(deviation)
        recommendation = None
        if severity in ("high", "critical"):
            recommendation = ANOMALY_PLAYBOOK.get(metric, {}).get(anomaly_type)
        return Anomaly(
            id=_new_id(metric, anomaly_type),
            merchant_id=merchant_id,
            metric=metric,
            type=anomaly_type,
            severity=severity,
            value=value,
            expected_value=expected,
            deviation=deviation,
            detected_at=detected_at,
            description=describe(metric, anomaly_type, value, expected, deviation, weekday),
            recommendation=recommendation,
            z_score=z_score,
            seasonality_adjusted=weekday is not None,
        )

    def detect_series(
        self,
        merchant_id: str,
        metric: MetricType,
        samples: Iterable[MetricSample],
        now: Optional[datetime] = None,
    ) -> List[Anomaly]:
        t = self.thresholds
        clean = clean_samples(samples)
        if len(clean) < max(t.min_data_points, 2):
            logger.debug(
                "Skipping anomaly detection merchant_id=%s metric=%s points=%s",
                merchant_id,
                metric,
                len(clean),
            )
            return []

        detected_at = (now or datetime.now(timezone.utc)).isoformat()
        values = [s.value for s in clean]
        latest = clean[-1]

        baseline = clean[:-1][-t.baseline_days:]
        baseline_values = [s.value for s in baseline]
        expected = mean(baseline_values)
        deviation = _pct_deviation(latest.value, expected)

        sd = stddev(baseline_values)
        z_score = (latest.value - expected) / sd if sd > 0 else None

        found: List[Anomaly] = []

        if deviation >= t.spike_pct:
            found.append(
                self._build(merchant_id, metric, "spike", latest.value, expected, deviation, detected_at, z_score)
            )
        elif deviation <= -t.drop_pct:
            found.append(
                self._build(merchant_id, metric, "drop", latest.value, expected, deviation, detected_at, z_score)
            )

        # Inflection: the recent window moves in a direction the prior period did not.
        w = t.trend_window
        recent_trend_pct = trend(values, w, w) * 100.0
        prior_trend_pct = trend(values[:-w], w, w) * 100.0 if len(values) > w else 0.0
        recent_dir = _direction(recent_trend_pct, t.trend_change_pct)
        prior_dir = _direction(prior_trend_pct, t.stable_band_pct)
        if recent_dir != 0 and recent_dir != prior_dir:
            found.append(
                self._build(
                    merchant_id,
                    metric,
                    "trend_change",
                    mean(values[-w:]),
                    mean(values[-2 * w:-w]),
                    recent_trend_pct,
                    detected_at,
                )
            )

        if not found and abs(deviation) >= t.unusual_pct:
            weekday = latest.date.weekday()
            same_day = [s.value for s in baseline if s.date.weekday() == weekday]
            if len(same_day) >= t.min_same_weekday_points:
                seasonal_expected = mean(same_day)
                seasonal_deviation = _pct_deviation(latest.value, seasonal_expected)
                if abs(seasonal_deviation) >= t.unusual_pct:
                    found.append(
                        self._build(
                            merchant_id,
                            metric,
                            "unusual_pattern",
                            latest.value,
                            seasonal_expected,
                            seasonal_deviation,
                            detected_at,
                            z_score,
                            weekday=_WEEKDAY_NAMES[weekday],
                        )
                    )
                else:
                    logger.debug(
                        "Deviation explained by weekday pattern merchant_id=%s metric=%s deviation=%.1f",
                        merchant_id,
                        metric,
                        deviation,
                    )
            else:
                found.append(
                    self._build(
                        merchant_id, metric, "unusual_pattern", latest.value, expected, deviation, detected_at, z_score
                    )
                )

        return found

    def detect(
        self,
        merchant_id: str,
        histories: Mapping[str, Iterable[MetricSample]],
        now: Optional[datetime] = None,
    ) -> List[Anomaly]:
        now = now or datetime.now(timezone.utc)
        anomalies: List[Anomaly] = []
        for metric in METRIC_TYPES:
            anomalies.extend(self.detect_series(merchant_id, metric, histories.get(metric) or [], now=now))
        return sort_anomalies(dedupe(anomalies))
