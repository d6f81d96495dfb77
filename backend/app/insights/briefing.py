from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from backend.app.insights.anomalies import AnomalyDetector
from backend.app.insights.config import DEFAULT_CONFIG, InsightsConfig, ScoreWeights
from backend.app.insights.recommendations import RecommendationEngine
from backend.app.insights.stats import clean_samples
from backend.app.insights.trends import period_bounds, period_comparisons
from backend.app.insights.types import (
    PERIOD_DAYS,
    Anomaly,
    BriefingAlert,
    BriefingHighlight,
    BriefingMetrics,
    BriefingPeriod,
    ExecutiveBriefing,
    MetricComparison,
    MetricSample,
    Recommendation,
    Sentiment,
)

METRIC_TITLES: Dict[str, str] = {
    "transactions": "Transactions",
    "revenue": "Revenue",
    "customers": "Customers",
    "cashback": "Cashback",
    "avg_transaction_value": "Average transaction value",
}

# Metrics where a decrease is the good outcome.
INVERTED_METRICS = frozenset({"cashback"})

_ALERT_SEVERITY = {"high": "warning", "critical": "critical"}


def _clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def _direction(metric: str) -> int:
    return -1 if metric in INVERTED_METRICS else 1


def _fmt(metric: str, value: float) -> str:
    if metric in ("revenue", "cashback", "avg_transaction_value"):
        return f"{value:,.2f}"
    return f"{value:,.0f}"


def alerts_from_anomalies(anomalies: Iterable[Anomaly]) -> List[BriefingAlert]:
    alerts: List[BriefingAlert] = []
    for a in anomalies:
        severity = _ALERT_SEVERITY.get(a.severity)
        if severity is None:
            continue
        alerts.append(BriefingAlert(severity=severity, metric=a.metric, message=a.description))
    return alerts


def performance_score(
    metrics: BriefingMetrics,
    alerts: Sequence[BriefingAlert],
    weights: ScoreWeights = DEFAULT_CONFIG.score,
) -> int:
    """
    50 is neutral. Each metric moves the score by up to +/- max_points_per_metric,
    linear in change_percent and saturating at change_cap_pct. Alerts subtract a
    fixed penalty each. Always clamped to [0, 100].
    """
    score = weights.neutral
    cap = weights.change_cap_pct
    for metric, comparison in metrics.items():
        pct = _clamp(comparison.change_percent, -cap, cap)
        score += _direction(metric) * weights.max_points_per_metric * pct / cap

    for alert in alerts:
        if alert.severity == "critical":
            score -= weights.critical_alert_penalty
        else:
            score -= weights.warning_alert_penalty

    return int(round(_clamp(score, 0.0, 100.0)))


def comparison_sentiment(metric: str, comparison: MetricComparison) -> Sentiment:
    if comparison.trend == "stable":
        return "neutral"
    favourable = _direction(metric) * comparison.change_percent > 0
    return "positive" if favourable else "negative"


def _comparison_highlight(metric: str, comparison: MetricComparison, period_label: str) -> BriefingHighlight:
    title = METRIC_TITLES.get(metric, metric)
    sentiment = comparison_sentiment(metric, comparison)
    current = _fmt(metric, comparison.current)
    previous = _fmt(metric, comparison.previous)

    if comparison.trend == "stable":
        return BriefingHighlight(
            title=f"{title} steady",
            description=f"{title} held steady {period_label} at {current} (previous period: {previous}).",
            sentiment=sentiment,
            metric=metric,
        )

    verb = "up" if comparison.trend == "up" else "down"
    return BriefingHighlight(
        title=f"{title} {verb} {abs(comparison.change_percent):.1f}%",
        description=f"{title} moved from {previous} to {current} {period_label}.",
        sentiment=sentiment,
        metric=metric,
    )


def build_highlights(
    metrics: BriefingMetrics,
    recommendations: Sequence[Recommendation],
    period: BriefingPeriod,
    weights: ScoreWeights = DEFAULT_CONFIG.score,
) -> List[BriefingHighlight]:
    """
    Most favourable move, most unfavourable move, growth recommendations,
    then the remaining metrics by magnitude until min_highlights is reached.
    """
    period_label = "today" if period == "daily" else "this week"
    moves: List[Tuple[str, MetricComparison, float]] = [
        (metric, cmp, _direction(metric) * cmp.change_percent)
        for metric, cmp in metrics.items()
        if cmp.trend != "stable"
    ]

    picked: List[str] = []
    highlights: List[BriefingHighlight] = []

    favourable = [m for m in moves if m[2] > 0]
    if favourable:
        metric, cmp, _ = max(favourable, key=lambda m: m[2])
        highlights.append(_comparison_highlight(metric, cmp, period_label))
        picked.append(metric)

    unfavourable = [m for m in moves if m[2] < 0]
    if unfavourable:
        metric, cmp, _ = min(unfavourable, key=lambda m: m[2])
        highlights.append(_comparison_highlight(metric, cmp, period_label))
        picked.append(metric)

    for rec in recommendations:
        if rec.type != "growth":
            continue
        highlights.append(
            BriefingHighlight(
                title=rec.title,
                description=rec.description,
                sentiment="positive",
                metric=rec.impact.metric if rec.impact else None,
            )
        )

    rest = sorted(
        ((metric, cmp) for metric, cmp in metrics.items() if metric not in picked),
        key=lambda item: -abs(item[1].change_percent),
    )
    for metric, cmp in rest:
        if len(highlights) >= weights.min_highlights:
            break
        highlights.append(_comparison_highlight(metric, cmp, period_label))

    return highlights[: weights.max_highlights]


def score_bracket(score: int) -> str:
    if score >= 70:
        return "strong performance"
    if score >= 50:
        return "steady performance"
    if score >= 30:
        return "mixed results"
    return "challenging conditions"


def build_summary(
    merchant_name: Optional[str],
    period: BriefingPeriod,
    score: int,
    highlights: Sequence[BriefingHighlight],
    alerts: Sequence[BriefingAlert],
) -> str:
    period_label = "Today" if period == "daily" else "This week"
    name = merchant_name or "the merchant"
    parts = [f"{period_label}, {name} showed {score_bracket(score)} with a score of {score}/100."]

    notable = [h for h in highlights if h.sentiment != "neutral"][:2]
    if notable:
        parts.append("Key signals: " + "; ".join(h.title for h in notable) + ".")
    else:
        parts.append("Metrics held steady versus the previous period.")

    if alerts:
        critical = sum(1 for a in alerts if a.severity == "critical")
        noun = "alert needs" if len(alerts) == 1 else "alerts need"
        text = f"{len(alerts)} {noun} attention"
        if critical:
            text += f" ({critical} critical)"
        parts.append(text + ".")

    return " ".join(parts)


def _trim_to(histories: Mapping[str, Iterable[MetricSample]], as_of: date) -> Dict[str, List[MetricSample]]:
    return {
        metric: [s for s in clean_samples(samples or []) if s.date <= as_of]
        for metric, samples in histories.items()
    }


class ExecutiveBriefingComposer:
    def __init__(
        self,
        config: Optional[InsightsConfig] = None,
        detector: Optional[AnomalyDetector] = None,
        recommender: Optional[RecommendationEngine] = None,
    ):
        self.config = config or DEFAULT_CONFIG
        self.weights = self.config.score
        self.detector = detector or AnomalyDetector(self.config)
        self.recommender = recommender or RecommendationEngine(self.config)

    def compose(
        self,
        merchant_id: str,
        histories: Mapping[str, Iterable[MetricSample]],
        period: BriefingPeriod = "daily",
        as_of: Optional[date] = None,
        merchant_name: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ExecutiveBriefing:
        if period not in PERIOD_DAYS:
            raise ValueError(f"period must be one of {sorted(PERIOD_DAYS)}, got {period!r}")

        now = now or datetime.now(timezone.utc)
        as_of = as_of or now.date()
        bounds = period_bounds(as_of, PERIOD_DAYS[period])
        trimmed = _trim_to(histories, as_of)

        metrics = period_comparisons(trimmed, bounds, self.weights.stable_band_pct)
        alerts = alerts_from_anomalies(self.detector.detect(merchant_id, trimmed, now=now))
        recommendations = self.recommender.generate(merchant_id, trimmed, now=now)
        score = performance_score(metrics, alerts, self.weights)
        highlights = build_highlights(metrics, recommendations, period, self.weights)

        return ExecutiveBriefing(
            id=f"briefing-{merchant_id}-{period}-{as_of.isoformat()}",
            merchant_id=merchant_id,
            merchant_name=merchant_name,
            period=period,
            period_start=bounds.current_start.isoformat(),
            period_end=bounds.current_end.isoformat(),
            generated_at=now.isoformat(),
            summary=build_summary(merchant_name, period, score, highlights, alerts),
            metrics=metrics,
            performance_score=score,
            highlights=highlights,
            alerts=alerts,
            top_recommendations=recommendations[: self.weights.top_recommendations],
        )
