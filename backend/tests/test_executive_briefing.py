from dataclasses import asdict
from datetime import date, datetime, timedelta, timezone

import pytest

from backend.app.insights.briefing import (
    ExecutiveBriefingComposer,
    alerts_from_anomalies,
    build_highlights,
    performance_score,
)
from backend.app.insights.trends import compare
from backend.app.insights.types import Anomaly, BriefingAlert, BriefingMetrics, MetricSample

NOW = datetime(2024, 2, 10, 8, 0, tzinfo=timezone.utc)
START = date(2024, 1, 1)


def _series(values, start: date = START):
    return [MetricSample(date=start + timedelta(days=i), value=v) for i, v in enumerate(values)]


def _growth_histories():
    txns = [100.0] * 21 + [115.0] * 7
    return {
        "transactions": _series(txns),
        "revenue": _series([t * 80.0 for t in txns]),
        "customers": _series([t * 0.6 for t in txns]),
        "cashback": _series([t * 80.0 * 0.02 for t in txns]),
    }


def _metrics(pct: float, cashback_pct: float = None) -> BriefingMetrics:
    cashback_pct = pct if cashback_pct is None else cashback_pct
    return BriefingMetrics(
        transactions=compare(100.0 + pct, 100.0),
        revenue=compare(100.0 + pct, 100.0),
        customers=compare(100.0 + pct, 100.0),
        cashback=compare(100.0 + cashback_pct, 100.0),
        avg_transaction_value=compare(100.0 + pct, 100.0),
    )


def _anomaly(severity: str, metric: str = "revenue") -> Anomaly:
    return Anomaly(
        id=f"a-{severity}",
        merchant_id="m1",
        metric=metric,
        type="drop",
        severity=severity,
        value=1.0,
        expected_value=2.0,
        deviation=-50.0,
        detected_at=NOW.isoformat(),
        description=f"{severity} drop",
    )


def test_empty_briefing_is_neutral():
    briefing = ExecutiveBriefingComposer().compose(
        "m1", {}, period="daily", as_of=date(2024, 2, 10), now=NOW
    )

    assert briefing.performance_score == 50
    assert briefing.alerts == []
    assert briefing.top_recommendations == []
    assert all(cmp.trend == "stable" for _, cmp in briefing.metrics.items())
    assert len(briefing.highlights) == 3
    assert all(h.sentiment == "neutral" for h in briefing.highlights)
    assert briefing.period_start == "2024-02-10"
    assert briefing.period_end == "2024-02-10"
    assert "held steady" in briefing.summary


def test_weekly_growth_briefing():
    briefing = ExecutiveBriefingComposer().compose(
        "m1",
        _growth_histories(),
        period="weekly",
        as_of=date(2024, 1, 28),
        merchant_name="Kopi Kita",
        now=NOW,
    )

    assert briefing.id == "briefing-m1-weekly-2024-01-28"
    assert briefing.period_start == "2024-01-22"
    assert briefing.period_end == "2024-01-28"
    assert briefing.metrics.transactions.trend == "up"
    assert briefing.metrics.transactions.change_percent == pytest.approx(15.0)
    assert briefing.metrics.avg_transaction_value.trend == "stable"

    # three favourable moves (+4.8 each) and higher cashback spend (-4.8)
    assert briefing.performance_score == 60
    assert briefing.alerts == []

    assert [r.title for r in briefing.top_recommendations] == ["Growth Momentum Detected"]
    assert 3 <= len(briefing.highlights) <= 5
    sentiments = {h.sentiment for h in briefing.highlights}
    assert {"positive", "negative"} <= sentiments
    assert any(h.title == "Growth Momentum Detected" for h in briefing.highlights)
    cashback = next(h for h in briefing.highlights if h.metric == "cashback")
    assert cashback.sentiment == "negative"

    assert briefing.summary.startswith("This week, Kopi Kita showed steady performance")


def test_samples_after_as_of_are_ignored():
    histories = _growth_histories()
    extended = {
        metric: samples + [MetricSample(date=date(2024, 1, 29), value=1_000_000.0)]
        for metric, samples in histories.items()
    }
    composer = ExecutiveBriefingComposer()

    base = composer.compose("m1", histories, period="weekly", as_of=date(2024, 1, 28), now=NOW)
    noisy = composer.compose("m1", extended, period="weekly", as_of=date(2024, 1, 28), now=NOW)

    assert asdict(base.metrics) == asdict(noisy.metrics)
    assert base.performance_score == noisy.performance_score


def test_alerts_map_only_high_and_critical():
    anomalies = [_anomaly("low"), _anomaly("medium"), _anomaly("high"), _anomaly("critical", "customers")]

    alerts = alerts_from_anomalies(anomalies)

    assert alerts == [
        BriefingAlert(severity="warning", metric="revenue", message="high drop"),
        BriefingAlert(severity="critical", metric="customers", message="critical drop"),
    ]


def test_score_is_bounded():
    best = performance_score(_metrics(1000.0, cashback_pct=-100.0), [])
    worst = performance_score(
        _metrics(-100.0, cashback_pct=1000.0),
        [BriefingAlert(severity="critical", metric="revenue", message="x")] * 10,
    )

    assert best == 90
    assert worst == 0
    for pct in (-100.0, -30.0, -5.0, 0.0, 5.0, 30.0, 500.0):
        assert 0 <= performance_score(_metrics(pct), []) <= 100


def test_score_rises_with_improvement_and_falls_with_alerts():
    worse = performance_score(_metrics(5.0, cashback_pct=0.0), [])
    better = performance_score(_metrics(15.0, cashback_pct=0.0), [])
    assert better > worse

    warning = [BriefingAlert(severity="warning", metric="revenue", message="x")]
    critical = [BriefingAlert(severity="critical", metric="revenue", message="x")]
    neutral = performance_score(_metrics(0.0), [])
    assert neutral == 50
    assert performance_score(_metrics(0.0), warning) == 46
    assert performance_score(_metrics(0.0), critical) == 40


def test_highlights_are_capped():
    metrics = BriefingMetrics(
        transactions=compare(130.0, 100.0),
        revenue=compare(80.0, 100.0),
        customers=compare(110.0, 100.0),
        cashback=compare(90.0, 100.0),
        avg_transaction_value=compare(95.0, 100.0),
    )

    highlights = build_highlights(metrics, [], "daily")

    assert len(highlights) == 3
    assert highlights[0].title == "Transactions up 30.0%"
    assert highlights[0].sentiment == "positive"
    assert highlights[1].title == "Revenue down 20.0%"
    assert highlights[1].sentiment == "negative"


def test_compose_is_deterministic():
    composer = ExecutiveBriefingComposer()
    histories = _growth_histories()

    def _snapshot():
        data = asdict(composer.compose("m1", histories, period="weekly", as_of=date(2024, 1, 28), now=NOW))
        for rec in data["top_recommendations"]:
            rec.pop("id")
        return data

    assert _snapshot() == _snapshot()


def test_invalid_period_is_rejected():
    with pytest.raises(ValueError):
        ExecutiveBriefingComposer().compose("m1", {}, period="monthly", now=NOW)
