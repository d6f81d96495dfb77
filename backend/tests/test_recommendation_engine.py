from dataclasses import asdict, replace
from datetime import date, datetime, timedelta, timezone

import pytest

from backend.app.insights.recommendations import (
    PRIORITY_ORDER,
    RecommendationEngine,
    RecommendationSignals,
    rank,
)
from backend.app.insights.types import MetricSample

NOW = datetime(2024, 2, 10, 8, 0, tzinfo=timezone.utc)
START = date(2024, 1, 1)  # Monday


def _series(values, start: date = START):
    return [MetricSample(date=start + timedelta(days=i), value=v) for i, v in enumerate(values)]


def _strip(recs):
    rows = []
    for r in recs:
        row = asdict(r)
        row.pop("id")
        row.pop("created_at")
        rows.append(row)
    return rows


def _signals(**overrides) -> RecommendationSignals:
    base = RecommendationSignals(
        revenue_trend=0.0,
        transactions_trend=0.0,
        customers_trend=0.0,
        cashback_rate_pct=2.0,
        weekday_avg_transactions=100.0,
        weekend_avg_transactions=100.0,
        avg_transaction_value=80.0,
        basket_transactions=100.0,
    )
    return replace(base, **overrides)


def test_growth_momentum_fires_on_rising_revenue_and_transactions():
    histories = {
        "revenue": _series([1000.0] * 14 + [1150.0] * 7),
        "transactions": _series([20.0] * 14 + [21.6] * 7),
    }
    engine = RecommendationEngine()

    signals = engine.compute_signals(histories)
    assert signals.revenue_trend == pytest.approx(0.15)
    assert signals.transactions_trend == pytest.approx(0.08)

    recs = engine.generate("m1", histories, now=NOW)
    growth = [r for r in recs if r.type == "growth"]

    assert len(growth) == 1
    assert growth[0].priority == "medium"
    assert growth[0].title == "Growth Momentum Detected"
    assert growth[0].impact.metric == "revenue"
    assert growth[0].impact.estimated_change == 20.0
    assert growth[0].impact.confidence == 0.65


def test_declining_customers_raise_retention_risk():
    histories = {"customers": _series([100.0] * 30 + [88.0] * 7)}

    recs = RecommendationEngine().generate("m1", histories, now=NOW)
    retention = [r for r in recs if r.type == "retention"]

    assert len(retention) == 1
    assert retention[0].priority == "high"
    assert retention[0].impact.metric == "customers"
    assert retention[0].impact.confidence == 0.8


def test_weekend_gap_fires_when_weekends_lag_weekdays():
    txns = [120.0 if (i % 7) < 5 else 50.0 for i in range(28)]
    histories = {
        "transactions": _series(txns),
        "revenue": _series([t * 80.0 for t in txns]),
    }

    recs = RecommendationEngine().generate("m1", histories, now=NOW)

    weekend = [r for r in recs if r.title == "Weekend Performance Gap"]
    assert len(weekend) == 1
    assert weekend[0].priority == "medium"
    assert weekend[0].type == "optimization"
    assert "58% lower" in weekend[0].description
    assert all(r.title != "Increase Average Basket Size" for r in recs)


def test_declining_transactions_recommend_cashback_increase():
    txns = [100.0] * 14 + [90.0] * 7
    histories = {
        "transactions": _series(txns),
        "revenue": _series([t * 80.0 for t in txns]),
        "cashback": _series([t * 80.0 * 0.02 for t in txns]),
    }

    recs = RecommendationEngine().generate("m1", histories, now=NOW)

    assert recs[0].priority == "high"
    assert recs[0].type == "optimization"
    assert recs[0].impact.metric == "transactions"
    assert recs[0].impact.estimated_change == 12.0
    assert "from 2.0% to 2.5%" in recs[0].description


def test_strong_growth_with_rich_cashback_recommends_reduction():
    txns = [100.0] * 14 + [115.0] * 7
    histories = {
        "transactions": _series(txns),
        "revenue": _series([t * 80.0 for t in txns]),
        "cashback": _series([t * 80.0 * 0.04 for t in txns]),
    }

    recs = RecommendationEngine().generate("m1", histories, now=NOW)
    reduce = [r for r in recs if r.title == "Optimize Cashback Spending"]

    assert len(reduce) == 1
    assert reduce[0].priority == "medium"
    assert reduce[0].impact.metric == "cashback"
    assert reduce[0].impact.estimated_change == -10.0
    assert all(r.title != "Increase Cashback to Boost Transactions" for r in recs)


def test_small_baskets_get_low_priority_growth_recommendation():
    histories = {
        "transactions": _series([100.0] * 14),
        "revenue": _series([3000.0] * 14),
    }

    recs = RecommendationEngine().generate("m1", histories, now=NOW)

    assert [(r.type, r.priority, r.title) for r in recs] == [
        ("growth", "low", "Increase Average Basket Size")
    ]


def test_missing_revenue_does_not_fire_basket_rule():
    histories = {"transactions": _series([100.0] * 21)}
    engine = RecommendationEngine()

    assert engine.compute_signals(histories).avg_transaction_value is None
    assert engine.generate("m1", histories, now=NOW) == []


def test_short_history_does_not_fire_trend_rules():
    histories = {
        "transactions": _series([100.0] * 5 + [40.0] * 5),
        "customers": _series([100.0] * 5 + [40.0] * 5),
    }
    engine = RecommendationEngine()

    signals = engine.compute_signals(histories)
    assert signals.transactions_trend == 0.0
    assert signals.customers_trend == 0.0
    assert all(r.type != "retention" for r in engine.generate("m1", histories, now=NOW))


def test_empty_histories_produce_no_recommendations():
    assert RecommendationEngine().generate("m1", {}, now=NOW) == []
    assert RecommendationEngine().generate("m1", {"revenue": [], "transactions": []}, now=NOW) == []


def test_ranking_is_capped_and_sorted_by_priority():
    engine = RecommendationEngine()
    signals = _signals(
        transactions_trend=0.2,
        revenue_trend=0.1,
        customers_trend=-0.2,
        cashback_rate_pct=4.0,
        weekend_avg_transactions=10.0,
        avg_transaction_value=20.0,
    )

    fired = engine.evaluate("m1", signals, now=NOW)
    assert len(fired) == 5

    ranked = rank(fired + fired, limit=5)
    assert len(ranked) == 5
    priorities = [PRIORITY_ORDER[r.priority] for r in ranked]
    assert priorities == sorted(priorities)

    ranked_all = rank(fired)
    assert [r.title for r in ranked_all] == [
        "Customer Retention Risk Detected",
        "Optimize Cashback Spending",
        "Growth Momentum Detected",
        "Weekend Performance Gap",
        "Increase Average Basket Size",
    ]


def test_generate_never_exceeds_cap_and_is_idempotent():
    txns = [120.0 if (i % 7) < 5 else 40.0 for i in range(60)]
    txns = txns[:46] + [t * 0.7 for t in txns[46:]]
    histories = {
        "transactions": _series(txns),
        "revenue": _series([t * 30.0 for t in txns]),
        "customers": _series([t * 0.5 for t in txns]),
        "cashback": _series([t * 30.0 * 0.05 for t in txns]),
    }
    engine = RecommendationEngine()

    first = engine.generate("m1", histories, now=NOW)
    second = engine.generate("m1", histories, now=NOW)

    assert 0 < len(first) <= 5
    assert _strip(first) == _strip(second)
    priorities = [PRIORITY_ORDER[r.priority] for r in first]
    assert priorities == sorted(priorities)
