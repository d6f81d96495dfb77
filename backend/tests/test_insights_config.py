import pytest

from backend.app.insights.config import (
    AnomalyThresholds,
    InsightsConfig,
    RecommendationThresholds,
    load_insights_config,
)

_ENV_VARS = (
    "KACHING_SPIKE_PCT",
    "KACHING_DROP_PCT",
    "KACHING_TREND_CHANGE_PCT",
    "KACHING_UNUSUAL_PCT",
    "KACHING_BASELINE_DAYS",
    "KACHING_MIN_DATA_POINTS",
    "KACHING_HISTORY_DAYS",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    config = load_insights_config()
    assert config.anomalies.spike_pct == 40.0
    assert config.anomalies.trend_change_pct == 10.0
    assert config.anomalies.baseline_days == 30
    assert config.recommendations.history_days == 60
    assert config.recommendations.max_recommendations == 5


def test_severity_bands_must_ascend():
    with pytest.raises(ValueError):
        InsightsConfig(anomalies=AnomalyThresholds(medium_pct=50.0, high_pct=40.0))


def test_spike_threshold_cannot_undercut_unusual_pattern():
    with pytest.raises(ValueError):
        InsightsConfig(anomalies=AnomalyThresholds(spike_pct=15.0, unusual_pct=20.0))


def test_recommendation_cap_must_be_positive():
    with pytest.raises(ValueError):
        InsightsConfig(recommendations=RecommendationThresholds(max_recommendations=0))


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("KACHING_SPIKE_PCT", "55")
    monkeypatch.setenv("KACHING_BASELINE_DAYS", "21")
    monkeypatch.setenv("KACHING_HISTORY_DAYS", "45")
    monkeypatch.setenv("KACHING_DROP_PCT", "  ")

    config = load_insights_config()

    assert config.anomalies.spike_pct == 55.0
    assert config.anomalies.baseline_days == 21
    assert config.anomalies.drop_pct == 40.0
    assert config.recommendations.history_days == 45


def test_non_numeric_env_value_is_rejected(monkeypatch):
    monkeypatch.setenv("KACHING_TREND_CHANGE_PCT", "ten")
    with pytest.raises(ValueError, match="KACHING_TREND_CHANGE_PCT"):
        load_insights_config()


def test_env_override_is_validated(monkeypatch):
    monkeypatch.setenv("KACHING_UNUSUAL_PCT", "60")
    with pytest.raises(ValueError):
        load_insights_config()
