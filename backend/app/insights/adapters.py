from __future__ import annotations

from dataclasses import asdict
from typing import Any, Mapping

from backend.app.domain.contracts import AnomalyResult, ExecutiveBriefingResult, RecommendationResult
from backend.app.insights.types import Anomaly, ExecutiveBriefing, Recommendation


def anomaly_to_contract(anomaly: Anomaly | Mapping[str, Any]) -> AnomalyResult:
    data = asdict(anomaly) if isinstance(anomaly, Anomaly) else dict(anomaly)
    return AnomalyResult(**data)


def recommendation_to_contract(rec: Recommendation | Mapping[str, Any]) -> RecommendationResult:
    data = asdict(rec) if isinstance(rec, Recommendation) else dict(rec)
    return RecommendationResult(**data)


def briefing_to_contract(briefing: ExecutiveBriefing | Mapping[str, Any]) -> ExecutiveBriefingResult:
    data = asdict(briefing) if isinstance(briefing, ExecutiveBriefing) else dict(briefing)
    return ExecutiveBriefingResult(**data)
