from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.insights.adapters import anomaly_to_contract, briefing_to_contract, recommendation_to_contract
from backend.app.insights.config import InsightsConfig, load_insights_config
from backend.app.insights.engine import InsightsEngine
from backend.app.insights.types import PERIOD_DAYS
from backend.app.models import Merchant
from backend.app.services.metric_history_service import SqlMetricHistoryProvider

logger = logging.getLogger(__name__)


def _require_merchant(db: Session, merchant_id: str) -> Merchant:
    merchant = db.get(Merchant, merchant_id)
    if not merchant:
        logger.warning("Insights requested for missing merchant_id=%s", merchant_id)
        raise HTTPException(status_code=404, detail="merchant not found")
    return merchant


def _engine(db: Session, as_of: Optional[date], config: Optional[InsightsConfig]) -> InsightsEngine:
    provider = SqlMetricHistoryProvider(db, as_of=as_of)
    return InsightsEngine(provider, config or load_insights_config())


def detect_anomalies(
    db: Session,
    merchant_id: str,
    as_of: Optional[date] = None,
    now: Optional[datetime] = None,
    config: Optional[InsightsConfig] = None,
) -> Dict[str, Any]:
    _require_merchant(db, merchant_id)
    try:
        anomalies = _engine(db, as_of, config).detect_anomalies(merchant_id, now=now)
    except Exception:
        logger.exception("Anomaly detection failed merchant_id=%s", merchant_id)
        raise

    logger.info("Detected %s anomalies merchant_id=%s", len(anomalies), merchant_id)
    return {
        "merchant_id": merchant_id,
        "anomalies": [anomaly_to_contract(a).model_dump() for a in anomalies],
    }


def detect_anomalies_for_merchants(
    db: Session,
    merchant_ids: Optional[Iterable[str]] = None,
    as_of: Optional[date] = None,
    now: Optional[datetime] = None,
    config: Optional[InsightsConfig] = None,
) -> Dict[str, List[Dict[str, Any]]]:
    """Anomalies per merchant; merchants without anomalies are left out."""
    if merchant_ids is None:
        merchant_ids = db.execute(select(Merchant.id).order_by(Merchant.id.asc())).scalars().all()

    now = now or datetime.now(timezone.utc)
    engine = _engine(db, as_of, config)
    results: Dict[str, List[Dict[str, Any]]] = {}
    for merchant_id in merchant_ids:
        anomalies = engine.detect_anomalies(merchant_id, now=now)
        if anomalies:
            results[merchant_id] = [anomaly_to_contract(a).model_dump() for a in anomalies]

    logger.info("Anomaly sweep found %s merchants with anomalies", len(results))
    return results


def generate_recommendations(
    db: Session,
    merchant_id: str,
    as_of: Optional[date] = None,
    now: Optional[datetime] = None,
    config: Optional[InsightsConfig] = None,
) -> Dict[str, Any]:
    _require_merchant(db, merchant_id)
    try:
        recs = _engine(db, as_of, config).generate_recommendations(merchant_id, now=now)
    except Exception:
        logger.exception("Recommendation generation failed merchant_id=%s", merchant_id)
        raise

    logger.info("Generated %s recommendations merchant_id=%s", len(recs), merchant_id)
    return {
        "merchant_id": merchant_id,
        "recommendations": [recommendation_to_contract(r).model_dump() for r in recs],
    }


def compose_briefing(
    db: Session,
    merchant_id: str,
    period: str = "daily",
    as_of: Optional[date] = None,
    now: Optional[datetime] = None,
    config: Optional[InsightsConfig] = None,
) -> Dict[str, Any]:
    if period not in PERIOD_DAYS:
        raise HTTPException(status_code=422, detail="period must be daily or weekly")
    merchant = _require_merchant(db, merchant_id)

    now = now or datetime.now(timezone.utc)
    as_of = as_of or now.date()
    try:
        briefing = _engine(db, as_of, config).compose_briefing(
            merchant_id,
            period=period,
            as_of=as_of,
            merchant_name=merchant.name,
            now=now,
        )
    except Exception:
        logger.exception("Executive briefing failed merchant_id=%s period=%s", merchant_id, period)
        raise

    logger.info(
        "Composed %s briefing merchant_id=%s score=%s alerts=%s",
        period,
        merchant_id,
        briefing.performance_score,
        len(briefing.alerts),
    )
    return briefing_to_contract(briefing).model_dump()
