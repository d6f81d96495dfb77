from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

from fastapi import APIRouter
from pydantic import BaseModel

from backend.app.insights.config import load_insights_config

router = APIRouter(prefix="/api/system", tags=["system"])


class InsightsConfigOut(BaseModel):
    anomalies: Dict[str, Any]
    recommendations: Dict[str, Any]
    score: Dict[str, Any]


@router.get("/health")
def get_health():
    return {"status": "ok"}


@router.get("/insights-config", response_model=InsightsConfigOut)
def get_insights_config():
    """Active thresholds after KACHING_* environment overrides."""
    return asdict(load_insights_config())
