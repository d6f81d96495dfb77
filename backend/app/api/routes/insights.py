from __future__ import annotations

from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from backend.app.db import get_db
from backend.app.domain.contracts import AnomaliesOut, ExecutiveBriefingResult, RecommendationsOut
from backend.app.services import insights_service

router = APIRouter(prefix="/api", tags=["insights"])


@router.get("/anomalies", response_model=AnomaliesOut)
def get_anomalies(
    merchant_id: str = Query(..., min_length=1),
    as_of: Optional[date] = Query(None),
    db: Session = Depends(get_db),
):
    return insights_service.detect_anomalies(db, merchant_id, as_of=as_of)


@router.get("/recommendations", response_model=RecommendationsOut)
def get_recommendations(
    merchant_id: str = Query(..., min_length=1),
    as_of: Optional[date] = Query(None),
    db: Session = Depends(get_db),
):
    return insights_service.generate_recommendations(db, merchant_id, as_of=as_of)


@router.get("/executive-briefing", response_model=ExecutiveBriefingResult)
def get_executive_briefing(
    merchant_id: str = Query(..., min_length=1),
    period: Literal["daily", "weekly"] = Query("daily"),
    as_of: Optional[date] = Query(None),
    db: Session = Depends(get_db),
):
    return insights_service.compose_briefing(db, merchant_id, period=period, as_of=as_of)
