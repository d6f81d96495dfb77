from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import (
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.db import Base


# -------------------------
# Helpers
# -------------------------

def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def uuid_str() -> str:
    return str(uuid.uuid4())


# -------------------------
# Core models
# -------------------------

class Merchant(Base):
    __tablename__ = "merchants"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=uuid_str)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    daily_metrics = relationship(
        "DailyMetric",
        back_populates="merchant",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class DailyMetric(Base):
    """
    One row per merchant per day, aggregated upstream from transactions.
    Money columns are stored in major currency units.
    """
    __tablename__ = "daily_metrics"
    __table_args__ = (
        UniqueConstraint("merchant_id", "date", name="uq_daily_metrics_merchant_date"),
        Index("ix_daily_metrics_merchant_date", "merchant_id", "date"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=uuid_str)
    merchant_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("merchants.id", ondelete="CASCADE"),
        nullable=False,
    )
    day: Mapped[date] = mapped_column("date", Date, nullable=False)

    transactions_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    revenue: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    unique_customers: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    cashback_paid: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    merchant = relationship("Merchant", back_populates="daily_metrics")
