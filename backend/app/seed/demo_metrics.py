from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, List, Optional

from sqlalchemy import delete
from sqlalchemy.orm import Session

from backend.app.models import DailyMetric, Merchant


@dataclass(frozen=True)
class DemoProfile:
    base_transactions: float
    avg_ticket: float
    customers_per_txn: float
    cashback_rate: float      # fraction of revenue
    weekend_factor: float     # weekend volume relative to weekdays
    recent_shift: float       # multiplier applied to the last `shift_days`
    shift_days: int
    noise: float              # relative daily jitter


PROFILES: Dict[str, DemoProfile] = {
    "steady": DemoProfile(400, 85.0, 0.7, 0.025, 0.9, 1.0, 7, 0.04),
    "growing": DemoProfile(400, 85.0, 0.7, 0.035, 0.9, 1.18, 7, 0.04),
    "churning": DemoProfile(400, 85.0, 0.7, 0.025, 0.9, 0.8, 7, 0.04),
    "weekday_heavy": DemoProfile(400, 42.0, 0.7, 0.02, 0.4, 1.0, 7, 0.04),
}


def build_demo_rows(
    merchant_id: str,
    anchor: date,
    days: int = 60,
    profile: str = "steady",
    seed: int = 1337,
) -> List[DailyMetric]:
    """Deterministic for a given seed: same inputs -> same rows."""
    p = PROFILES[profile]
    rng = random.Random(seed)
    rows: List[DailyMetric] = []

    for offset in range(days - 1, -1, -1):
        day = anchor - timedelta(days=offset)
        volume = p.base_transactions
        if day.weekday() >= 5:
            volume *= p.weekend_factor
        if offset < p.shift_days:
            volume *= p.recent_shift
        volume *= 1 + rng.uniform(-p.noise, p.noise)

        txns = max(0, int(round(volume)))
        revenue = round(txns * p.avg_ticket * (1 + rng.uniform(-p.noise, p.noise)), 2)
        rows.append(
            DailyMetric(
                merchant_id=merchant_id,
                day=day,
                transactions_count=txns,
                revenue=revenue,
                unique_customers=int(round(txns * p.customers_per_txn)),
                cashback_paid=round(revenue * p.cashback_rate, 2),
            )
        )
    return rows


def seed_demo_merchant(
    db: Session,
    name: str,
    anchor: date,
    days: int = 60,
    profile: str = "steady",
    seed: int = 1337,
    merchant_id: Optional[str] = None,
) -> Merchant:
    """Create (or reset) a merchant with `days` of generated daily metrics ending on anchor."""
    if profile not in PROFILES:
        raise ValueError(f"unknown profile {profile!r}; choose from {sorted(PROFILES)}")

    merchant = db.get(Merchant, merchant_id) if merchant_id else None
    if merchant is None:
        merchant = Merchant(id=merchant_id, name=name) if merchant_id else Merchant(name=name)
        db.add(merchant)
        db.flush()
    else:
        db.execute(delete(DailyMetric).where(DailyMetric.merchant_id == merchant.id))

    db.add_all(build_demo_rows(merchant.id, anchor, days=days, profile=profile, seed=seed))
    db.commit()
    db.refresh(merchant)
    return merchant
