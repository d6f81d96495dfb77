from __future__ import annotations

import argparse
import json
import logging
from datetime import date, datetime, timezone

from backend.app.db import SessionLocal, init_db
from backend.app.seed.demo_metrics import PROFILES, seed_demo_merchant
from backend.app.services import insights_service


def _parse_date(value: str) -> date:
    return date.fromisoformat(value)


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed a demo merchant and print its executive briefing.")
    parser.add_argument("--name", default="Demo Merchant", help="Merchant display name")
    parser.add_argument("--profile", default="steady", choices=sorted(PROFILES))
    parser.add_argument("--days", type=int, default=60)
    parser.add_argument("--anchor", type=_parse_date, default=None, help="YYYY-MM-DD (default: today UTC)")
    parser.add_argument("--period", default="weekly", choices=["daily", "weekly"])
    parser.add_argument("--seed", type=int, default=1337)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    anchor = args.anchor or datetime.now(timezone.utc).date()

    init_db()
    with SessionLocal() as session:
        merchant = seed_demo_merchant(
            session,
            name=args.name,
            anchor=anchor,
            days=args.days,
            profile=args.profile,
            seed=args.seed,
        )
        briefing = insights_service.compose_briefing(session, merchant.id, period=args.period, as_of=anchor)

    print(json.dumps(briefing, indent=2))


if __name__ == "__main__":
    main()
