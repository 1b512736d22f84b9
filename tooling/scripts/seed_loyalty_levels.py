#!/usr/bin/env python3
"""Seed the default loyalty catalog, purchase rule and gift settings.

Example:
    DATABASE_URL=sqlite+aiosqlite:///./korken_loyalty.db \
    python tooling/scripts/seed_loyalty_levels.py --purchase-ratio 1.0
"""

from __future__ import annotations

import argparse
from decimal import Decimal

from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker

from korken_loyalty.core.logging import configure_logging
from korken_loyalty.core.settings import Settings
from korken_loyalty.domain.loyalty.points import PURCHASE_RULE_IDENTIFIER
from korken_loyalty.models import LoyaltyLevel, LoyaltyProgramRule, SiteSetting
from korken_loyalty.services.loyalty.levels import merge_level_rows
from korken_loyalty.services.settings_store import GIFT_VALIDITY_DAYS_KEY


def sync_database_url(async_url: str) -> str:
    if "+asyncpg" in async_url:
        return async_url.replace("+asyncpg", "+psycopg")
    elif "+aiosqlite" in async_url:
        return async_url.replace("+aiosqlite", "")
    return async_url


def seed_levels(session: Session) -> int:
    seeded, created = merge_level_rows(session.execute(select(LoyaltyLevel)).scalars())
    session.add_all(created)
    return len(seeded)


def seed_purchase_rule(session: Session, ratio: Decimal) -> None:
    rule = session.execute(
        select(LoyaltyProgramRule).where(LoyaltyProgramRule.identifier == PURCHASE_RULE_IDENTIFIER)
    ).scalar_one_or_none()
    if rule is None:
        rule = LoyaltyProgramRule(
            identifier=PURCHASE_RULE_IDENTIFIER,
            description="Punkte pro CHF Einkaufswert",
        )
        session.add(rule)
    rule.points = ratio


def seed_gift_validity(session: Session, days: int) -> None:
    record = session.execute(
        select(SiteSetting).where(SiteSetting.key == GIFT_VALIDITY_DAYS_KEY)
    ).scalar_one_or_none()
    if record is None:
        session.add(SiteSetting(key=GIFT_VALIDITY_DAYS_KEY, value=str(days)))
    else:
        record.value = str(days)


def main() -> None:
    settings = Settings()
    configure_logging(service_name="korken-loyalty-seed", environment=settings.environment)

    parser = argparse.ArgumentParser(description="Seed loyalty levels and earning rules")
    parser.add_argument(
        "--purchase-ratio",
        type=Decimal,
        default=Decimal(str(settings.loyalty_purchase_points_ratio)),
        help="Points per CHF of order value",
    )
    parser.add_argument(
        "--gift-validity-days",
        type=int,
        default=settings.loyalty_gift_validity_days,
        help="Days a member has to pick a level gift",
    )
    parser.add_argument("--dry-run", action="store_true", help="Roll back instead of committing")
    args = parser.parse_args()

    if args.purchase_ratio <= 0 or args.gift_validity_days <= 0:
        parser.error("--purchase-ratio and --gift-validity-days must be positive")

    engine = create_engine(sync_database_url(settings.database_url), future=True)
    SessionLocal = sessionmaker(engine, class_=Session)

    with SessionLocal() as session:
        count = seed_levels(session)
        seed_purchase_rule(session, args.purchase_ratio)
        seed_gift_validity(session, args.gift_validity_days)
        if args.dry_run:
            session.rollback()
            print(f"Dry run: would seed {count} loyalty levels")
            return
        session.commit()

    print(f"Seeded {count} loyalty levels (ratio {args.purchase_ratio}, gifts {args.gift_validity_days} days)")


if __name__ == "__main__":
    main()
