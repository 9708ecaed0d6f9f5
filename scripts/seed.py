# scripts/seed.py
from __future__ import annotations

import os
from datetime import timedelta

from sqlalchemy.orm import Session

import app.db.base  # noqa: F401
from app.core.security import Role, create_access_token
from app.db import get_db
from app.db.base_class import Base
from app.db.session import engine
from app.schemas.availability import BaseSchedule, LunchBreak, ScheduleException
from app.services.availability import AvailabilityManager
from app.utils.tz import today_local

# ---------------- ENV overrides ----------------
SEED_DAYS = int(os.getenv("SEED_DAYS", "30"))
SEED_CREATE_TABLES = os.getenv("SEED_CREATE_TABLES", "true").lower() == "true"

# ---------------- Sample data ----------------
# ids come from the identity provider; fixed here for manual testing
PROFESSIONALS = {
    "pro-lucia-mamani": BaseSchedule(),
    "pro-carla-quispe": BaseSchedule(
        start="10:00",
        end="19:00",
        lunch_break=LunchBreak(start="14:00", end="15:00"),
        granularity_minutes=30,
        working_days=[2, 3, 4, 5, 6],
    ),
    "pro-diego-choque": BaseSchedule(
        start="08:00",
        end="14:00",
        lunch_break=None,
        granularity_minutes=45,
        working_days=[1, 3, 5],
    ),
}


def get_session() -> Session:
    gen = get_db()
    session: Session = next(gen)
    return session


def seed_availability(db: Session) -> None:
    manager = AvailabilityManager(db)
    start = today_local()
    for professional_id, schedule in PROFESSIONALS.items():
        result = manager.generate_for_days(professional_id, start, SEED_DAYS, schedule)
        print(f"[Seed] {professional_id}: {result.generated_count} days generated")

    # sample partial block today
    record = manager.get_by_date("pro-lucia-mamani", start)
    if record is not None and record.is_working_day and not record.exception_list:
        manager.add_exception(
            "pro-lucia-mamani",
            start,
            ScheduleException(start="09:00", end="11:00", reason="Capacitación"),
        )
        print(f"[Seed] block 09:00-11:00 on {start}")


def print_tokens() -> None:
    print("\n[Seed] Dev tokens (valid for 12h):")
    ttl = timedelta(hours=12)
    print("  ADMIN     ", create_access_token("admin-1", Role.ADMIN, ttl))
    print("  CUSTOMER  ", create_access_token("customer-1", Role.CUSTOMER, ttl))
    for professional_id in PROFESSIONALS:
        print(f"  {professional_id}", create_access_token(professional_id, Role.PROFESSIONAL, ttl))


def main() -> None:
    if SEED_CREATE_TABLES:
        # in production run `alembic upgrade head`
        Base.metadata.create_all(bind=engine)

    db = get_session()
    try:
        seed_availability(db)
    finally:
        db.close()
    print_tokens()


if __name__ == "__main__":
    main()
