"""
Database initialization and seeding script for the reservation engine.

This script:
1. Initializes the database connection
2. Creates all tables
3. Seeds a demo restaurant with opening hours, tables and a combination

Run with ``python -m reservation_engine.db_init`` or ``reservation-db-init``.
"""
import sys
from datetime import date, time

from dotenv import load_dotenv

from .config import get_settings
from .engine import compute_total_capacity
from .models.database import (
    init_db,
    create_tables,
    get_db_session,
    CombinedTable,
    CutOffTimeRecord,
    DiningTable,
    OpeningHours,
    SpecialPeriodRecord,
)
from .models.schemas import TableInfo

DEMO_RESTAURANT_ID = 1

# 0 = Sunday .. 6 = Saturday; Monday closed
DEMO_OPENING_HOURS = {
    0: (True, time(12, 0), time(21, 0)),
    1: (False, time(17, 0), time(23, 0)),
    2: (True, time(17, 0), time(22, 0)),
    3: (True, time(17, 0), time(22, 0)),
    4: (True, time(17, 0), time(22, 0)),
    5: (True, time(17, 0), time(23, 0)),
    6: (True, time(12, 0), time(23, 0)),
}

DEMO_TABLES = [("T1", 2), ("T2", 2), ("T3", 4), ("T4", 4), ("T5", 6)]


def seed_demo_restaurant(restaurant_id: int = DEMO_RESTAURANT_ID) -> None:
    """
    Seed the database with a demo restaurant.
    Does nothing when the restaurant already has opening hours.
    """
    with get_db_session() as session:
        existing = session.query(OpeningHours).filter_by(restaurant_id=restaurant_id).first()
        if existing:
            print(f"✓ Restaurant {restaurant_id} already seeded")
            return

        for day, (is_open, open_time, close_time) in DEMO_OPENING_HOURS.items():
            session.add(OpeningHours(
                restaurant_id=restaurant_id,
                day_of_week=day,
                is_open=is_open,
                open_time=open_time,
                close_time=close_time,
            ))

        # Two hours' notice on Friday and Saturday evenings
        for day in (5, 6):
            session.add(CutOffTimeRecord(restaurant_id=restaurant_id, day_of_week=day, cut_off_hours=2))

        year = date.today().year
        session.add(SpecialPeriodRecord(
            restaurant_id=restaurant_id,
            name="Christmas",
            start_date=date(year, 12, 24),
            end_date=date(year, 12, 26),
            is_open=False,
        ))

        tables = []
        for number, capacity in DEMO_TABLES:
            table = DiningTable(restaurant_id=restaurant_id, table_number=number, capacity=capacity)
            session.add(table)
            tables.append(table)
        session.flush()

        member_ids = [tables[2].id, tables[3].id]
        total = compute_total_capacity(member_ids, [TableInfo.model_validate(t) for t in tables])
        session.add(CombinedTable(
            restaurant_id=restaurant_id,
            name="T3+T4",
            table_ids=member_ids,
            total_capacity=total,
        ))

        print(f"✓ Seeded restaurant {restaurant_id}:")
        print(f"  - {len(DEMO_OPENING_HOURS)} opening hours rules")
        print(f"  - {len(tables)} tables, 1 combination (capacity {total})")


def initialize_database(database_url: str | None = None) -> None:
    """
    Initialize the database: create tables and seed demo data.

    Args:
        database_url: Optional database connection string. If not provided,
                     the DATABASE_URL setting is used.
    """
    try:
        print("Initializing database...")

        engine = init_db(database_url)
        print(f"✓ Connected to database: {engine.url.database}")

        print("\nCreating database tables...")
        create_tables()
        print("✓ Tables created successfully")

        print("\nSeeding initial data...")
        seed_demo_restaurant()

        print("\n" + "="*50)
        print("Database initialization complete!")
        print("="*50)

    except Exception as e:
        print(f"\n✗ Error during database initialization: {e}", file=sys.stderr)
        sys.exit(1)


def main():
    """
    Main entry point for database initialization script.
    """
    load_dotenv()

    print("="*50)
    print("Reservation Engine - Database Setup")
    print("="*50 + "\n")

    initialize_database(get_settings().database_url)


if __name__ == "__main__":
    main()
