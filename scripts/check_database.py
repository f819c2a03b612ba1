#!/usr/bin/env python3
"""
Check that the VoiceForm tables exist in the configured database.

Run from project root:
  python scripts/check_database.py

Requires: DATABASE_URL in environment (.env or export).
If tables are missing, start the API once (it runs create_all + Alembic) or run:
  alembic upgrade head
"""
import os
import sys
from pathlib import Path

# Run from project root; ensure app is importable
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from dotenv import load_dotenv

load_dotenv(project_root / ".env")

from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError

REQUIRED_TABLES = ["subscriptions", "forms", "responses", "api_usage"]


def check_tables(engine) -> bool:
    print("Checking database tables...")
    try:
        existing = set(inspect(engine).get_table_names())
    except SQLAlchemyError as e:
        print(f"❌ Could not connect to database: {e}")
        return False

    ok = True
    with engine.connect() as conn:
        for table in REQUIRED_TABLES:
            if table not in existing:
                print(f"❌ {table} table does not exist")
                ok = False
                continue
            count = conn.execute(text(f"SELECT COUNT(*) FROM {table}")).scalar()
            print(f"✅ {table} table exists ({count} rows)")

    if ok:
        print("\n🎉 All database tables are properly set up!")
    else:
        print("\n📋 Run `alembic upgrade head` (or start the API once) to create the missing tables.")
    return ok


if __name__ == "__main__":
    if not os.getenv("DATABASE_URL"):
        print("❌ DATABASE_URL is not set")
        sys.exit(1)
    from app.db.session import engine
    sys.exit(0 if check_tables(engine) else 1)
