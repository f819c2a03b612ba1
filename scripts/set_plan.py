#!/usr/bin/env python3
"""
Move a user to another plan tier (applies that tier's monthly transcription limit).

Run from project root:
  python scripts/set_plan.py --user-id 5cff2718-2d6a-42ba-aab8-ce494aad3074 --plan pro
  python scripts/set_plan.py --user-id 5cff2718-... --show

Requires: DATABASE_URL in environment (.env or export).
"""
import argparse
import sys
from pathlib import Path

# Run from project root; ensure app is importable
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from dotenv import load_dotenv

load_dotenv(project_root / ".env")

from app.core.plan_limits import PLAN_LIMITS


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Change a user's plan tier")
    parser.add_argument("--user-id", required=True, help="Supabase user id (JWT sub)")
    parser.add_argument("--plan", choices=sorted(PLAN_LIMITS), help="New plan tier")
    parser.add_argument("--show", action="store_true", help="Only print current usage")
    args = parser.parse_args(argv)

    if not args.plan and not args.show:
        parser.error("pass --plan or --show")

    from app.db.session import SessionLocal
    from app.services.usage_quota import change_plan, get_usage_summary

    db = SessionLocal()
    try:
        if args.plan:
            subscription = change_plan(args.user_id, args.plan, db)
            print(f"✅ {args.user_id} is now on {subscription.plan_type} (limit {subscription.api_calls_limit})")
        summary = get_usage_summary(args.user_id, db)
        print(
            f"Plan: {summary.tier}  Used: {summary.used}/{summary.limit}  "
            f"Resets: {summary.period_end.isoformat()}"
        )
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
