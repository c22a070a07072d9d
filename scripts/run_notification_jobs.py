#!/usr/bin/env python3
"""
Run one notification job cycle by hand.

Run: python scripts/run_notification_jobs.py [--job outbox|reminders|all]

Uses the same settings as the service (DATABASE_URL, OUTBOX_* ...).
The in-process re-entrancy guard does not apply here; concurrent runs against
the same database are still safe through the outbox claim and the per-day
reminder checks.

Exit codes:
  0 - Cycle(s) ran
  2 - Database not configured or connection failed
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

try:
    from notification_service import database
    from notification_service.scheduler import NotificationJobs
    from notification_service.services.monitoring import setup_logging
except ImportError as e:
    print(f"ERROR: Failed to import required modules: {e}")
    print("Make sure you're running from the project root and dependencies are installed.")
    sys.exit(2)


def main():
    """Script entry point"""
    parser = argparse.ArgumentParser(
        description="Run one outbox and/or reminder cycle"
    )
    parser.add_argument(
        "--job",
        choices=["outbox", "reminders", "all"],
        default="all",
        help="Which job to run (default: all)"
    )
    args = parser.parse_args()

    setup_logging()

    try:
        database.init_db()
        if database.SessionLocal is None:
            print("ERROR: Database not configured. Set DATABASE_URL environment variable.")
            sys.exit(2)
    except Exception as e:
        print(f"ERROR: Failed to connect to database: {e}")
        sys.exit(2)

    # Manual runs ignore NOTIFICATION_JOBS_ENABLED
    jobs = NotificationJobs(session_factory=database.SessionLocal, enabled=True)

    if args.job in ("reminders", "all"):
        triggered = jobs.run_reminder_worker_once()
        print(f"Reminders triggered:        {triggered}")

    if args.job in ("outbox", "all"):
        processed = jobs.run_outbox_worker_once()
        print(f"Outbox messages processed:  {processed}")

    sys.exit(0)


if __name__ == "__main__":
    main()
