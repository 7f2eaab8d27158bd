# scripts/maintenance/expire_visits.py
"""
Mark pending guest requests whose arrival date has passed as EXPIRED.
Meant for a daily cron job.
Usage: python scripts/maintenance/expire_visits.py [--as-of 2025-01-31]
"""

import argparse
import sys
import os
from datetime import date
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from campusgate.database import SessionLocal
from campusgate.services.gate_orchestrator import expire_visit_requests


def main():
    parser = argparse.ArgumentParser(description="Expire stale pending visit requests")
    parser.add_argument("--as-of", type=date.fromisoformat, default=None,
                        help="Cutoff date (YYYY-MM-DD), default today")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        expired = expire_visit_requests(db, as_of=args.as_of)
    finally:
        db.close()
    print(f"✅ Expired {len(expired)} request(s)")
    for request_id in expired:
        print(f"   ✓ {request_id}")


if __name__ == "__main__":
    main()
