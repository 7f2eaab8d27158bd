# scripts/setup/seed_directory.py
"""
Load users and vendors into the directory from a CSV or JSON file.

CSV columns (header row required):
  kind,full_name,role,student_id,institute_mail,mobile_number,hostel_room,department,company_name,category
  kind = user | vendor. Vendors use full_name as the vendor name.

JSON: {"users": [{...}, ...], "vendors": [{...}, ...]}

Usage:
  python scripts/setup/seed_directory.py directory.csv
  python scripts/setup/seed_directory.py directory.json --dry-run
"""

import argparse
import csv
import json
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from campusgate.database import SessionLocal, atomic, create_tables
from campusgate.errors import GateAccessError
from campusgate.services.directory_service import register_user, register_vendor

USER_FIELDS = ("student_id", "institute_mail", "mobile_number", "hostel_room", "emergency_contact", "department")


def _blank_to_none(row: dict) -> dict:
    return {k: (v.strip() or None) if isinstance(v, str) else v for k, v in row.items()}


def read_entries(path: str) -> tuple[list[dict], list[dict]]:
    if path.endswith(".json"):
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        return data.get("users", []), data.get("vendors", [])

    users, vendors = [], []
    with open(path, newline="", encoding="utf-8") as f:
        for row in csv.DictReader(f):
            row = _blank_to_none(row)
            kind = (row.pop("kind", None) or "user").lower()
            if kind == "vendor":
                vendors.append({
                    "name": row.get("full_name"),
                    "company_name": row.get("company_name"),
                    "category": row.get("category"),
                })
            else:
                users.append(row)
    return users, vendors


def seed(users: list[dict], vendors: list[dict]) -> tuple[int, int]:
    db = SessionLocal()
    try:
        with atomic(db):
            for u in users:
                profile = {k: u.get(k) for k in USER_FIELDS if u.get(k)}
                register_user(db, u.get("full_name") or "", u.get("role") or "STUDENT", **profile)
            for v in vendors:
                register_vendor(db, v.get("name") or "", company_name=v.get("company_name"),
                                category=v.get("category"), is_active=v.get("is_active", True))
    finally:
        db.close()
    return len(users), len(vendors)


def main():
    parser = argparse.ArgumentParser(description="Seed the campus directory")
    parser.add_argument("path", help="CSV or JSON file")
    parser.add_argument("--dry-run", action="store_true", help="Parse and print counts only")
    args = parser.parse_args()

    users, vendors = read_entries(args.path)
    print(f"📋 {len(users)} user(s), {len(vendors)} vendor(s) in {args.path}")
    if args.dry_run:
        return

    create_tables()
    try:
        n_users, n_vendors = seed(users, vendors)
    except GateAccessError as e:
        print(f"❌ {e.kind}: {e.message}")
        sys.exit(1)
    print(f"✅ Seeded {n_users} user(s) and {n_vendors} vendor(s)")


if __name__ == "__main__":
    main()
