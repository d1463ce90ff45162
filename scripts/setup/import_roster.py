# scripts/setup/import_roster.py
"""
Import the student roster from the daily roster sheet export (CSV).
Usage:
  python scripts/setup/import_roster.py --file roster.csv
  python scripts/setup/import_roster.py --url https://.../export?format=csv
  python scripts/setup/import_roster.py            # uses ROSTER_CSV_URL
"""

import argparse
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

import requests
from app.database import SessionLocal, create_tables
from app.services.roster_service import fetch_roster_csv, import_roster, parse_roster_csv


def main():
    parser = argparse.ArgumentParser(description="Import student roster CSV")
    parser.add_argument("--file", help="Local CSV export of the roster sheet")
    parser.add_argument("--url", help="URL of the CSV export (default: ROSTER_CSV_URL)")
    parser.add_argument("--header-rows", type=int, default=None)
    args = parser.parse_args()

    if args.file:
        with open(args.file, encoding="utf-8") as f:
            text = f.read()
    else:
        try:
            text = fetch_roster_csv(args.url)
        except (ValueError, requests.exceptions.RequestException) as e:
            print(f"❌ Could not get roster: {e}")
            sys.exit(1)

    entries = parse_roster_csv(text, header_rows=args.header_rows)
    if not entries:
        print("❌ No students found, check the header row count and column layout")
        sys.exit(1)

    create_tables()
    db = SessionLocal()
    try:
        counts = import_roster(db, entries)
    finally:
        db.close()
    print(f"✅ Roster imported: {counts}")


if __name__ == "__main__":
    main()
