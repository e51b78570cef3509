"""
Backfill origin links and default branch preferences.

Usage:
    python backfill.py [--dry-run]
"""

import argparse
import json

from core.db import DB, init_db
from core.services.sharing_backfill import run_sharing_backfill


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Backfill cross-branch sharing data")
    parser.add_argument("--dry-run", action="store_true", help="Report counts without writing")
    args = parser.parse_args(argv)

    init_db()
    db = DB.SessionLocal()
    try:
        result = run_sharing_backfill(db, dry_run=args.dry_run)
    finally:
        db.close()
        DB.engine.dispose()
    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
