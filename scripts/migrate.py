#!/usr/bin/env python3
"""Upgrade an existing FocusFlow database to the current schema.

Adds the latitude/longitude/reminder_sent task columns to databases created
before they existed, and creates the user/device tables and query indexes.

Usage:
    python scripts/migrate.py                 # uses DATABASE_PATH
    python scripts/migrate.py --db data/focusflow.db
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Allow running from project root
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from focusflow.config import settings
from focusflow.db import migrate


def main() -> int:
    parser = argparse.ArgumentParser(description="Migrate the FocusFlow database")
    parser.add_argument("--db", type=Path, default=settings.database_path, help="Database file")
    args = parser.parse_args()

    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=logging.INFO,
    )
    try:
        updated = asyncio.run(migrate(args.db))
    except Exception as exc:
        print(f"Migration error: {exc}", file=sys.stderr)
        return 1
    print(f"Updated {updated} task(s) with new fields")
    print("Migration completed successfully")
    return 0


if __name__ == "__main__":
    sys.exit(main())
