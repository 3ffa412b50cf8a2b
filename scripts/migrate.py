#!/usr/bin/env python3
"""
Apply pending database migrations.

Usage: python scripts/migrate.py [db_path]
"""

import sys
from pathlib import Path

from callwatch.persistence.db import MIGRATIONS_DIR
from callwatch.persistence.migrate import apply_migrations


def main() -> int:
    """
    Main entry point for migration script.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    project_root = Path(__file__).parent.parent
    db_path = Path(sys.argv[1]) if len(sys.argv) > 1 else project_root / "data" / "callwatch.db"

    print(f"Database: {db_path}")
    print(f"Migrations: {MIGRATIONS_DIR}\n")

    try:
        applied = apply_migrations(db_path, MIGRATIONS_DIR)
        print(f"\n✓ Migrations completed successfully ({applied} applied)")
        return 0
    except Exception as e:
        print(f"\n✗ Migration failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
