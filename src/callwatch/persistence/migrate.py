"""
Database migration runner with SHA-256 checksum verification.

Applies pending migrations in lexical order, verifies checksums to detect
tampering, and tracks applied migrations in schema_migrations table.
"""

import hashlib
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import List, Tuple

import structlog

logger = structlog.get_logger(__name__)


def calculate_checksum(file_path: Path) -> str:
    """
    Calculate SHA-256 checksum of migration file.

    Args:
        file_path: Path to migration file

    Returns:
        Hexadecimal SHA-256 checksum
    """
    sha256 = hashlib.sha256()
    with open(file_path, 'rb') as f:
        sha256.update(f.read())
    return sha256.hexdigest()


def discover_migrations(migrations_dir: Path) -> List[Tuple[str, Path]]:
    """
    Discover migrations in lexical order.

    Returns:
        List of (migration_name, migration_path) tuples in lexical order
    """
    return [(f.name, f) for f in sorted(migrations_dir.glob("*.sql"))]


def apply_migrations(db_path: Path, migrations_dir: Path) -> int:
    """
    Apply pending migrations with checksum verification.

    Args:
        db_path: Path to SQLite database file
        migrations_dir: Directory containing migration files

    Returns:
        Number of migrations applied in this run

    Raises:
        RuntimeError: If migration checksum verification fails (tamper detection)
    """
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(db_path))
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS schema_migrations (
                migration_name TEXT PRIMARY KEY,
                checksum TEXT NOT NULL,
                applied_at INTEGER NOT NULL
            ) STRICT
        """)
        conn.commit()

        applied = {
            row[0]: row[1]
            for row in conn.execute(
                "SELECT migration_name, checksum FROM schema_migrations"
            )
        }

        migrations = discover_migrations(migrations_dir)
        if not migrations:
            logger.warning("no_migrations_found", migrations_dir=str(migrations_dir))
            return 0

        applied_count = 0
        for name, path in migrations:
            checksum = calculate_checksum(path)
            if name in applied:
                if checksum != applied[name]:
                    raise RuntimeError(
                        f"Migration {name} has been tampered with!\n"
                        f"Expected checksum: {applied[name]}\n"
                        f"Got checksum: {checksum}\n"
                        f"This indicates the migration file was modified after being applied."
                    )
                logger.debug("migration_skipped", migration=name)
                continue

            try:
                with conn:  # Transaction
                    conn.executescript(path.read_text())
                    conn.execute(
                        "INSERT INTO schema_migrations (migration_name, checksum, applied_at) VALUES (?, ?, ?)",
                        (name, checksum, int(datetime.now().timestamp()))
                    )
            except sqlite3.Error as e:
                logger.error("migration_failed", migration=name, error=str(e))
                raise
            logger.info("migration_applied", migration=name)
            applied_count += 1

        logger.info(
            "migrations_complete",
            applied=applied_count,
            skipped=len(migrations) - applied_count,
            total=len(migrations),
        )
        return applied_count
    finally:
        conn.close()
