"""Apply SQL migrations to the configured PostgreSQL database.

Migrations are plain `.sql` files under `volunteer_hub/db/migrations/`, applied in lexicographic
order. Applied migration filenames are tracked in the `schema_migrations` table.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import LiteralString, cast

import psycopg
from dotenv import load_dotenv

from volunteer_hub.config.logging import configure_logging
from volunteer_hub.db.connection import connect_utc, require_database_url

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"

_DROP_ALL = """
DROP FUNCTION IF EXISTS create_volunteer_with_role_and_cohort(JSONB, TEXT, TEXT, INTEGER, TEXT);
DROP TABLE IF EXISTS volunteer_cohorts;
DROP TABLE IF EXISTS volunteer_roles;
DROP TABLE IF EXISTS cohorts;
DROP TABLE IF EXISTS roles;
DROP TABLE IF EXISTS volunteers;
DROP FUNCTION IF EXISTS touch_updated_at();
DROP TABLE IF EXISTS schema_migrations;
"""


def _ensure_schema_migrations(conn: psycopg.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations
        (
            filename   TEXT PRIMARY KEY,
            applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
        """,
        prepare=False,
    )


def list_migration_files() -> list[Path]:
    """Return the migration files in the order they must be applied."""

    if not MIGRATIONS_DIR.exists():
        raise RuntimeError(f"Migrations directory does not exist: {MIGRATIONS_DIR}")

    files = sorted(p for p in MIGRATIONS_DIR.iterdir() if p.is_file() and p.suffix == ".sql")
    if not files:
        raise RuntimeError(f"No .sql migration files found in {MIGRATIONS_DIR}")
    return files


def _get_applied_migrations(conn: psycopg.Connection) -> set[str]:
    rows = conn.execute("SELECT filename FROM schema_migrations", prepare=False).fetchall()
    return {r[0] for r in rows}


def apply_migration(conn: psycopg.Connection, path: Path) -> None:
    """Apply one migration file and record it, atomically."""

    sql_text = path.read_text(encoding="utf-8")
    with conn.transaction():
        conn.execute(cast(LiteralString, sql_text), prepare=False)
        conn.execute(
            "INSERT INTO schema_migrations(filename) VALUES (%s)",
            (path.name,),
            prepare=False,
        )


def migrate(*, recreate: bool) -> list[str]:
    """Run pending migrations against `DATABASE_URL`; return the names of applied files."""

    load_dotenv(".env")
    database_url = require_database_url()

    files = list_migration_files()
    applied_now: list[str] = []

    with connect_utc(database_url) as conn:
        if recreate:
            logger.warning("recreate requested: dropping volunteer tables")
            conn.execute(_DROP_ALL, prepare=False)

        _ensure_schema_migrations(conn)
        applied = _get_applied_migrations(conn)

        for file_path in files:
            if file_path.name in applied:
                continue
            apply_migration(conn, file_path)
            applied_now.append(file_path.name)
            logger.info("applied migration=%s", file_path.name)

    return applied_now


def main() -> None:
    """CLI entry point for applying migrations."""

    parser = argparse.ArgumentParser(description="Apply SQL migrations to Postgres.")
    parser.add_argument(
        "--recreate",
        action="store_true",
        help="Drop existing tables and re-apply all migrations (destructive).",
    )
    args = parser.parse_args()

    configure_logging()
    migrate(recreate=args.recreate)


if __name__ == "__main__":
    main()
