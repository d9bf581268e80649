"""SQL migrations runner for the server database.

Runs the `*.sql` files of a migrations directory in filename order, skipping
rollback scripts. Applied filenames are journaled in a `schema_migration`
table inside the target database itself, so each database (a fresh SQLite
file in tests, PostgreSQL in production) tracks its own state.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Connection, Engine

logger = logging.getLogger(__name__)

_JOURNAL_DDL = (
    "CREATE TABLE IF NOT EXISTS schema_migration ("
    "filename TEXT PRIMARY KEY, applied_at TEXT NOT NULL)"
)


def _forward_scripts(root: Path) -> Iterator[Path]:
    for path in sorted(root.glob("*.sql")):
        if "rollback" in path.name.lower():
            continue
        yield path


def _split_statements(script: str) -> Iterator[str]:
    """Yield the executable statements of `script`, dropping comment lines."""
    for chunk in script.split(";"):
        body = "\n".join(ln for ln in chunk.splitlines() if not ln.strip().startswith("--")).strip()
        # Transaction control belongs to the runner
        if body and body.upper() not in {"BEGIN", "COMMIT", "END"}:
            yield body


def _run_script(conn: Connection, script: str) -> None:
    if conn.dialect.name != "sqlite":
        conn.exec_driver_sql(script)
        return
    # pysqlite executes one statement per call
    for statement in _split_statements(script):
        conn.exec_driver_sql(statement)


def applied_migrations(conn: Connection) -> set[str]:
    conn.exec_driver_sql(_JOURNAL_DDL)
    return {str(row[0]) for row in conn.execute(sql_text("SELECT filename FROM schema_migration"))}


def apply_migrations(engine: Engine, migrations_dir: str | os.PathLike[str] = "migrations") -> list[str]:
    """Apply every script not yet journaled in the target database.

    Returns the filenames applied by this call, in order. All scripts run in
    one transaction together with their journal rows.
    """
    root = Path(migrations_dir)
    if not root.is_dir():
        logger.warning("migrations_dir_missing path=%s", root)
        return []

    applied_now: list[str] = []
    with engine.begin() as conn:
        done = applied_migrations(conn)
        for path in _forward_scripts(root):
            if path.name in done:
                continue
            script = path.read_text(encoding="utf-8")
            if script.strip():
                _run_script(conn, script)
            conn.execute(
                sql_text("INSERT INTO schema_migration (filename, applied_at) VALUES (:name, :ts)"),
                {"name": path.name, "ts": datetime.now(timezone.utc).replace(microsecond=0).isoformat()},
            )
            applied_now.append(path.name)
            logger.info("migration_applied file=%s", path.name)
    return applied_now


__all__ = ["applied_migrations", "apply_migrations"]
