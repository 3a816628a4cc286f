from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"
BUSY_TIMEOUT_SECONDS = 5.0


class Database:
    def __init__(self, db_path: Path, *, migrations_dir: Path = MIGRATIONS_DIR) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._migrations_dir = migrations_dir

    @property
    def path(self) -> Path:
        return self._db_path

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        connection = sqlite3.connect(self._db_path, timeout=BUSY_TIMEOUT_SECONDS)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON")
        try:
            yield connection
            connection.commit()
        except Exception:
            connection.rollback()
            raise
        finally:
            connection.close()

    def initialize(self) -> list[str]:
        """Apply pending SQL migrations in file-name order; returns the names applied."""

        migration_files = sorted(self._migrations_dir.glob("*.sql"))
        newly_applied: list[str] = []

        with self.connect() as connection:
            self._ensure_migrations_table(connection)
            applied = self._applied(connection)

            for migration in migration_files:
                if migration.name in applied:
                    continue
                sql_script = migration.read_text(encoding="utf-8")
                connection.executescript(sql_script)
                connection.execute(
                    "INSERT INTO schema_migrations(name) VALUES (?)",
                    (migration.name,),
                )
                newly_applied.append(migration.name)

        if newly_applied:
            logger.info("Applied migrations to %s: %s", self._db_path, ", ".join(newly_applied))
        return newly_applied

    def applied_migrations(self) -> set[str]:
        with self.connect() as connection:
            self._ensure_migrations_table(connection)
            return self._applied(connection)

    @staticmethod
    def _applied(connection: sqlite3.Connection) -> set[str]:
        return {row["name"] for row in connection.execute("SELECT name FROM schema_migrations")}

    @staticmethod
    def _ensure_migrations_table(connection: sqlite3.Connection) -> None:
        connection.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                name TEXT PRIMARY KEY,
                applied_at TEXT NOT NULL DEFAULT (datetime('now'))
            );
            """
        )
