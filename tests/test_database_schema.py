from __future__ import annotations

from pathlib import Path

from locus_inventory.data import Database


def test_initialize_creates_tables(tmp_path: Path) -> None:
    db_path = tmp_path / "inventory.db"
    database = Database(db_path)
    database.initialize()

    with database.connect() as connection:
        tables = {
            row[0]
            for row in connection.execute(
                "SELECT name FROM sqlite_master WHERE type='table'"
            )
        }

    assert {"items", "schema_migrations"}.issubset(tables)


def test_migrations_apply_once(tmp_path: Path) -> None:
    database = Database(tmp_path / "nested" / "inventory.db")

    first = database.initialize()
    second = database.initialize()

    assert first == ["001_items.sql"]
    assert second == []
    assert database.applied_migrations() == {"001_items.sql"}
