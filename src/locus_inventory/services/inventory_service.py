from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timedelta
from typing import Any, Literal

from locus_inventory.data import Database
from locus_inventory.models import InventoryItem

logger = logging.getLogger(__name__)

StatusFilter = Literal["all", "expired", "valid"]

EDITABLE_FIELDS: tuple[str, ...] = (
    "brand",
    "description",
    "model",
    "serial_number",
    "location",
    "responsible_sector",
    "state",
    "notes",
    "calibration_due_date",
)


class DuplicateAssetCodeError(RuntimeError):
    """Raised when an asset code is already registered."""


class ItemNotFoundError(LookupError):
    """Raised when an inventory item id does not exist."""


class InvalidItemError(ValueError):
    """Raised when required item fields are missing."""


def _to_db_datetime(value: datetime | None) -> str | None:
    return value.isoformat(timespec="seconds") if value is not None else None


def _from_db_datetime(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _clean_optional(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class InventoryService:
    def __init__(self, database: Database) -> None:
        self._database = database

    def initialize(self) -> None:
        self._database.initialize()

    def use_database(self, database: Database) -> None:
        """Switch to another database file (the app data folder moved)."""

        self._database = database
        self.initialize()

    def create_item(self, item: InventoryItem) -> int:
        asset_code = item.asset_code.strip()
        brand = item.brand.strip()
        description = item.description.strip()
        created_by = item.created_by.strip()
        if not asset_code or not brand or not description or not created_by:
            raise InvalidItemError("Asset code, brand and description are required.")

        with self._database.connect() as connection:
            duplicate = connection.execute(
                "SELECT id FROM items WHERE asset_code = ?",
                (asset_code,),
            ).fetchone()
            if duplicate:
                raise DuplicateAssetCodeError(f"Asset code {asset_code} is already registered.")

            try:
                cursor = connection.execute(
                    """
                    INSERT INTO items (
                        asset_code, brand, description, description_lower, created_by,
                        created_at, calibration_due_date, model, serial_number, location,
                        responsible_sector, state, notes
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        asset_code,
                        brand,
                        description,
                        description.lower(),
                        created_by,
                        _to_db_datetime(item.created_at),
                        _to_db_datetime(item.calibration_due_date),
                        _clean_optional(item.model),
                        _clean_optional(item.serial_number),
                        _clean_optional(item.location),
                        _clean_optional(item.responsible_sector),
                        _clean_optional(item.state),
                        _clean_optional(item.notes),
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise DuplicateAssetCodeError(f"Asset code {asset_code} is already registered.") from exc

            item_id = int(cursor.lastrowid)

        logger.info("Registered item %s (%s) for %s", item_id, asset_code, created_by)
        return item_id

    def get_item(self, item_id: int) -> InventoryItem:
        with self._database.connect() as connection:
            row = connection.execute("SELECT * FROM items WHERE id = ?", (item_id,)).fetchone()
        if row is None:
            raise ItemNotFoundError(f"Item {item_id} does not exist.")
        return self._row_to_item(row)

    def find_by_asset_code(self, asset_code: str) -> InventoryItem | None:
        with self._database.connect() as connection:
            row = connection.execute(
                "SELECT * FROM items WHERE asset_code = ?",
                (asset_code.strip(),),
            ).fetchone()
        return self._row_to_item(row) if row else None

    def list_items(
        self,
        *,
        search: str | None = None,
        status: StatusFilter = "all",
        now: datetime | None = None,
    ) -> list[InventoryItem]:
        clauses: list[str] = []
        params: list[Any] = []

        term = (search or "").strip().lower()
        if term:
            clauses.append(
                "(instr(lower(asset_code), ?) > 0 OR instr(lower(brand), ?) > 0 "
                "OR instr(description_lower, ?) > 0)"
            )
            params.extend([term, term, term])

        reference = _to_db_datetime(now or datetime.now())
        if status == "expired":
            clauses.append("calibration_due_date IS NOT NULL AND calibration_due_date < ?")
            params.append(reference)
        elif status == "valid":
            clauses.append("calibration_due_date IS NOT NULL AND calibration_due_date >= ?")
            params.append(reference)

        query = "SELECT * FROM items"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY created_at DESC, id DESC"

        with self._database.connect() as connection:
            rows = connection.execute(query, params).fetchall()
        return [self._row_to_item(row) for row in rows]

    def list_recent_for_user(self, user_id: str, *, limit: int = 5) -> list[InventoryItem]:
        with self._database.connect() as connection:
            rows = connection.execute(
                """
                SELECT * FROM items
                WHERE created_by = ?
                ORDER BY created_at DESC, id DESC
                LIMIT ?
                """,
                (user_id, limit),
            ).fetchall()
        return [self._row_to_item(row) for row in rows]

    def update_item(self, item_id: int, **changes: Any) -> InventoryItem:
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise InvalidItemError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

        values: dict[str, Any] = {}
        for key, value in changes.items():
            if key in ("brand", "description"):
                text = str(value or "").strip()
                if not text:
                    raise InvalidItemError(f"{key.capitalize()} cannot be empty.")
                values[key] = text
            elif key == "calibration_due_date":
                values[key] = _to_db_datetime(value)
            else:
                values[key] = _clean_optional(value)

        if "description" in values:
            values["description_lower"] = values["description"].lower()

        with self._database.connect() as connection:
            exists = connection.execute("SELECT id FROM items WHERE id = ?", (item_id,)).fetchone()
            if exists is None:
                raise ItemNotFoundError(f"Item {item_id} does not exist.")

            if values:
                values["updated_at"] = _to_db_datetime(datetime.now())
                assignments = ", ".join(f"{column} = ?" for column in values)
                connection.execute(
                    f"UPDATE items SET {assignments} WHERE id = ?",
                    (*values.values(), item_id),
                )

        return self.get_item(item_id)

    def delete_item(self, item_id: int) -> None:
        with self._database.connect() as connection:
            cursor = connection.execute("DELETE FROM items WHERE id = ?", (item_id,))
            if cursor.rowcount == 0:
                raise ItemNotFoundError(f"Item {item_id} does not exist.")
        logger.info("Deleted item %s", item_id)

    def calibration_summary(self, *, warning_days: int = 30, now: datetime | None = None) -> dict[str, int]:
        reference = now or datetime.now()
        soon = reference + timedelta(days=warning_days)

        with self._database.connect() as connection:
            row = connection.execute(
                """
                SELECT
                    COUNT(*) AS total,
                    SUM(CASE WHEN calibration_due_date IS NULL THEN 1 ELSE 0 END) AS not_applicable,
                    SUM(CASE WHEN calibration_due_date < ? THEN 1 ELSE 0 END) AS expired,
                    SUM(CASE WHEN calibration_due_date >= ? AND calibration_due_date <= ? THEN 1 ELSE 0 END)
                        AS due_soon,
                    SUM(CASE WHEN calibration_due_date >= ? THEN 1 ELSE 0 END) AS valid
                FROM items
                """,
                (
                    _to_db_datetime(reference),
                    _to_db_datetime(reference),
                    _to_db_datetime(soon),
                    _to_db_datetime(reference),
                ),
            ).fetchone()

        return {
            "total": int(row["total"] or 0),
            "not_applicable": int(row["not_applicable"] or 0),
            "expired": int(row["expired"] or 0),
            "due_soon": int(row["due_soon"] or 0),
            "valid": int(row["valid"] or 0),
        }

    @staticmethod
    def _row_to_item(row: sqlite3.Row) -> InventoryItem:
        return InventoryItem(
            id=int(row["id"]),
            asset_code=row["asset_code"],
            brand=row["brand"],
            description=row["description"],
            created_by=row["created_by"],
            created_at=_from_db_datetime(row["created_at"]) or datetime.now(),
            calibration_due_date=_from_db_datetime(row["calibration_due_date"]),
            model=row["model"],
            serial_number=row["serial_number"],
            location=row["location"],
            responsible_sector=row["responsible_sector"],
            state=row["state"],
            notes=row["notes"],
        )
