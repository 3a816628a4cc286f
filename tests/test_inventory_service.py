from datetime import datetime, timedelta

import pytest

from locus_inventory.data import Database
from locus_inventory.models import InventoryItem
from locus_inventory.services import (
    DuplicateAssetCodeError,
    InvalidItemError,
    InventoryService,
    ItemNotFoundError,
)

NOW = datetime(2025, 6, 1, 9, 0, 0)


def _service(tmp_path):
    database = Database(tmp_path / "inventory.db")
    service = InventoryService(database)
    service.initialize()
    return service, database


def _item(code, **overrides):
    values = dict(
        asset_code=code,
        brand="Fluke",
        description="Digital multimeter",
        created_by="tech-01",
        created_at=NOW,
    )
    values.update(overrides)
    return InventoryItem(**values)


def test_create_item_stores_fields(tmp_path):
    service, database = _service(tmp_path)

    item_id = service.create_item(
        _item(
            "LOC-0001",
            description="Digital Multimeter",
            calibration_due_date=datetime(2025, 12, 31),
            serial_number="  SN-77 ",
            notes="   ",
        )
    )

    with database.connect() as connection:
        row = connection.execute(
            "SELECT asset_code, description_lower, serial_number, notes FROM items WHERE id = ?",
            (item_id,),
        ).fetchone()

    assert row["asset_code"] == "LOC-0001"
    assert row["description_lower"] == "digital multimeter"
    assert row["serial_number"] == "SN-77"
    assert row["notes"] is None

    stored = service.get_item(item_id)
    assert stored.id == item_id
    assert stored.calibration_due_date == datetime(2025, 12, 31)
    assert stored.created_at == NOW


def test_asset_codes_are_unique(tmp_path):
    service, _ = _service(tmp_path)
    service.create_item(_item("LOC-0001"))

    with pytest.raises(DuplicateAssetCodeError):
        service.create_item(_item(" LOC-0001 "))


@pytest.mark.parametrize("field", ["asset_code", "brand", "description"])
def test_required_fields(tmp_path, field):
    service, _ = _service(tmp_path)

    with pytest.raises(InvalidItemError):
        service.create_item(_item("LOC-0002", **{field: "  "}))


def test_list_items_search_and_order(tmp_path):
    service, _ = _service(tmp_path)
    service.create_item(_item("LOC-0001", description="Torque wrench", created_at=NOW - timedelta(days=2)))
    service.create_item(_item("LOC-0002", brand="Mitutoyo", description="Caliper", created_at=NOW - timedelta(days=1)))
    service.create_item(_item("LOC-0003", description="Digital caliper", created_at=NOW))

    assert [item.asset_code for item in service.list_items()] == ["LOC-0003", "LOC-0002", "LOC-0001"]
    assert [item.asset_code for item in service.list_items(search="CALIPER")] == ["LOC-0003", "LOC-0002"]
    assert [item.asset_code for item in service.list_items(search="mitu")] == ["LOC-0002"]
    assert [item.asset_code for item in service.list_items(search="loc-0001")] == ["LOC-0001"]


def test_list_items_by_calibration_status(tmp_path):
    service, _ = _service(tmp_path)
    service.create_item(_item("LOC-0001", calibration_due_date=NOW - timedelta(days=1)))
    service.create_item(_item("LOC-0002", calibration_due_date=NOW + timedelta(days=10)))
    service.create_item(_item("LOC-0003"))

    expired = service.list_items(status="expired", now=NOW)
    valid = service.list_items(status="valid", now=NOW)

    assert [item.asset_code for item in expired] == ["LOC-0001"]
    assert [item.asset_code for item in valid] == ["LOC-0002"]
    assert len(service.list_items(status="all", now=NOW)) == 3


def test_recent_items_for_user(tmp_path):
    service, _ = _service(tmp_path)
    for index in range(7):
        service.create_item(_item(f"LOC-{index:04d}", created_at=NOW + timedelta(minutes=index)))
    service.create_item(_item("OTHER-1", created_by="tech-02"))

    recent = service.list_recent_for_user("tech-01")

    assert len(recent) == 5
    assert recent[0].asset_code == "LOC-0006"
    assert all(item.created_by == "tech-01" for item in recent)


def test_update_item(tmp_path):
    service, _ = _service(tmp_path)
    item_id = service.create_item(_item("LOC-0001"))

    updated = service.update_item(
        item_id,
        description="Bench Multimeter",
        location="Lab 2",
        calibration_due_date=datetime(2026, 1, 15),
    )

    assert updated.description == "Bench Multimeter"
    assert updated.location == "Lab 2"
    assert updated.calibration_due_date == datetime(2026, 1, 15)
    assert [item.id for item in service.list_items(search="bench")] == [item_id]

    cleared = service.update_item(item_id, calibration_due_date=None)
    assert cleared.calibration_due_date is None


def test_update_item_validation(tmp_path):
    service, _ = _service(tmp_path)
    item_id = service.create_item(_item("LOC-0001"))

    with pytest.raises(InvalidItemError):
        service.update_item(item_id, brand="")
    with pytest.raises(InvalidItemError):
        service.update_item(item_id, asset_code="LOC-9999")
    with pytest.raises(ItemNotFoundError):
        service.update_item(item_id + 100, brand="Keysight")


def test_delete_item(tmp_path):
    service, _ = _service(tmp_path)
    item_id = service.create_item(_item("LOC-0001"))

    service.delete_item(item_id)

    assert service.find_by_asset_code("LOC-0001") is None
    with pytest.raises(ItemNotFoundError):
        service.get_item(item_id)
    with pytest.raises(ItemNotFoundError):
        service.delete_item(item_id)


def test_calibration_summary(tmp_path):
    service, _ = _service(tmp_path)
    service.create_item(_item("LOC-0001", calibration_due_date=NOW - timedelta(days=3)))
    service.create_item(_item("LOC-0002", calibration_due_date=NOW + timedelta(days=5)))
    service.create_item(_item("LOC-0003", calibration_due_date=NOW + timedelta(days=90)))
    service.create_item(_item("LOC-0004"))

    summary = service.calibration_summary(warning_days=30, now=NOW)

    assert summary == {"total": 4, "not_applicable": 1, "expired": 1, "due_soon": 1, "valid": 2}


def test_empty_summary(tmp_path):
    service, _ = _service(tmp_path)

    assert service.calibration_summary(now=NOW)["total"] == 0


def test_use_database_switches_and_migrates(tmp_path):
    service, _ = _service(tmp_path)
    service.create_item(_item("LOC-OLD"))

    service.use_database(Database(tmp_path / "moved" / "inventory.db"))

    assert service.find_by_asset_code("LOC-OLD") is None
    service.create_item(_item("LOC-NEW"))
    assert [item.asset_code for item in service.list_items()] == ["LOC-NEW"]
