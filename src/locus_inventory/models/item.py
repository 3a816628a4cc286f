from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

ITEM_STATES: tuple[str, ...] = ("In use", "In storage", "Under maintenance", "Retired")


@dataclass(slots=True)
class InventoryItem:
    asset_code: str
    brand: str
    description: str
    created_by: str
    created_at: datetime = field(default_factory=datetime.now)
    calibration_due_date: Optional[datetime] = None
    model: Optional[str] = None
    serial_number: Optional[str] = None
    location: Optional[str] = None
    responsible_sector: Optional[str] = None
    state: Optional[str] = None
    notes: Optional[str] = None
    id: Optional[int] = None

    @property
    def description_lower(self) -> str:
        return self.description.strip().lower()

    @property
    def display_label(self) -> str:
        return f"{self.asset_code} · {self.brand} · {self.description}"
