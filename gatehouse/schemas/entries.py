# gatehouse/schemas/entries.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional

from gatehouse.schemas.records import EntryRecord


class EntryOut(BaseModel):
    id: str
    tenant_id: str
    entry_time: Optional[datetime]
    exit_time: Optional[datetime]
    on_premises: bool
    driver_name: Optional[str] = None
    driver_document: Optional[str] = None
    vehicle_plate: Optional[str] = None
    duration_minutes: Optional[int] = None   # set once the vehicle has left
    notes: Optional[str] = None

    @classmethod
    def from_record(cls, entry: EntryRecord, drivers: dict = None) -> "EntryOut":
        cached = entry.cached_data
        driver = (drivers or {}).get(entry.driver_id)
        duration = None
        if entry.entry_time and entry.exit_time:
            duration = int((entry.exit_time - entry.entry_time).total_seconds() // 60)
        return cls(
            id=entry.id,
            tenant_id=entry.tenant_id,
            entry_time=entry.entry_time,
            exit_time=entry.exit_time,
            on_premises=entry.on_premises,
            driver_name=cached.get("driver_name") or (driver.name if driver else None),
            driver_document=cached.get("driver_document") or (driver.document if driver else None),
            vehicle_plate=cached.get("vehicle_plate"),
            duration_minutes=duration,
            notes=entry.notes,
        )
