# gatehouse/schemas/records.py
"""
Read models delivered by the document store to its subscribers.
Timestamps are local wall-clock; timezone-aware values (e.g. ISO strings
with a trailing "Z") are converted to local time and made naive on input.
"""

from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional, Any


def to_local_naive(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


class TenantRecord(BaseModel):
    id: str
    name: str
    type: str = "matriz"              # matriz | filial
    parent_id: Optional[str] = None
    owner_id: Optional[str] = None
    created_by: Optional[str] = None

    class Config:
        from_attributes = True


class EntryRecord(BaseModel):
    id: str
    tenant_id: str
    entry_time: Optional[datetime] = None
    exit_time: Optional[datetime] = None
    driver_id: Optional[str] = None
    vehicle_id: Optional[str] = None
    cached_data: dict[str, Any] = Field(default_factory=dict)
    notes: Optional[str] = None

    class Config:
        from_attributes = True

    @field_validator("entry_time", "exit_time")
    @classmethod
    def local_times(cls, v):
        return to_local_naive(v)

    @field_validator("cached_data", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return v or {}

    @property
    def on_premises(self) -> bool:
        return self.exit_time is None


class OccurrenceRecord(BaseModel):
    id: str
    tenant_id: str
    created_at: datetime
    title: str
    description: Optional[str] = None
    severity: Optional[str] = None

    class Config:
        from_attributes = True

    @field_validator("created_at")
    @classmethod
    def local_time(cls, v):
        return to_local_naive(v)


class DriverRecord(BaseModel):
    id: str
    tenant_id: str
    name: str
    document: Optional[str] = None
    photo_url: Optional[str] = None

    class Config:
        from_attributes = True
