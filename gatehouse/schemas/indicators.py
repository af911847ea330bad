# gatehouse/schemas/indicators.py
"""Duration configuration and the derived metrics snapshot."""

from pydantic import BaseModel, Field, model_validator
from datetime import datetime
from typing import Optional

from gatehouse.config import settings


class DurationConfig(BaseModel):
    """
    Stay-duration bucket boundaries, in hours.
    medium_limit_hours is clamped to be >= short_limit_hours on construction.
    """
    short_limit_hours: float = Field(default=settings.SHORT_LIMIT_HOURS, gt=0)
    medium_limit_hours: float = Field(default=settings.MEDIUM_LIMIT_HOURS, gt=0)
    delayed_threshold_hours: float = Field(default=settings.DELAYED_THRESHOLD_HOURS, gt=0)

    @model_validator(mode="after")
    def clamp_medium(self):
        if self.medium_limit_hours < self.short_limit_hours:
            self.medium_limit_hours = self.short_limit_hours
        return self


class DelayedVehicle(BaseModel):
    entry_id: str
    tenant_id: str
    plate: str
    driver_name: Optional[str] = None
    entry_time: datetime
    hours: int


class DurationStats(BaseModel):
    short_stays: int = 0
    medium_stays: int = 0
    long_stays: int = 0
    delayed_vehicles: list[DelayedVehicle] = []
    total: int = 1     # floored at 1 for ratio displays


class TopDriver(BaseModel):
    name: str
    count: int
    photo_url: Optional[str] = None


class CompanyStat(BaseModel):
    tenant_id: str
    tenant_name: Optional[str] = None
    entries: int = 0
    occurrences: int = 0


class Histogram(BaseModel):
    range_start: datetime
    hourly_entries: list[int]
    hourly_occurrences: list[int]
    daily_entries: list[int]
    daily_occurrences: list[int]
    avg_daily_entries: float = 0.0


class MetricsSnapshot(BaseModel):
    computed_at: datetime
    date_range: str
    tenant_ids: list[str]
    vehicles_inside: int = 0
    entries_today: int = 0
    entries_this_month: int = 0
    total_entries: int = 0
    completed_visits: int = 0
    avg_stay_duration_minutes: float = 0.0
    busiest_hour: int = 0
    total_drivers: int = 0
    total_occurrences: int = 0
    histogram: Histogram
    duration_stats: DurationStats
    top_drivers: list[TopDriver] = []
    company_stats: list[CompanyStat] = []


class IndicatorsOut(MetricsSnapshot):
    """HTTP payload: the snapshot plus per-slot load status."""
    degraded: bool = False
    failed_slots: list[str] = []
