# gatehouse/services/aggregation.py
"""
Indicators aggregation engine.

compute_metrics() is a pure function of (slot state, date range, duration
config, now): it never mutates the records it is given, so re-running it on
the same inputs reproduces the same snapshot and live updates cannot drift.

Per entry:
  - open (no exit_time)        → counts toward vehicles_inside
  - completed, 0 < min < 1440  → included in the average stay
  - live duration              → short / medium / long bucket
  - open and over threshold    → delayed (deduplicated by plate, earliest wins)
  - entry_time                 → hourly + daily histogram buckets
"""

from datetime import datetime, timedelta
from typing import Mapping, Optional

from gatehouse.config import settings
from gatehouse.schemas.indicators import (
    CompanyStat, DelayedVehicle, DurationConfig, DurationStats, Histogram,
    MetricsSnapshot, TopDriver,
)
from gatehouse.schemas.records import DriverRecord, EntryRecord
from gatehouse.services.date_range import DateRange
from gatehouse.services.multiplexer import SlotState
from gatehouse.store.base import DRIVERS, ENTRIES, OCCURRENCES
from gatehouse.utils.logger import get_logger

logger = get_logger(__name__)

MAX_VALID_STAY_MINUTES = 1440


def _minutes(delta: timedelta) -> float:
    return delta.total_seconds() / 60


def _driver_name(entry: EntryRecord, drivers: Mapping[str, DriverRecord]) -> Optional[str]:
    name = entry.cached_data.get("driver_name")
    if not name and entry.driver_id in drivers:
        name = drivers[entry.driver_id].name
    return name or None


def _driver_photo(entry: EntryRecord, drivers: Mapping[str, DriverRecord]) -> Optional[str]:
    photo = entry.cached_data.get("driver_photo_url")
    if not photo and entry.driver_id in drivers:
        photo = drivers[entry.driver_id].photo_url
    return photo or None


def _plate(entry: EntryRecord) -> str:
    return entry.cached_data.get("vehicle_plate") or entry.vehicle_id or ""


def classify_durations(entries: list[EntryRecord], config: DurationConfig, now: datetime,
                       drivers: Mapping[str, DriverRecord] = None) -> DurationStats:
    """Short/medium/long counts by live duration, plus overstayed vehicles."""
    drivers = drivers or {}
    short = medium = long_ = 0
    delayed: dict[str, DelayedVehicle] = {}

    placed = [e for e in entries if e.entry_time is not None]
    for entry in placed:
        hours = ((entry.exit_time or now) - entry.entry_time).total_seconds() / 3600
        if hours < config.short_limit_hours:
            short += 1
        elif hours < config.medium_limit_hours:
            medium += 1
        else:
            long_ += 1

        if entry.on_premises and hours > config.delayed_threshold_hours:
            plate = _plate(entry)
            # Entries without a plate can't be matched to each other
            key = plate or f"entry:{entry.id}"
            current = delayed.get(key)
            if current is None or entry.entry_time < current.entry_time:
                delayed[key] = DelayedVehicle(
                    entry_id=entry.id,
                    tenant_id=entry.tenant_id,
                    plate=plate,
                    driver_name=_driver_name(entry, drivers),
                    entry_time=entry.entry_time,
                    hours=int(hours),
                )

    return DurationStats(
        short_stays=short,
        medium_stays=medium,
        long_stays=long_,
        delayed_vehicles=sorted(delayed.values(), key=lambda d: d.entry_time),
        total=max(len(placed), 1),
    )


def rank_drivers(entries: list[EntryRecord], drivers: Mapping[str, DriverRecord] = None,
                 limit: int = None) -> list[TopDriver]:
    """Drivers by entry count, descending; ties keep first-seen order."""
    drivers = drivers or {}
    counts: dict[str, int] = {}
    photos: dict[str, Optional[str]] = {}
    for entry in entries:
        name = _driver_name(entry, drivers)
        if not name:
            continue
        counts[name] = counts.get(name, 0) + 1
        if photos.get(name) is None:
            photos[name] = _driver_photo(entry, drivers)

    # sorted() is stable and dicts keep insertion order
    ranked = sorted(counts.items(), key=lambda item: -item[1])
    limit = settings.TOP_DRIVERS_LIMIT if limit is None else limit
    return [TopDriver(name=name, count=count, photo_url=photos[name]) for name, count in ranked[:limit]]


def build_histogram(entries, occurrences, date_range: DateRange) -> Histogram:
    hours, days = date_range.hourly_bucket_count, date_range.daily_bucket_count
    hist = Histogram(
        range_start=date_range.bucket_start,
        hourly_entries=[0] * hours,
        hourly_occurrences=[0] * hours,
        daily_entries=[0] * days,
        daily_occurrences=[0] * days,
    )
    for records, field, hourly, daily in (
        (entries, "entry_time", hist.hourly_entries, hist.daily_entries),
        (occurrences, "created_at", hist.hourly_occurrences, hist.daily_occurrences),
    ):
        for record in records:
            t = getattr(record, field)
            h = date_range.hour_index(t)
            if h is not None:
                hourly[h] += 1
            d = date_range.day_index(t)
            if d is not None:
                daily[d] += 1

    # Known approximation: range start is not always at a day boundary
    span_days = -(-hours // 24)
    hist.avg_daily_entries = len(entries) / span_days
    return hist


def compute_metrics(state: SlotState, date_range: DateRange,
                    duration_config: Optional[DurationConfig] = None,
                    now: Optional[datetime] = None,
                    tenant_names: Optional[Mapping[str, str]] = None) -> MetricsSnapshot:
    """Derive the full indicators snapshot from the current slot contents."""
    duration_config = duration_config or DurationConfig()
    now = now or date_range.now
    tenant_names = tenant_names or {}

    entries = state.records(ENTRIES)
    occurrences = state.records(OCCURRENCES)
    driver_records = state.records(DRIVERS)
    drivers = {d.id: d for d in driver_records}

    today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    month_start = today_start.replace(day=1)

    inside = today = month = completed = 0
    total_minutes = 0.0
    for entry in entries:
        if entry.on_premises:
            inside += 1
        elif entry.entry_time is not None:
            minutes = _minutes(entry.exit_time - entry.entry_time)
            if 0 < minutes < MAX_VALID_STAY_MINUTES:
                total_minutes += minutes
                completed += 1
        if entry.entry_time is not None:
            if entry.entry_time >= today_start:
                today += 1
            if entry.entry_time >= month_start:
                month += 1

    histogram = build_histogram(entries, occurrences, date_range)
    hourly = histogram.hourly_entries
    busiest = hourly.index(max(hourly)) if hourly else 0

    company_stats = []
    if len(state.tenant_ids) > 1:
        company_stats = [
            CompanyStat(
                tenant_id=tid,
                tenant_name=tenant_names.get(tid),
                entries=len(state.tenant_records(tid, ENTRIES)),
                occurrences=len(state.tenant_records(tid, OCCURRENCES)),
            )
            for tid in state.tenant_ids
        ]

    snapshot = MetricsSnapshot(
        computed_at=now,
        date_range=date_range.selector,
        tenant_ids=list(state.tenant_ids),
        vehicles_inside=inside,
        entries_today=today,
        entries_this_month=month,
        total_entries=len(entries),
        completed_visits=completed,
        avg_stay_duration_minutes=total_minutes / completed if completed else 0.0,
        busiest_hour=busiest,
        total_drivers=len(driver_records),
        total_occurrences=len(occurrences),
        histogram=histogram,
        duration_stats=classify_durations(entries, duration_config, now, drivers),
        top_drivers=rank_drivers(entries, drivers),
        company_stats=company_stats,
    )
    logger.debug(
        f"[METRICS] tenants={len(state.tenant_ids)} entries={len(entries)} "
        f"inside={inside} occurrences={len(occurrences)}"
    )
    return snapshot
