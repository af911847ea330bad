# tests/test_aggregation.py
"""Unit tests for the indicators aggregation engine."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from datetime import datetime, timedelta
from itertools import count
from gatehouse.schemas.indicators import DurationConfig
from gatehouse.schemas.records import DriverRecord, EntryRecord, OccurrenceRecord
from gatehouse.services.aggregation import classify_durations, compute_metrics, rank_drivers
from gatehouse.services.date_range import resolve_date_range
from gatehouse.services.multiplexer import SlotKey, SlotState
from gatehouse.store.base import COLLECTIONS, DRIVERS, ENTRIES, OCCURRENCES

NOW = datetime(2026, 3, 18, 14, 30)
TODAY = resolve_date_range("today", now=NOW)
CONFIG = DurationConfig(short_limit_hours=1, medium_limit_hours=4, delayed_threshold_hours=24)

_ids = count(1)


def entry(tenant="t1", entered=None, left=None, plate=None, driver=None, driver_id=None, photo=None):
    cached = {}
    if plate:
        cached["vehicle_plate"] = plate
    if driver:
        cached["driver_name"] = driver
    if photo:
        cached["driver_photo_url"] = photo
    return EntryRecord(id=f"e{next(_ids)}", tenant_id=tenant, entry_time=entered,
                       exit_time=left, driver_id=driver_id, cached_data=cached)


def occurrence(tenant="t1", at=NOW):
    return OccurrenceRecord(id=f"o{next(_ids)}", tenant_id=tenant, created_at=at, title="Incident")


def stay(minutes, tenant="t1", **kw):
    entered = NOW - timedelta(hours=5)
    return entry(tenant, entered=entered, left=entered + timedelta(minutes=minutes), **kw)


def state_for(entries=(), occurrences=(), drivers=(), tenant_ids=("t1",)):
    slots = {SlotKey(t, c): () for t in tenant_ids for c in COLLECTIONS}
    for collection, records in ((ENTRIES, entries), (OCCURRENCES, occurrences), (DRIVERS, drivers)):
        for r in records:
            key = SlotKey(r.tenant_id, collection)
            slots[key] = slots[key] + (r,)
    return SlotState(tenant_ids=tuple(tenant_ids), collections=COLLECTIONS, slots=slots)


class TestMetrics:
    def test_same_inputs_same_snapshot(self):
        state = state_for(
            entries=[entry(entered=NOW - timedelta(hours=3), plate="ABC-1234", driver="Ana"),
                     stay(45, driver="Ana")],
            occurrences=[occurrence()],
        )
        first = compute_metrics(state, TODAY, CONFIG, now=NOW)
        second = compute_metrics(state, TODAY, CONFIG, now=NOW)
        assert first.model_dump() == second.model_dump()
        # Input records are left alone
        assert state.records(ENTRIES)[0].exit_time is None

    def test_empty_tenant(self):
        snap = compute_metrics(state_for(), TODAY, CONFIG, now=NOW)
        assert snap.vehicles_inside == 0
        assert snap.total_entries == 0
        assert snap.avg_stay_duration_minutes == 0.0
        assert snap.busiest_hour == 0
        assert snap.top_drivers == []
        assert snap.company_stats == []
        assert snap.duration_stats.total == 1
        assert snap.histogram.hourly_entries == [0] * 24

    def test_counts(self):
        state = state_for(
            entries=[
                entry(entered=NOW - timedelta(hours=1)),                    # inside, today
                stay(30),                                                    # today
                entry(entered=datetime(2026, 3, 2, 8), left=datetime(2026, 3, 2, 9)),
                entry(entered=datetime(2026, 2, 27, 8), left=datetime(2026, 2, 27, 9)),
            ],
            drivers=[DriverRecord(id="d1", tenant_id="t1", name="Ana")],
        )
        snap = compute_metrics(state, TODAY, CONFIG, now=NOW)
        assert snap.vehicles_inside == 1
        assert snap.entries_today == 2
        assert snap.entries_this_month == 3
        assert snap.total_entries == 4
        assert snap.total_drivers == 1

    def test_average_ignores_invalid_stays(self):
        state = state_for(entries=[stay(30), stay(90), stay(-5), stay(2000),
                                   entry(entered=NOW - timedelta(hours=2))])
        snap = compute_metrics(state, TODAY, CONFIG, now=NOW)
        assert snap.completed_visits == 2
        assert snap.avg_stay_duration_minutes == pytest.approx(60.0)

    def test_single_open_entry_today(self):
        state = state_for(entries=[entry(entered=datetime(2026, 3, 18, 9, 15))])
        snap = compute_metrics(state, TODAY, CONFIG, now=NOW)
        assert (snap.vehicles_inside, snap.entries_today) == (1, 1)
        assert snap.histogram.hourly_entries[9] == 1
        assert snap.busiest_hour == 9

    def test_entry_without_time(self):
        state = state_for(entries=[entry(), entry(entered=datetime(2026, 3, 18, 8, 0))])
        snap = compute_metrics(state, TODAY, CONFIG, now=NOW)
        assert snap.vehicles_inside == 2
        assert (snap.entries_today, snap.entries_this_month) == (1, 1)
        assert sum(snap.histogram.hourly_entries) == 1
        assert sum(snap.histogram.daily_entries) == 1
        assert snap.duration_stats.total == 1

    def test_inside_is_additive_over_tenants(self):
        records = [entry("t1", entered=NOW - timedelta(hours=1)), stay(20, "t1"),
                   entry("t2", entered=NOW - timedelta(hours=2)), entry("t2", entered=NOW)]
        both = compute_metrics(state_for(entries=records, tenant_ids=("t1", "t2")), TODAY, CONFIG, now=NOW)
        parts = [
            compute_metrics(state_for(entries=[r for r in records if r.tenant_id == t], tenant_ids=(t,)),
                            TODAY, CONFIG, now=NOW).vehicles_inside
            for t in ("t1", "t2")
        ]
        assert both.vehicles_inside == sum(parts) == 3

    def test_two_tenants_flattened(self):
        records = [entry(t, entered=NOW - timedelta(minutes=10 * i)) for t in ("t1", "t2") for i in range(3)]
        snap = compute_metrics(state_for(entries=records, tenant_ids=("t1", "t2")), TODAY, CONFIG, now=NOW)
        assert snap.total_entries == 6
        assert sum(c.entries for c in snap.company_stats) == 6

    def test_busiest_hour_tie_takes_earliest(self):
        state = state_for(entries=[entry(entered=datetime(2026, 3, 18, 11, 0)),
                                   entry(entered=datetime(2026, 3, 18, 7, 0))])
        assert compute_metrics(state, TODAY, CONFIG, now=NOW).busiest_hour == 7

    def test_company_stats_only_for_several_tenants(self):
        state = state_for(
            entries=[entry("t1", entered=NOW), entry("t1", entered=NOW), entry("t2", entered=NOW)],
            occurrences=[occurrence("t2")],
            tenant_ids=("t1", "t2"),
        )
        snap = compute_metrics(state, TODAY, CONFIG, now=NOW, tenant_names={"t1": "HQ", "t2": "Branch"})
        assert [(c.tenant_id, c.tenant_name, c.entries, c.occurrences) for c in snap.company_stats] == [
            ("t1", "HQ", 2, 0),
            ("t2", "Branch", 1, 1),
        ]

        single = compute_metrics(state_for(entries=[entry(entered=NOW)]), TODAY, CONFIG, now=NOW)
        assert single.company_stats == []


class TestHistogram:
    def test_buckets_cover_window_only(self):
        state = state_for(
            entries=[entry(entered=datetime(2026, 3, 18, 9, 15)),
                     entry(entered=datetime(2026, 3, 17, 23, 0))],
            occurrences=[occurrence(at=datetime(2026, 3, 18, 13, 5))],
        )
        hist = compute_metrics(state, TODAY, CONFIG, now=NOW).histogram
        assert len(hist.hourly_entries) == 24
        assert sum(hist.hourly_entries) == 1
        assert hist.hourly_entries[9] == 1
        assert hist.hourly_occurrences[13] == 1
        assert hist.daily_entries == [1]
        assert hist.range_start == datetime(2026, 3, 18)

    def test_average_daily_entries(self):
        week = resolve_date_range("7d", now=NOW)
        entries = [entry(entered=datetime(2026, 3, 11 + i % 7, 10)) for i in range(16)]
        hist = compute_metrics(state_for(entries=entries), week, CONFIG, now=NOW).histogram
        assert len(hist.hourly_entries) == 183
        assert len(hist.daily_entries) == 8
        assert sum(hist.daily_entries) == 16
        assert hist.avg_daily_entries == pytest.approx(2.0)


class TestDurations:
    def test_buckets(self):
        entries = [
            stay(30),
            stay(120),
            stay(300),
            entry(entered=NOW - timedelta(hours=10)),   # still inside
            entry(),                                     # no entry time
        ]
        stats = classify_durations(entries, CONFIG, NOW)
        assert (stats.short_stays, stats.medium_stays, stats.long_stays) == (1, 1, 2)
        assert stats.total == 4

    def test_medium_clamped_to_short(self):
        config = DurationConfig(short_limit_hours=3, medium_limit_hours=2)
        assert config.medium_limit_hours == 3

    def test_threshold_controls_delayed(self):
        entries = [entry(entered=NOW - timedelta(hours=12), plate="XYZ-9876")]
        relaxed = DurationConfig(short_limit_hours=1, medium_limit_hours=4, delayed_threshold_hours=30)
        strict = DurationConfig(short_limit_hours=1, medium_limit_hours=4, delayed_threshold_hours=10)

        assert classify_durations(entries, relaxed, NOW).delayed_vehicles == []
        delayed = classify_durations(entries, strict, NOW).delayed_vehicles
        assert [(d.plate, d.hours) for d in delayed] == [("XYZ-9876", 12)]

    def test_default_threshold(self):
        old = entry(entered=NOW - timedelta(hours=30), plate="OLD-0001")
        recent = entry(entered=NOW - timedelta(hours=10), plate="NEW-0002")
        delayed = classify_durations([old, recent], CONFIG, NOW).delayed_vehicles
        assert [(d.plate, d.hours) for d in delayed] == [("OLD-0001", 30)]

    def test_delayed_deduplicated_by_plate(self):
        first = entry("t1", entered=NOW - timedelta(hours=30), plate="ABC-1234", driver="Ana")
        second = entry("t2", entered=NOW - timedelta(hours=26), plate="ABC-1234")
        stats = classify_durations([second, first], CONFIG, NOW)

        assert len(stats.delayed_vehicles) == 1
        d = stats.delayed_vehicles[0]
        assert (d.entry_id, d.tenant_id, d.hours, d.driver_name) == (first.id, "t1", 30, "Ana")

    def test_delayed_without_plate_kept_apart(self):
        entries = [entry(entered=NOW - timedelta(hours=30)), entry(entered=NOW - timedelta(hours=40))]
        delayed = classify_durations(entries, CONFIG, NOW).delayed_vehicles
        assert [d.hours for d in delayed] == [40, 30]

    def test_completed_long_stay_not_delayed(self):
        entries = [entry(entered=NOW - timedelta(hours=50), left=NOW - timedelta(hours=1))]
        assert classify_durations(entries, CONFIG, NOW).delayed_vehicles == []


class TestTopDrivers:
    def test_ties_keep_first_seen_order(self):
        entries = [entry(driver="Bruno"), entry(driver="Ana"), entry(driver="Ana"),
                   entry(driver="Bruno"), entry(driver="Carla")]
        ranked = rank_drivers(entries)
        assert [(d.name, d.count) for d in ranked] == [("Bruno", 2), ("Ana", 2), ("Carla", 1)]

    def test_limited_to_five(self):
        entries = [entry(driver=f"Driver {i}") for i in range(7)]
        assert len(rank_drivers(entries, limit=5)) == 5

    def test_falls_back_to_driver_record(self):
        drivers = {"d1": DriverRecord(id="d1", tenant_id="t1", name="Live Name", photo_url="http://x/p.jpg")}
        entries = [entry(driver_id="d1"), entry(driver_id="d1"), entry(driver_id="unknown")]
        ranked = rank_drivers(entries, drivers)
        assert [(d.name, d.count, d.photo_url) for d in ranked] == [("Live Name", 2, "http://x/p.jpg")]

    def test_first_non_empty_photo(self):
        entries = [entry(driver="Ana"), entry(driver="Ana", photo="http://x/ana.jpg")]
        assert rank_drivers(entries)[0].photo_url == "http://x/ana.jpg"
