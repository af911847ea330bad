# tests/test_sql_store.py
"""SQL document store against an in-memory SQLite database."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from datetime import datetime, timedelta
from unittest.mock import MagicMock
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from gatehouse.database import create_tables
from gatehouse.services.errors import DocumentStoreError
from gatehouse.store.base import SubscriptionFilters, collection_path, ENTRIES, OCCURRENCES, DRIVERS
from gatehouse.store.sql import SqlDocumentStore

NOW = datetime(2026, 3, 18, 14, 30)


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_tables(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def sql_store(session_factory):
    return SqlDocumentStore(session_factory=session_factory)


class TestTenants:
    def test_get_and_list(self, sql_store):
        sql_store.add_tenant("HQ", owner_id="owner", tenant_id="hq")
        sql_store.add_tenant("Branch", "filial", parent_id="hq", tenant_id="br")

        assert sql_store.get_tenant("hq").name == "HQ"
        assert sql_store.get_tenant("missing") is None
        assert [t.id for t in sql_store.list_tenants(owner_id="owner")] == ["hq"]
        assert [t.id for t in sql_store.list_tenants(parent_id="hq")] == ["br"]

    def test_generated_id(self, sql_store):
        tenant = sql_store.add_tenant("Anon")
        assert len(tenant.id) == 32
        assert sql_store.get_tenant(tenant.id).type == "matriz"


class TestQueries:
    def test_time_filters(self, sql_store):
        sql_store.add_entry("t1", entry_time=NOW - timedelta(days=2))
        sql_store.add_entry("t1", entry_time=NOW - timedelta(hours=1))
        sql_store.add_entry("t2", entry_time=NOW)

        since_yesterday = SubscriptionFilters(start=NOW - timedelta(days=1))
        records = sql_store.query("t1", ENTRIES, since_yesterday)
        assert [r.entry_time for r in records] == [NOW - timedelta(hours=1)]

        bounded = SubscriptionFilters(start=NOW - timedelta(days=3), end=NOW - timedelta(hours=1))
        assert len(sql_store.query("t1", ENTRIES, bounded)) == 1

    def test_limit_returns_newest_first(self, sql_store):
        for h in (5, 1, 3):
            sql_store.add_entry("t1", entry_time=NOW - timedelta(hours=h))
        records = sql_store.query("t1", ENTRIES, SubscriptionFilters(limit=2))
        assert [r.entry_time for r in records] == [NOW - timedelta(hours=1), NOW - timedelta(hours=3)]

    def test_drivers_ignore_time_filters(self, sql_store):
        sql_store.add_driver("t1", "Ana")
        records = sql_store.query("t1", DRIVERS, SubscriptionFilters(start=NOW + timedelta(days=1)))
        assert [d.name for d in records] == ["Ana"]

    def test_cached_driver_fields(self, sql_store):
        driver = sql_store.add_driver("t1", "Ana", document="123", photo_url="http://x/ana.jpg")
        entry = sql_store.add_entry("t1", entry_time=NOW, driver_id=driver.id, vehicle_plate="ABC-1234")
        assert entry.cached_data == {
            "driver_name": "Ana",
            "driver_document": "123",
            "driver_photo_url": "http://x/ana.jpg",
            "vehicle_plate": "ABC-1234",
        }

    def test_occurrences(self, sql_store):
        sql_store.add_occurrence("t1", "Barrier stuck", created_at=NOW, severity="high")
        records = sql_store.query("t1", OCCURRENCES, SubscriptionFilters())
        assert [(o.title, o.severity) for o in records] == [("Barrier stuck", "high")]


class TestLiveQueries:
    def test_exit_redelivers(self, sql_store):
        entry = sql_store.add_entry("t1", entry_time=NOW - timedelta(hours=2))
        on_next = MagicMock()
        sub = sql_store.subscribe(collection_path("t1", ENTRIES), SubscriptionFilters(), on_next=on_next)
        assert on_next.call_args[0][0][0].on_premises

        sql_store.register_exit("t1", entry.id, exit_time=NOW)

        assert on_next.call_count == 2
        assert on_next.call_args[0][0][0].exit_time == NOW
        sub.cancel()
        sql_store.add_entry("t1", entry_time=NOW)
        assert on_next.call_count == 2

    def test_exit_for_unknown_entry(self, sql_store):
        with pytest.raises(DocumentStoreError):
            sql_store.register_exit("t1", "nope")

    def test_backend_failure_goes_to_on_error(self):
        def broken_session():
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))

        store = SqlDocumentStore(session_factory=broken_session)
        on_next, on_error = MagicMock(), MagicMock()
        store.subscribe(collection_path("t1", ENTRIES), on_next=on_next, on_error=on_error)

        on_next.assert_not_called()
        assert isinstance(on_error.call_args[0][0], DocumentStoreError)
        with pytest.raises(DocumentStoreError):
            store.get_tenant("t1")
