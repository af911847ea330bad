# gatehouse/store/sql.py
"""
SQLAlchemy-backed document store.
Each read opens a short-lived session; every write commits and then re-runs
the live queries subscribed to the affected (tenant, collection).
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from gatehouse.database import SessionLocal
from gatehouse.models.tenant import Tenant
from gatehouse.models.driver import Driver
from gatehouse.models.entry import Entry
from gatehouse.models.occurrence import Occurrence
from gatehouse.schemas.records import TenantRecord, EntryRecord, OccurrenceRecord, DriverRecord
from gatehouse.services.errors import DocumentStoreError
from gatehouse.store.base import (
    DocumentStore, SubscriptionFilters, ENTRIES, OCCURRENCES, DRIVERS, build_cached_data,
)
from gatehouse.utils.logger import get_logger

logger = get_logger(__name__)

_MODELS = {
    ENTRIES: (Entry, EntryRecord, Entry.entry_time),
    OCCURRENCES: (Occurrence, OccurrenceRecord, Occurrence.created_at),
    DRIVERS: (Driver, DriverRecord, None),
}


class SqlDocumentStore(DocumentStore):
    def __init__(self, session_factory=SessionLocal):
        super().__init__()
        self._session_factory = session_factory

    # ── Reads ────────────────────────────────────────────────────────────
    def get_tenant(self, tenant_id: str) -> Optional[TenantRecord]:
        try:
            with self._session_factory() as db:
                tenant = db.query(Tenant).filter(Tenant.id == tenant_id).first()
                return TenantRecord.model_validate(tenant) if tenant else None
        except SQLAlchemyError as e:
            raise DocumentStoreError(f"Cannot read tenant {tenant_id}: {e}") from e

    def list_tenants(self, owner_id=None, parent_id=None) -> list[TenantRecord]:
        try:
            with self._session_factory() as db:
                q = db.query(Tenant)
                if owner_id is not None:
                    q = q.filter(or_(Tenant.owner_id == owner_id, Tenant.created_by == owner_id))
                if parent_id is not None:
                    q = q.filter(Tenant.parent_id == parent_id)
                return [TenantRecord.model_validate(t) for t in q.order_by(Tenant.created_at, Tenant.id).all()]
        except SQLAlchemyError as e:
            raise DocumentStoreError(f"Cannot list tenants: {e}") from e

    def query(self, tenant_id: str, collection: str, filters: SubscriptionFilters) -> list:
        model, schema, time_column = _MODELS[collection]
        try:
            with self._session_factory() as db:
                q = db.query(model).filter(model.tenant_id == tenant_id)
                if time_column is not None:
                    if filters.start is not None:
                        q = q.filter(time_column >= filters.start)
                    if filters.end is not None:
                        q = q.filter(time_column < filters.end)
                if filters.limit is not None:
                    order = time_column.desc() if time_column is not None else model.id.desc()
                    q = q.order_by(order).limit(filters.limit)
                elif time_column is not None:
                    q = q.order_by(time_column)
                return [schema.model_validate(row) for row in q.all()]
        except SQLAlchemyError as e:
            raise DocumentStoreError(f"Cannot read {collection} for tenant {tenant_id}: {e}") from e

    # ── Writes ───────────────────────────────────────────────────────────
    def add_tenant(self, name: str, type: str = "matriz", parent_id: Optional[str] = None,
                   owner_id: Optional[str] = None, tenant_id: Optional[str] = None) -> TenantRecord:
        row = Tenant(name=name, type=type, parent_id=parent_id,
                     owner_id=owner_id, created_by=owner_id, created_at=datetime.now())
        if tenant_id:
            row.id = tenant_id
        return TenantRecord.model_validate(self._commit(row))

    def add_driver(self, tenant_id: str, name: str, document: Optional[str] = None,
                   photo_url: Optional[str] = None) -> DriverRecord:
        row = Driver(tenant_id=tenant_id, name=name, document=document,
                     photo_url=photo_url, created_at=datetime.now())
        driver = DriverRecord.model_validate(self._commit(row))
        self.notify(tenant_id, DRIVERS)
        return driver

    def add_entry(self, tenant_id: str, entry_time: Optional[datetime] = None,
                  driver_id: Optional[str] = None, vehicle_id: Optional[str] = None,
                  vehicle_plate: Optional[str] = None, cached_data: Optional[dict] = None,
                  exit_time: Optional[datetime] = None, notes: Optional[str] = None) -> EntryRecord:
        driver = None
        if driver_id:
            try:
                with self._session_factory() as db:
                    driver = db.query(Driver).filter(Driver.id == driver_id).first()
                    driver = DriverRecord.model_validate(driver) if driver else None
            except SQLAlchemyError as e:
                raise DocumentStoreError(f"Cannot read driver {driver_id}: {e}") from e

        row = Entry(
            tenant_id=tenant_id,
            entry_time=entry_time,
            exit_time=exit_time,
            driver_id=driver_id,
            vehicle_id=vehicle_id,
            cached_data=build_cached_data(driver, vehicle_plate, cached_data),
            notes=notes,
        )
        entry = EntryRecord.model_validate(self._commit(row))
        logger.info(f"[ENTRY] tenant={tenant_id} plate={entry.cached_data.get('vehicle_plate')}")
        self.notify(tenant_id, ENTRIES)
        return entry

    def register_exit(self, tenant_id: str, entry_id: str,
                      exit_time: Optional[datetime] = None) -> EntryRecord:
        try:
            with self._session_factory() as db:
                row = db.query(Entry).filter(Entry.id == entry_id, Entry.tenant_id == tenant_id).first()
                if not row:
                    raise DocumentStoreError(f"Entry {entry_id} not found for tenant {tenant_id}")
                row.exit_time = exit_time or datetime.now()
                db.commit()
                db.refresh(row)
                entry = EntryRecord.model_validate(row)
        except SQLAlchemyError as e:
            raise DocumentStoreError(f"Cannot register exit for {entry_id}: {e}") from e
        logger.info(f"[EXIT] tenant={tenant_id} entry={entry_id}")
        self.notify(tenant_id, ENTRIES)
        return entry

    def add_occurrence(self, tenant_id: str, title: str, created_at: Optional[datetime] = None,
                       description: Optional[str] = None,
                       severity: Optional[str] = None) -> OccurrenceRecord:
        row = Occurrence(tenant_id=tenant_id, title=title, description=description,
                         severity=severity, created_at=created_at or datetime.now())
        occurrence = OccurrenceRecord.model_validate(self._commit(row))
        logger.info(f"[OCCURRENCE] tenant={tenant_id} title={title}")
        self.notify(tenant_id, OCCURRENCES)
        return occurrence

    def _commit(self, row):
        try:
            with self._session_factory() as db:
                db.add(row)
                db.commit()
                db.refresh(row)
                db.expunge(row)
                return row
        except SQLAlchemyError as e:
            raise DocumentStoreError(f"Cannot write {row!r}: {e}") from e
