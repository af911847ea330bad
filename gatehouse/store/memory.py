# gatehouse/store/memory.py
"""
In-process document store. Backs the test-suite and local demos; keeps
every collection as an insertion-ordered list per tenant.
"""

import uuid
from collections import defaultdict
from datetime import datetime
from typing import Optional

from gatehouse.schemas.records import TenantRecord, EntryRecord, OccurrenceRecord, DriverRecord
from gatehouse.services.errors import DocumentStoreError
from gatehouse.store.base import (
    DocumentStore, SubscriptionFilters, ENTRIES, OCCURRENCES, DRIVERS, TIME_FIELDS,
    in_time_range, build_cached_data,
)


def _new_id() -> str:
    return uuid.uuid4().hex


class InMemoryDocumentStore(DocumentStore):
    def __init__(self):
        super().__init__()
        self._tenants: dict[str, TenantRecord] = {}
        self._records: dict[tuple[str, str], list] = defaultdict(list)

    # ── Reads ────────────────────────────────────────────────────────────
    def get_tenant(self, tenant_id: str) -> Optional[TenantRecord]:
        return self._tenants.get(tenant_id)

    def list_tenants(self, owner_id=None, parent_id=None) -> list[TenantRecord]:
        result = []
        for t in self._tenants.values():
            if owner_id is not None and owner_id not in (t.owner_id, t.created_by):
                continue
            if parent_id is not None and t.parent_id != parent_id:
                continue
            result.append(t)
        return result

    def query(self, tenant_id: str, collection: str, filters: SubscriptionFilters) -> list:
        records = self._records[(tenant_id, collection)]
        field = TIME_FIELDS.get(collection)
        if field:
            records = [r for r in records if in_time_range(getattr(r, field), filters)]
        else:
            records = list(records)
        if filters.limit is not None:
            return list(reversed(records[-filters.limit:])) if filters.limit > 0 else []
        return records

    # ── Writes ───────────────────────────────────────────────────────────
    def add_tenant(self, name: str, type: str = "matriz", parent_id: Optional[str] = None,
                   owner_id: Optional[str] = None, tenant_id: Optional[str] = None) -> TenantRecord:
        tenant = TenantRecord(id=tenant_id or _new_id(), name=name, type=type,
                              parent_id=parent_id, owner_id=owner_id, created_by=owner_id)
        self._tenants[tenant.id] = tenant
        return tenant

    def add_driver(self, tenant_id: str, name: str, document: Optional[str] = None,
                   photo_url: Optional[str] = None) -> DriverRecord:
        driver = DriverRecord(id=_new_id(), tenant_id=tenant_id, name=name,
                              document=document, photo_url=photo_url)
        self._records[(tenant_id, DRIVERS)].append(driver)
        self.notify(tenant_id, DRIVERS)
        return driver

    def add_entry(self, tenant_id: str, entry_time: Optional[datetime] = None,
                  driver_id: Optional[str] = None, vehicle_id: Optional[str] = None,
                  vehicle_plate: Optional[str] = None, cached_data: Optional[dict] = None,
                  exit_time: Optional[datetime] = None, notes: Optional[str] = None) -> EntryRecord:
        driver = self._find(tenant_id, DRIVERS, driver_id) if driver_id else None
        entry = EntryRecord(
            id=_new_id(),
            tenant_id=tenant_id,
            entry_time=entry_time,
            exit_time=exit_time,
            driver_id=driver_id,
            vehicle_id=vehicle_id,
            cached_data=build_cached_data(driver, vehicle_plate, cached_data),
            notes=notes,
        )
        self._records[(tenant_id, ENTRIES)].append(entry)
        self.notify(tenant_id, ENTRIES)
        return entry

    def register_exit(self, tenant_id: str, entry_id: str,
                      exit_time: Optional[datetime] = None) -> EntryRecord:
        records = self._records[(tenant_id, ENTRIES)]
        for i, entry in enumerate(records):
            if entry.id == entry_id:
                # Replace rather than mutate: delivered snapshots stay untouched
                records[i] = entry.model_copy(update={"exit_time": exit_time or datetime.now()})
                self.notify(tenant_id, ENTRIES)
                return records[i]
        raise DocumentStoreError(f"Entry {entry_id} not found for tenant {tenant_id}")

    def add_occurrence(self, tenant_id: str, title: str, created_at: Optional[datetime] = None,
                       description: Optional[str] = None,
                       severity: Optional[str] = None) -> OccurrenceRecord:
        occurrence = OccurrenceRecord(id=_new_id(), tenant_id=tenant_id,
                                      created_at=created_at or datetime.now(), title=title,
                                      description=description, severity=severity)
        self._records[(tenant_id, OCCURRENCES)].append(occurrence)
        self.notify(tenant_id, OCCURRENCES)
        return occurrence

    def _find(self, tenant_id: str, collection: str, record_id: str):
        for record in self._records[(tenant_id, collection)]:
            if record.id == record_id:
                return record
        return None
