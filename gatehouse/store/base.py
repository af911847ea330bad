# gatehouse/store/base.py
"""
Document store interface + live query plumbing.

Collections live under "tenant/{tenant_id}/{collection}" where collection is
one of entries | occurrences | drivers. subscribe() delivers the current
result set immediately and again after every write that touches the same
(tenant, collection) pair. Cancelling a Subscription guarantees that no
further callbacks fire for it.
"""

from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from gatehouse.schemas.records import TenantRecord
from gatehouse.services.errors import DocumentStoreError
from gatehouse.utils.logger import get_logger

logger = get_logger(__name__)

ENTRIES = "entries"
OCCURRENCES = "occurrences"
DRIVERS = "drivers"
COLLECTIONS = (ENTRIES, OCCURRENCES, DRIVERS)

# Field each collection is range-filtered on; drivers are never filtered
TIME_FIELDS = {ENTRIES: "entry_time", OCCURRENCES: "created_at"}


def collection_path(tenant_id: str, collection: str) -> str:
    return f"tenant/{tenant_id}/{collection}"


def parse_collection_path(path: str) -> tuple[str, str]:
    parts = path.split("/")
    if len(parts) != 3 or parts[0] != "tenant" or not parts[1]:
        raise ValueError(f"Invalid collection path: {path!r}")
    if parts[2] not in COLLECTIONS:
        raise ValueError(f"Unknown collection {parts[2]!r} in {path!r}")
    return parts[1], parts[2]


@dataclass(frozen=True)
class SubscriptionFilters:
    start: Optional[datetime] = None    # inclusive
    end: Optional[datetime] = None      # exclusive; None = open-ended
    limit: Optional[int] = None         # most recent N by insertion order


class Subscription:
    """Cancellable handle for one live query."""

    def __init__(self, store: "DocumentStore", tenant_id: str, collection: str,
                 filters: SubscriptionFilters, on_next: Callable, on_error: Optional[Callable]):
        self.store = store
        self.tenant_id = tenant_id
        self.collection = collection
        self.filters = filters
        self.on_next = on_next
        self.on_error = on_error
        self.active = True

    @property
    def path(self) -> str:
        return collection_path(self.tenant_id, self.collection)

    def cancel(self):
        if not self.active:
            return
        self.active = False
        self.store._remove_listener(self)

    def __repr__(self):
        return f"<Subscription {self.path} active={self.active}>"


class DocumentStore(ABC):
    def __init__(self):
        self._listeners: dict[tuple[str, str], list[Subscription]] = defaultdict(list)

    # ── Reads ────────────────────────────────────────────────────────────
    @abstractmethod
    def get_tenant(self, tenant_id: str) -> Optional[TenantRecord]:
        """Return the tenant or None when it does not exist."""

    @abstractmethod
    def list_tenants(self, owner_id: Optional[str] = None,
                     parent_id: Optional[str] = None) -> list[TenantRecord]:
        """owner_id matches owner_id or created_by; parent_id matches branches."""

    @abstractmethod
    def query(self, tenant_id: str, collection: str, filters: SubscriptionFilters) -> list:
        """One-shot read of a tenant collection. Raises DocumentStoreError."""

    # ── Live queries ─────────────────────────────────────────────────────
    def subscribe(self, path: str, filters: Optional[SubscriptionFilters] = None,
                  on_next: Callable = None, on_error: Optional[Callable] = None) -> Subscription:
        tenant_id, collection = parse_collection_path(path)
        sub = Subscription(self, tenant_id, collection, filters or SubscriptionFilters(),
                           on_next, on_error)
        self._listeners[(tenant_id, collection)].append(sub)
        logger.debug(f"[LIVE] subscribed {path}")
        self._deliver(sub)
        return sub

    def _remove_listener(self, sub: Subscription):
        listeners = self._listeners.get((sub.tenant_id, sub.collection), [])
        if sub in listeners:
            listeners.remove(sub)
        logger.debug(f"[LIVE] cancelled {sub.path}")

    def _deliver(self, sub: Subscription):
        if not sub.active:
            return
        try:
            records = self.query(sub.tenant_id, sub.collection, sub.filters)
        except DocumentStoreError as e:
            logger.warning(f"[LIVE] {sub.path} query failed: {e}")
            if sub.on_error:
                sub.on_error(e)
            return
        sub.on_next(records)

    def notify(self, tenant_id: str, collection: str):
        """Re-run every live query on (tenant_id, collection)."""
        for sub in list(self._listeners.get((tenant_id, collection), [])):
            self._deliver(sub)

    def listener_count(self, tenant_id: Optional[str] = None) -> int:
        return sum(
            len(subs) for (tid, _), subs in self._listeners.items()
            if tenant_id is None or tid == tenant_id
        )


def in_time_range(value: Optional[datetime], filters: SubscriptionFilters) -> bool:
    if filters.start is None and filters.end is None:
        return True
    if value is None:
        return False
    if filters.start is not None and value < filters.start:
        return False
    if filters.end is not None and value >= filters.end:
        return False
    return True


def build_cached_data(driver=None, vehicle_plate: Optional[str] = None, extra: Optional[dict] = None) -> dict:
    """Denormalised driver/vehicle snapshot stored on an entry at registration."""
    cached = {}
    if driver is not None:
        cached["driver_name"] = driver.name
        cached["driver_document"] = driver.document
        if driver.photo_url:
            cached["driver_photo_url"] = driver.photo_url
    if vehicle_plate:
        cached["vehicle_plate"] = vehicle_plate
    if extra:
        cached.update(extra)
    return cached
