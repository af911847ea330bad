# gatehouse/services/multiplexer.py
"""
Live record multiplexer: one subscription per (tenant, collection).

Every slot is written only by its own subscription callback and is replaced
wholesale on each delivery. Each open() starts a new generation; callbacks
carry the generation they were opened under and are dropped once it is no
longer current, so a late delivery from a cancelled subscription can never
write into the slots of a newer parameter set.
"""

from dataclasses import dataclass, field
from functools import partial
from types import MappingProxyType
from typing import Callable, Iterable, Mapping, NamedTuple, Optional

from gatehouse.services.date_range import DateRange
from gatehouse.services.errors import SubscriptionError
from gatehouse.store.base import COLLECTIONS, DocumentStore, Subscription, collection_path
from gatehouse.utils.logger import get_logger

logger = get_logger(__name__)


class SlotKey(NamedTuple):
    tenant_id: str
    collection: str

    def __str__(self):
        return f"{self.tenant_id}/{self.collection}"


@dataclass(frozen=True)
class SlotState:
    """Read-only view of the slots at one point in time."""
    tenant_ids: tuple
    collections: tuple
    slots: Mapping = field(default_factory=dict)
    errors: Mapping = field(default_factory=dict)

    @property
    def all_loaded(self) -> bool:
        return all(
            SlotKey(tid, col) in self.slots
            for tid in self.tenant_ids for col in self.collections
        )

    def records(self, collection: str) -> list:
        """Flatten one collection across tenants, in tenant order."""
        result = []
        for tid in self.tenant_ids:
            result.extend(self.slots.get(SlotKey(tid, collection), ()))
        return result

    def tenant_records(self, tenant_id: str, collection: str) -> tuple:
        return self.slots.get(SlotKey(tenant_id, collection), ())


class LiveRecordMultiplexer:
    def __init__(self, store: DocumentStore,
                 on_change: Optional[Callable[[SlotState], None]] = None,
                 on_error: Optional[Callable[[SubscriptionError], None]] = None,
                 collections: Iterable[str] = COLLECTIONS):
        self.store = store
        self.on_change = on_change
        self.on_error = on_error
        self.collections = tuple(collections)
        self.generation = 0
        self.tenant_ids: tuple = ()
        self.date_range: Optional[DateRange] = None
        self._slots: dict[SlotKey, tuple] = {}
        self._errors: dict[SlotKey, str] = {}
        self._handles: dict[SlotKey, Subscription] = {}

    # ── Lifecycle ────────────────────────────────────────────────────────
    def open(self, tenant_ids: Iterable[str], date_range: DateRange) -> int:
        """Cancel everything from the previous generation and subscribe afresh."""
        self.close()
        self.tenant_ids = tuple(tenant_ids)
        self.date_range = date_range
        generation = self.generation
        logger.info(
            f"[LIVE] gen={generation} opening {len(self.tenant_ids)} tenant(s) × "
            f"{len(self.collections)} collection(s) range={date_range.selector}"
        )
        for tid in self.tenant_ids:
            for col in self.collections:
                if generation != self.generation:
                    # A callback re-parameterised us mid-open
                    return self.generation
                self._subscribe(SlotKey(tid, col), generation)
        return generation

    def close(self):
        """Cancel all subscriptions and drop every slot."""
        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()
        self._slots.clear()
        self._errors.clear()
        self.generation += 1

    def retry(self, tenant_id: str, collection: str):
        """Re-subscribe a failed slot under the current generation."""
        key = SlotKey(tenant_id, collection)
        if key not in self._errors:
            return
        old = self._handles.pop(key, None)
        if old:
            old.cancel()
        logger.info(f"[LIVE] retrying {key}")
        self._subscribe(key, self.generation)

    def _subscribe(self, key: SlotKey, generation: int):
        handle = self.store.subscribe(
            collection_path(key.tenant_id, key.collection),
            self.date_range.filters_for(key.collection),
            on_next=partial(self._on_snapshot, generation, key),
            on_error=partial(self._on_error, generation, key),
        )
        if generation != self.generation:
            # The first delivery re-parameterised us; this handle belongs to a closed generation
            handle.cancel()
            return
        self._handles[key] = handle

    # ── Callbacks ────────────────────────────────────────────────────────
    def _on_snapshot(self, generation: int, key: SlotKey, records):
        if generation != self.generation:
            logger.debug(f"[LIVE] dropped stale snapshot for {key} (gen {generation} != {self.generation})")
            return
        self._slots[key] = tuple(records)
        if self._errors.pop(key, None) is not None:
            logger.info(f"[LIVE] {key} recovered")
        self._changed()

    def _on_error(self, generation: int, key: SlotKey, exc: Exception):
        if generation != self.generation:
            logger.debug(f"[LIVE] dropped stale error for {key}")
            return
        err = SubscriptionError(key.tenant_id, key.collection, exc)
        logger.warning(f"[LIVE] {err}")
        self._errors[key] = str(exc)
        # A failed slot counts as loaded, with no records
        self._slots[key] = ()
        if self.on_error:
            self.on_error(err)
        self._changed()

    def _changed(self):
        if self.on_change and self.all_loaded:
            self.on_change(self.state)

    # ── Views ────────────────────────────────────────────────────────────
    @property
    def state(self) -> SlotState:
        return SlotState(
            tenant_ids=self.tenant_ids,
            collections=self.collections,
            slots=MappingProxyType(dict(self._slots)),
            errors=MappingProxyType(dict(self._errors)),
        )

    @property
    def all_loaded(self) -> bool:
        return all(SlotKey(t, c) in self._slots for t in self.tenant_ids for c in self.collections)

    @property
    def failed_slots(self) -> list[SlotKey]:
        return list(self._errors)

    @property
    def degraded(self) -> bool:
        return bool(self._errors)
