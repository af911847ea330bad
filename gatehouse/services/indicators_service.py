# gatehouse/services/indicators_service.py
"""
Indicators session: tenant scope + live subscriptions + aggregation.

One session backs one consuming view. It resolves the tenant scope, opens the
live record multiplexer for the selected date range and recomputes the
metrics snapshot every time a slot changes (once all slots have loaded),
handing each new snapshot to on_snapshot.

Changing the tenant, the date range or closing the session tears down every
subscription of the previous parameter set before anything new is opened.
"""

from dataclasses import replace
from datetime import date, datetime
from typing import Callable, Iterable, Optional

from gatehouse.config import settings
from gatehouse.schemas.indicators import DurationConfig, MetricsSnapshot
from gatehouse.schemas.profile import UserProfile
from gatehouse.schemas.records import EntryRecord, TenantRecord
from gatehouse.services.aggregation import compute_metrics
from gatehouse.services.date_range import DateRange, resolve_date_range
from gatehouse.services.errors import SubscriptionError
from gatehouse.services.multiplexer import LiveRecordMultiplexer, SlotKey, SlotState
from gatehouse.services.tenant_resolver import resolve_tenants
from gatehouse.store.base import COLLECTIONS, ENTRIES, DocumentStore
from gatehouse.utils.logger import get_logger

logger = get_logger(__name__)


class IndicatorsSession:
    def __init__(self, store: DocumentStore,
                 duration_config: Optional[DurationConfig] = None,
                 on_snapshot: Optional[Callable[[MetricsSnapshot], None]] = None,
                 on_error: Optional[Callable[[SubscriptionError], None]] = None,
                 clock: Callable[[], datetime] = datetime.now,
                 collections: Iterable[str] = COLLECTIONS):
        self.store = store
        self.duration_config = duration_config or DurationConfig()
        self.on_snapshot = on_snapshot
        self.clock = clock
        self.multiplexer = LiveRecordMultiplexer(
            store, on_change=self._on_change, on_error=on_error, collections=collections,
        )
        self.user_id: Optional[str] = None
        self.profile: Optional[UserProfile] = None
        self.tenants: list[TenantRecord] = []
        self.date_range: Optional[DateRange] = None
        self.snapshot: Optional[MetricsSnapshot] = None
        self._range_args: dict = {"selector": settings.DEFAULT_DATE_RANGE}

    # ── Parameters ───────────────────────────────────────────────────────
    def start(self, user_id: str, profile: UserProfile, date_range: str = None,
              tenant_id: Optional[str] = None, custom_start: Optional[date] = None,
              custom_end: Optional[date] = None,
              recent_limit: Optional[int] = None) -> "IndicatorsSession":
        """Resolve scope and open subscriptions. Raises TenantResolutionError."""
        self.user_id, self.profile = user_id, profile
        self._range_args = {
            "selector": date_range or settings.DEFAULT_DATE_RANGE,
            "custom_start": custom_start,
            "custom_end": custom_end,
            "recent_limit": recent_limit,
        }
        # Validate the range before touching any subscription
        resolve_date_range(now=self.clock(), **self._range_args)
        self.tenants = resolve_tenants(self.store, user_id, profile, tenant_id)
        self._reopen()
        return self

    def set_date_range(self, selector: str, custom_start: Optional[date] = None,
                       custom_end: Optional[date] = None):
        resolve_date_range(selector, now=self.clock(), custom_start=custom_start, custom_end=custom_end)
        self._range_args.update(selector=selector, custom_start=custom_start, custom_end=custom_end)
        self._reopen()

    def set_tenant(self, tenant_id: Optional[str]):
        """Switch to one tenant, or back to the full scope with None / "all"."""
        self.tenants = resolve_tenants(self.store, self.user_id, self.profile, tenant_id)
        self._reopen()

    def set_duration_config(self, config: DurationConfig):
        self.duration_config = config
        if self.multiplexer.all_loaded and self.date_range is not None:
            self.refresh()

    def _reopen(self):
        self.snapshot = None
        self.date_range = resolve_date_range(now=self.clock(), **self._range_args)
        generation = self.multiplexer.open([t.id for t in self.tenants], self.date_range)
        # Stores that deliver synchronously (or an empty scope) are loaded already
        if self.snapshot is None and generation == self.multiplexer.generation and self.multiplexer.all_loaded:
            self.refresh()

    def close(self):
        self.multiplexer.close()
        self.snapshot = None
        logger.debug("[METRICS] session closed")

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    # ── Computation ──────────────────────────────────────────────────────
    def _on_change(self, state: SlotState):
        self.refresh(state)

    def compute_metrics(self, state: Optional[SlotState] = None) -> Optional[MetricsSnapshot]:
        """Pull a snapshot over the current slots; None until every slot has loaded."""
        state = state or self.multiplexer.state
        if self.date_range is None or not state.all_loaded:
            return None
        now = self.clock()
        # Open-ended windows grow with the clock; subscription filters stay as opened
        date_range = replace(self.date_range, now=now)
        return compute_metrics(
            state, date_range, self.duration_config, now=now,
            tenant_names={t.id: t.name for t in self.tenants},
        )

    def refresh(self, state: Optional[SlotState] = None) -> Optional[MetricsSnapshot]:
        snapshot = self.compute_metrics(state)
        if snapshot is None:
            return None
        self.snapshot = snapshot
        if self.on_snapshot:
            self.on_snapshot(snapshot)
        return snapshot

    def entries(self, open_only: bool = False) -> list[EntryRecord]:
        """Merged entries list across tenants, newest first."""
        records = self.multiplexer.state.records(ENTRIES)
        if open_only:
            records = [e for e in records if e.on_premises]
        records = sorted(records, key=lambda e: e.entry_time or datetime.min, reverse=True)
        if self.date_range is not None and self.date_range.limit is not None:
            records = records[:self.date_range.limit]
        return records

    # ── Status ───────────────────────────────────────────────────────────
    @property
    def tenant_ids(self) -> list[str]:
        return [t.id for t in self.tenants]

    @property
    def loaded(self) -> bool:
        return self.multiplexer.all_loaded

    @property
    def degraded(self) -> bool:
        return self.multiplexer.degraded

    @property
    def failed_slots(self) -> list[SlotKey]:
        return self.multiplexer.failed_slots
