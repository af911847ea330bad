# tests/conftest.py
"""Shared fixtures: in-memory stores that can fail or defer their deliveries."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from gatehouse.services.errors import DocumentStoreError
from gatehouse.store.memory import InMemoryDocumentStore


class FakeStore(InMemoryDocumentStore):
    """
    In-memory store with two test hooks:
      failing:  set of (tenant_id, collection) whose queries raise
      deferred: hold deliveries until flush(), like callbacks still in flight
    """

    def __init__(self, deferred=False):
        super().__init__()
        self.deferred = deferred
        self.failing = set()
        self.pending = []

    def query(self, tenant_id, collection, filters):
        if (tenant_id, collection) in self.failing:
            raise DocumentStoreError("permission denied")
        return super().query(tenant_id, collection, filters)

    def _deliver(self, sub):
        if not self.deferred:
            return super()._deliver(sub)
        if not sub.active:
            return
        try:
            records = self.query(sub.tenant_id, sub.collection, sub.filters)
        except DocumentStoreError as e:
            self.pending.append((sub.on_error, e))
            return
        # Captured now, fired later even if the subscription gets cancelled
        self.pending.append((sub.on_next, records))

    def flush(self):
        pending, self.pending = self.pending, []
        for callback, payload in pending:
            callback(payload)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def deferred_store():
    return FakeStore(deferred=True)
