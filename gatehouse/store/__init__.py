# Gatehouse document stores

from gatehouse.store.base import (                       # noqa
    DocumentStore, Subscription, SubscriptionFilters,
    ENTRIES, OCCURRENCES, DRIVERS, COLLECTIONS, collection_path,
)
from gatehouse.store.memory import InMemoryDocumentStore  # noqa
