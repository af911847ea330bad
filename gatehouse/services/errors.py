# gatehouse/services/errors.py
"""
Error taxonomy shared by the store, resolver and indicators session.

Per-slot subscription failures are absorbed and flagged; only errors with no
meaningful partial result (scope resolution, missing profile) reach callers.
"""


class GatehouseError(Exception):
    """Base class for all gatehouse errors."""


class DocumentStoreError(GatehouseError):
    """A read or write against the document store failed."""


class SubscriptionError(GatehouseError):
    """A single (tenant, collection) live query failed."""

    def __init__(self, tenant_id: str, collection: str, cause: Exception):
        super().__init__(f"{collection} subscription for tenant {tenant_id} failed: {cause}")
        self.tenant_id = tenant_id
        self.collection = collection
        self.cause = cause


class TenantResolutionError(GatehouseError):
    """Tenant scope could not be determined (distinct from 'no tenants')."""


class ProfileMissingError(GatehouseError):
    """No authenticated user or no profile for the user."""


class DateRangeError(ValueError):
    """Unknown date-range selector or incomplete custom range."""


class TenantAccessError(GatehouseError):
    """An explicitly requested tenant lies outside the caller's scope."""
