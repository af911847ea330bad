# gatehouse/services/tenant_resolver.py
"""
Works out which tenants an indicators view aggregates over.

Order of precedence:
  1. explicit tenant id (anything but "all")
  2. the profile's allowed_tenants allow-list (existing ids only, no expansion)
  3. admins: every tenant they own or created
  4. everyone else: their own tenant + its direct branches (one level)
  5. last resort: the profile's tenant_id on its own

The parent/child relation is only followed one level down, so cyclic or
dangling parent_id values can't cause runaway lookups.
"""

from typing import Optional

from gatehouse.schemas.profile import UserProfile
from gatehouse.schemas.records import TenantRecord
from gatehouse.services.errors import DocumentStoreError, TenantAccessError, TenantResolutionError
from gatehouse.store.base import DocumentStore
from gatehouse.utils.logger import get_logger

logger = get_logger(__name__)

ALL_TENANTS = "all"


def _dedupe(tenants: list[TenantRecord]) -> list[TenantRecord]:
    seen, result = set(), []
    for t in tenants:
        if t.id not in seen:
            seen.add(t.id)
            result.append(t)
    return result


def resolve_tenants(store: DocumentStore, user_id: str, profile: UserProfile,
                    explicit_tenant_id: Optional[str] = None) -> list[TenantRecord]:
    """
    Resolve the ordered, de-duplicated tenant list for a user.
    Raises TenantResolutionError when the store cannot be read; an empty list
    means the user genuinely has no tenants.
    """
    try:
        if explicit_tenant_id and explicit_tenant_id != ALL_TENANTS:
            tenant = store.get_tenant(explicit_tenant_id)
            # Unknown ids are still honoured; they simply load no data
            return [tenant or TenantRecord(id=explicit_tenant_id, name=explicit_tenant_id)]

        if profile.allowed_tenants:
            tenants = [t for t in (store.get_tenant(tid) for tid in profile.allowed_tenants) if t]
        elif profile.is_admin:
            tenants = store.list_tenants(owner_id=user_id)
        else:
            own_id = profile.tenant_id or user_id
            own = store.get_tenant(own_id)
            tenants = ([own] if own else []) + store.list_tenants(parent_id=own_id)

        if not tenants and profile.tenant_id:
            fallback = store.get_tenant(profile.tenant_id)
            if fallback:
                tenants = [fallback]
    except DocumentStoreError as e:
        logger.error(f"[SCOPE] Cannot resolve tenants for user {user_id}: {e}")
        raise TenantResolutionError(f"Cannot determine tenant scope for user {user_id}") from e

    tenants = _dedupe(tenants)
    logger.info(f"[SCOPE] user={user_id} role={profile.role.value} tenants={[t.id for t in tenants]}")
    return tenants


def resolve_tenant_ids(store: DocumentStore, user_id: str, profile: UserProfile,
                       explicit_tenant_id: Optional[str] = None) -> list[str]:
    return [t.id for t in resolve_tenants(store, user_id, profile, explicit_tenant_id)]


def check_tenant_access(store: DocumentStore, user_id: str, profile: UserProfile,
                        tenant_id: Optional[str]) -> Optional[str]:
    """
    Return tenant_id when it is None, "all" or inside the caller's full scope.
    Raises TenantAccessError otherwise, TenantResolutionError if the scope can't be read.
    """
    if not tenant_id or tenant_id == ALL_TENANTS:
        return tenant_id
    if tenant_id not in resolve_tenant_ids(store, user_id, profile):
        logger.warning(f"[AUTH] user={user_id} denied tenant={tenant_id}")
        raise TenantAccessError(f"Tenant {tenant_id} is outside the scope of user {user_id}")
    return tenant_id
