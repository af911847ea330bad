# gatehouse/dependencies.py
"""FastAPI dependencies shared by the routers: document store + caller profile."""

from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from gatehouse.database import get_db
from gatehouse.schemas.profile import AuthUser, UserProfile
from gatehouse.services.errors import (
    DocumentStoreError, ProfileMissingError, TenantAccessError, TenantResolutionError,
)
from gatehouse.services.profile_provider import ProfileProvider, SqlProfileProvider
from gatehouse.services.tenant_resolver import check_tenant_access
from gatehouse.store.base import DocumentStore
from gatehouse.store.sql import SqlDocumentStore

_store: Optional[SqlDocumentStore] = None


def get_store() -> SqlDocumentStore:
    """Process-wide store, so live queries opened by any request share one listener registry."""
    global _store
    if _store is None:
        _store = SqlDocumentStore()
    return _store


def get_profile_provider(
    x_user_id: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
) -> ProfileProvider:
    return SqlProfileProvider(db, x_user_id)


def get_current_profile(
    provider: ProfileProvider = Depends(get_profile_provider),
) -> tuple[AuthUser, UserProfile]:
    try:
        return provider.require()
    except ProfileMissingError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))
    except DocumentStoreError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


def get_scoped_tenant_id(
    tenant_id: Optional[str] = None,
    caller: tuple[AuthUser, UserProfile] = Depends(get_current_profile),
    store: DocumentStore = Depends(get_store),
) -> Optional[str]:
    """`tenant_id` query parameter, accepted only if the caller may see that tenant."""
    user, profile = caller
    try:
        return check_tenant_access(store, user.id, profile, tenant_id)
    except TenantAccessError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except TenantResolutionError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
