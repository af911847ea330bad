# gatehouse/routers/tenants.py
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status

from gatehouse.dependencies import get_current_profile, get_scoped_tenant_id, get_store
from gatehouse.schemas.records import TenantRecord
from gatehouse.services.errors import TenantResolutionError
from gatehouse.services.tenant_resolver import resolve_tenants
from gatehouse.store.base import DocumentStore

router = APIRouter()


@router.get("/tenants/scope", response_model=list[TenantRecord], summary="Tenants the caller can see")
def get_tenant_scope(tenant_id: Optional[str] = Depends(get_scoped_tenant_id),
                     caller=Depends(get_current_profile),
                     store: DocumentStore = Depends(get_store)):
    user, profile = caller
    try:
        return resolve_tenants(store, user.id, profile, tenant_id)
    except TenantResolutionError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
