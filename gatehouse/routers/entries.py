# gatehouse/routers/entries.py
"""Entry/exit list across the caller's tenants, newest first."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from gatehouse.dependencies import get_current_profile, get_scoped_tenant_id, get_store
from gatehouse.schemas.entries import EntryOut
from gatehouse.services.errors import DateRangeError, TenantResolutionError
from gatehouse.services.indicators_service import IndicatorsSession
from gatehouse.store.base import DocumentStore, DRIVERS, ENTRIES

router = APIRouter()


@router.get("/entries", response_model=list[EntryOut], summary="Entry/exit records")
def list_entries(
    date_range: str = "recent",
    tenant_id: Optional[str] = Depends(get_scoped_tenant_id),
    start: Optional[date] = None,
    end: Optional[date] = None,
    limit: Optional[int] = Query(default=None, ge=1, le=1000),
    open_only: bool = False,
    caller=Depends(get_current_profile),
    store: DocumentStore = Depends(get_store),
):
    """`date_range=recent` returns the latest `limit` entries; `open_only` keeps vehicles still inside."""
    user, profile = caller
    with IndicatorsSession(store, collections=(ENTRIES, DRIVERS)) as session:
        try:
            session.start(user.id, profile, date_range=date_range, tenant_id=tenant_id,
                          custom_start=start, custom_end=end, recent_limit=limit)
        except DateRangeError as e:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
        except TenantResolutionError as e:
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

        drivers = {d.id: d for d in session.multiplexer.state.records(DRIVERS)}
        return [EntryOut.from_record(e, drivers) for e in session.entries(open_only=open_only)]
