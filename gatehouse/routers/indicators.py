# gatehouse/routers/indicators.py
"""Dashboard indicators for the caller's tenant scope."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import ValidationError

from gatehouse.config import settings
from gatehouse.dependencies import get_current_profile, get_scoped_tenant_id, get_store
from gatehouse.schemas.indicators import DurationConfig, IndicatorsOut
from gatehouse.services.errors import DateRangeError, TenantResolutionError
from gatehouse.services.indicators_service import IndicatorsSession
from gatehouse.store.base import DocumentStore
from gatehouse.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


def _duration_config(short_limit_hours, medium_limit_hours, delayed_threshold_hours) -> DurationConfig:
    overrides = {
        "short_limit_hours": short_limit_hours,
        "medium_limit_hours": medium_limit_hours,
        "delayed_threshold_hours": delayed_threshold_hours,
    }
    try:
        return DurationConfig(**{k: v for k, v in overrides.items() if v is not None})
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.errors())


@router.get("/indicators", response_model=IndicatorsOut, summary="Dashboard indicators")
def get_indicators(
    date_range: str = settings.DEFAULT_DATE_RANGE,
    tenant_id: Optional[str] = Depends(get_scoped_tenant_id),
    start: Optional[date] = None,
    end: Optional[date] = None,
    short_limit_hours: Optional[float] = None,
    medium_limit_hours: Optional[float] = None,
    delayed_threshold_hours: Optional[float] = None,
    caller=Depends(get_current_profile),
    store: DocumentStore = Depends(get_store),
):
    """
    Aggregates entries, occurrences and drivers over every tenant in scope.
    `tenant_id` narrows to one tenant ("all" keeps the full scope); `start`/`end`
    are required for `date_range=custom`.
    """
    user, profile = caller
    config = _duration_config(short_limit_hours, medium_limit_hours, delayed_threshold_hours)

    with IndicatorsSession(store, duration_config=config) as session:
        try:
            session.start(user.id, profile, date_range=date_range, tenant_id=tenant_id,
                          custom_start=start, custom_end=end)
        except DateRangeError as e:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
        except TenantResolutionError as e:
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

        snapshot = session.snapshot or session.compute_metrics()
        if snapshot is None:
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                                detail="Indicator data is still loading")
        if session.degraded:
            logger.warning(f"[METRICS] degraded result for user {user.id}: {session.failed_slots}")
        return IndicatorsOut(
            **snapshot.model_dump(),
            degraded=session.degraded,
            failed_slots=[str(key) for key in session.failed_slots],
        )
