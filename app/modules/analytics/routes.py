from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.core.dependencies import get_analytics_service, get_current_caller, result_response
from app.database.base import Caller
from app.modules.analytics.schemas import MetricCreate
from app.modules.analytics.service import AnalyticsService

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("")
async def list_metrics(
    metric_type: Optional[str] = None,
    caller: Caller = Depends(get_current_caller),
    service: AnalyticsService = Depends(get_analytics_service),
) -> JSONResponse:
    return result_response(service.list_metrics(caller, metric_type))


@router.post("")
async def record_metric(
    metric: MetricCreate,
    caller: Caller = Depends(get_current_caller),
    service: AnalyticsService = Depends(get_analytics_service),
) -> JSONResponse:
    return result_response(service.record_metric(caller, metric), success_status=201)
