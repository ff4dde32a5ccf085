from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.core.dependencies import get_bootstrap_service, require_super_admin, result_response
from app.core.results import OperationResult
from app.database.base import Caller
from app.modules.bootstrap.service import BootstrapService

router = APIRouter(prefix="/bootstrap", tags=["bootstrap"])


@router.post("/reconcile")
async def reconcile(
    caller: Caller = Depends(require_super_admin),
    service: BootstrapService = Depends(get_bootstrap_service),
) -> JSONResponse:
    """Re-run profile bootstrap for every principal and the super admin reconciliation"""
    report = service.reconcile_all()
    return result_response(OperationResult.ok(report, degraded=bool(report.degraded_principal_ids) or report.super_admin.degraded))
