from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.core.dependencies import get_current_caller, get_organization_service, result_response
from app.database.base import Caller
from app.modules.organizations.service import OrganizationService

router = APIRouter(prefix="/organizations", tags=["organizations"])


@router.get("/{organization_id}")
async def get_organization(
    organization_id: str,
    caller: Caller = Depends(get_current_caller),
    service: OrganizationService = Depends(get_organization_service),
) -> JSONResponse:
    """Get an organization (members and super_admin only)"""
    return result_response(service.get_organization(caller, organization_id))
