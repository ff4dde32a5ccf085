from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.core.dependencies import get_current_caller, get_profile_service, result_response
from app.database.base import Caller
from app.modules.profiles.schemas import AdminProfileUpdate, ProfileUpdate
from app.modules.profiles.service import ProfileService

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.get("/me")
async def get_my_profile(
    caller: Caller = Depends(get_current_caller),
    service: ProfileService = Depends(get_profile_service),
) -> JSONResponse:
    """Get the caller's profile, creating it when missing"""
    return result_response(service.get_current_profile(caller))


@router.put("/me")
async def update_my_profile(
    update: ProfileUpdate,
    caller: Caller = Depends(get_current_caller),
    service: ProfileService = Depends(get_profile_service),
) -> JSONResponse:
    """Update self-service fields of the caller's profile"""
    return result_response(service.update_profile(caller, update))


@router.get("")
async def list_profiles(
    caller: Caller = Depends(get_current_caller),
    service: ProfileService = Depends(get_profile_service),
) -> JSONResponse:
    """List profiles: own row, organization rows for org admins/managers, all rows for super_admin"""
    return result_response(service.list_profiles(caller))


@router.get("/{profile_id}")
async def get_profile(
    profile_id: str,
    caller: Caller = Depends(get_current_caller),
    service: ProfileService = Depends(get_profile_service),
) -> JSONResponse:
    return result_response(service.get_profile(caller, profile_id))


@router.put("/{profile_id}")
async def update_profile(
    profile_id: str,
    update: AdminProfileUpdate,
    caller: Caller = Depends(get_current_caller),
    service: ProfileService = Depends(get_profile_service),
) -> JSONResponse:
    """Update a profile (own self-service fields, or any field as super_admin)"""
    return result_response(service.update_profile_of(caller, profile_id, update))
