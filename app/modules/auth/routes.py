from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.core.dependencies import (
    get_auth_service,
    get_current_caller,
    get_current_token,
    get_profile_service,
    result_response,
)
from app.core.results import OperationResult
from app.database.base import Caller
from app.modules.auth.schemas import (
    CurrentUser,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    UpdatePasswordRequest,
    UserInfo,
)
from app.modules.auth.service import AuthService
from app.modules.profiles.service import ProfileService

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/signup")
async def sign_up(
    register_data: RegisterRequest,
    service: AuthService = Depends(get_auth_service)
) -> JSONResponse:
    """Register a new user, bootstrap the profile and optional organization"""
    result = service.sign_up(
        email=register_data.email,
        password=register_data.password,
        first_name=register_data.first_name,
        last_name=register_data.last_name,
        organization_name=register_data.organization_name,
        industry=register_data.industry,
        company_size=register_data.company_size,
    )
    return result_response(result, success_status=201)


@router.post("/signin")
async def sign_in(
    login_data: LoginRequest,
    service: AuthService = Depends(get_auth_service)
) -> JSONResponse:
    """Login and get access token"""
    return result_response(service.sign_in(login_data.email, login_data.password))


@router.post("/signout")
async def sign_out(
    token: str = Depends(get_current_token),
    service: AuthService = Depends(get_auth_service)
) -> JSONResponse:
    """Logout and invalidate token"""
    return result_response(service.sign_out(token))


@router.post("/reset-password")
async def reset_password(
    request: ResetPasswordRequest,
    service: AuthService = Depends(get_auth_service)
) -> JSONResponse:
    """Request a password reset email"""
    return result_response(service.reset_password(request.email))


@router.post("/update-password")
async def update_password(
    request: UpdatePasswordRequest,
    token: str = Depends(get_current_token),
    service: AuthService = Depends(get_auth_service)
) -> JSONResponse:
    return result_response(service.update_password(token, request.new_password))


@router.get("/me")
async def get_current_user(
    caller: Caller = Depends(get_current_caller),
    service: AuthService = Depends(get_auth_service),
    profile_service: ProfileService = Depends(get_profile_service),
) -> JSONResponse:
    """Get current authenticated user and their profile (for frontend UI)."""
    principal = service.get_current_user(caller.access_token)
    profile_result = profile_service.get_current_profile(caller)
    data = CurrentUser(
        user=UserInfo(id=principal.id, email=principal.email, email_verified=principal.email_confirmed),
        profile=profile_result.data if profile_result.success else None,
    )
    return result_response(OperationResult.ok(data, degraded=not profile_result.success))
