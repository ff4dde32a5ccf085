"""
Core dependencies for route protection and service wiring
"""

from dataclasses import dataclass

from fastapi import Depends, Request, Security
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import logging

from app.config.settings import Settings
from app.core.errors import AuthenticationError, AuthorizationError
from app.core.results import OperationResult
from app.database.backends import Backend
from app.database.base import Caller
from app.modules.analytics.service import AnalyticsService
from app.modules.auth.service import AuthService
from app.modules.bootstrap.service import BootstrapService
from app.modules.organizations.service import OrganizationService
from app.modules.profiles.models import Role
from app.modules.profiles.service import ProfileService

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Services:
    backend: Backend
    settings: Settings
    bootstrap: BootstrapService
    organizations: OrganizationService
    profiles: ProfileService
    auth: AuthService
    analytics: AnalyticsService


def build_services(backend: Backend, settings: Settings) -> Services:
    """Wire every service around one explicitly constructed backend."""
    bootstrap = BootstrapService(backend.store, backend.directory, settings)
    organizations = OrganizationService(backend.store)
    return Services(
        backend=backend,
        settings=settings,
        bootstrap=bootstrap,
        organizations=organizations,
        profiles=ProfileService(backend.store, backend.directory, bootstrap),
        auth=AuthService(backend.store, backend.directory, bootstrap, organizations, settings),
        analytics=AnalyticsService(backend.store),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_auth_service(services: Services = Depends(get_services)) -> AuthService:
    return services.auth


def get_profile_service(services: Services = Depends(get_services)) -> ProfileService:
    return services.profiles


def get_organization_service(services: Services = Depends(get_services)) -> OrganizationService:
    return services.organizations


def get_analytics_service(services: Services = Depends(get_services)) -> AnalyticsService:
    return services.analytics


def get_bootstrap_service(services: Services = Depends(get_services)) -> BootstrapService:
    return services.bootstrap


def get_current_token(
    credentials: HTTPAuthorizationCredentials = Security(security)
) -> str:
    """Extract JWT token from Authorization header"""
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise AuthenticationError("missing bearer token", public_message="Invalid or missing bearer token")
    return credentials.credentials


def get_current_caller(
    token: str = Depends(get_current_token),
    auth_service: AuthService = Depends(get_auth_service),
) -> Caller:
    """Resolve the bearer token to the session-scoped caller used by the policy-gated store"""
    principal = auth_service.get_current_user(token)
    return Caller(principal_id=principal.id, access_token=token, email=principal.email)


def require_super_admin(
    caller: Caller = Depends(get_current_caller),
    profile_service: ProfileService = Depends(get_profile_service),
) -> Caller:
    """Dependency to check that the caller's profile holds the super_admin role"""
    result = profile_service.get_current_profile(caller)
    if not result.success or result.data.role != Role.SUPER_ADMIN.value:
        raise AuthorizationError("super_admin role required", public_message="Only super admins can perform this action")
    return caller


def result_response(result: OperationResult, success_status: int = 200) -> JSONResponse:
    """Uniform {success, error?} body; failures carry the status mapped from their error code."""
    status_code = success_status if result.success else result.status_code
    return JSONResponse(
        status_code=status_code,
        content=result.model_dump(mode="json", exclude_none=True),
    )
