import hashlib
import logging
import threading
import time
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

from app.config.settings import Settings
from app.core.errors import AppError, AuthenticationError
from app.core.logging_safety import safe_log_identifier
from app.core.results import OperationResult
from app.database.base import AuthSession, Principal, PrincipalDirectory, ProfileStore
from app.modules.auth.schemas import LoginData, RegisterData, TokenResponse, UserInfo
from app.modules.bootstrap.service import BootstrapService
from app.modules.organizations.service import OrganizationService
from app.modules.profiles.schemas import Profile

logger = logging.getLogger(__name__)

_AUTH_CACHE_MAX_SIZE = 500


def _user_info(principal: Principal) -> UserInfo:
    return UserInfo(id=principal.id, email=principal.email, email_verified=principal.email_confirmed)


def _token_response(session: AuthSession) -> TokenResponse:
    return TokenResponse(
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        expires_at=session.expires_at,
    )


class AuthService:
    """Sign-up/sign-in facade. Every method returns an OperationResult except get_current_user."""

    def __init__(
        self,
        store: ProfileStore,
        directory: PrincipalDirectory,
        bootstrap: BootstrapService,
        organizations: OrganizationService,
        settings: Settings,
    ):
        self.store = store
        self.directory = directory
        self.bootstrap = bootstrap
        self.organizations = organizations
        self.settings = settings
        # Short TTL cache for get_current_user to reduce auth provider calls
        self._user_cache: Dict[str, Tuple[Principal, float]] = {}
        self._cache_lock = threading.Lock()

    def sign_up(
        self,
        email: str,
        password: str,
        first_name: str = "",
        last_name: str = "",
        organization_name: Optional[str] = None,
        industry: Optional[str] = None,
        company_size: Optional[str] = None,
    ) -> OperationResult:
        """Register a principal, bootstrap its profile and, when requested, its organization."""
        email = email.strip()
        try:
            principal, session = self.directory.sign_up(
                email, password, {"first_name": first_name, "last_name": last_name}
            )
        except Exception as e:
            logger.error(f"Sign up error: {e}")
            return OperationResult.from_error(e)

        pid = safe_log_identifier(principal.id, prefix="pid")
        outcome = self.bootstrap.bootstrap_principal(principal)
        degraded = outcome.degraded
        profile = outcome.profile

        wants_organization = bool(organization_name and organization_name.strip())
        if wants_organization and self.bootstrap.is_super_admin_email(email):
            # Super admin doesn't belong to any organization
            logger.info("Ignoring organization for super admin sign up")
        elif wants_organization and degraded:
            logger.warning(f"Skipping organization creation for {pid}: profile bootstrap degraded")
        elif wants_organization:
            try:
                # First user in org becomes admin, in the same write as the organization
                organization = self.organizations.create_organization(
                    organization_name, industry, company_size, admin_profile_id=principal.id
                )
                row = self.store.get_profile_by_email(principal.email)
                if row is not None:
                    profile = Profile(**row)
                logger.info(f"Created organization {organization['id']} with admin {pid}")
            except Exception as e:
                logger.error(f"Organization setup error for {pid}: {e}")
                degraded = True

        data = RegisterData(
            user=_user_info(principal),
            session=_token_response(session) if session else None,
            profile=profile,
        )
        return OperationResult.ok(data, degraded=degraded)

    def sign_in(self, email: str, password: str) -> OperationResult:
        email = email.strip()
        try:
            session = self.directory.sign_in_with_password(email, password)
        except Exception as e:
            logger.warning(f"Sign in failed for {safe_log_identifier(email, prefix='em')}: {e}")
            return OperationResult.from_error(e)

        # Converge the profile with the provider (e.g. email confirmed since sign up)
        degraded = self.bootstrap.bootstrap_principal(session.principal).degraded
        try:
            self.store.update_profile_as_service(
                session.principal.id,
                {"last_login_at": datetime.now(timezone.utc).isoformat()},
            )
        except Exception as e:
            # Don't fail the login for this
            logger.warning(f"Could not update last login: {e}")
            degraded = True

        data = LoginData(user=_user_info(session.principal), session=_token_response(session))
        return OperationResult.ok(data, degraded=degraded)

    def sign_out(self, access_token: str) -> OperationResult:
        self._evict(access_token)
        try:
            self.directory.sign_out(access_token)
            return OperationResult.ok()
        except Exception as e:
            logger.error(f"Sign out error: {e}")
            return OperationResult.from_error(e)

    def reset_password(self, email: str) -> OperationResult:
        try:
            self.directory.reset_password_for_email(email.strip(), self.settings.password_reset_redirect_url)
            return OperationResult.ok()
        except Exception as e:
            logger.error(f"Password reset error: {e}")
            return OperationResult.from_error(e)

    def update_password(self, access_token: str, new_password: str) -> OperationResult:
        try:
            principal = self.directory.update_password(access_token, new_password)
            return OperationResult.ok(_user_info(principal))
        except Exception as e:
            logger.error(f"Password update error: {e}")
            return OperationResult.from_error(e)

    def _cache_key(self, token: str) -> str:
        return hashlib.sha256(token.encode()).hexdigest()

    def _evict(self, token: str) -> None:
        with self._cache_lock:
            self._user_cache.pop(self._cache_key(token or ""), None)

    def get_current_user(self, token: str) -> Principal:
        """Principal behind a bearer token. Raises AuthenticationError; used by route dependencies."""
        cache_key = self._cache_key(token or "")
        now = time.monotonic()
        with self._cache_lock:
            cached = self._user_cache.get(cache_key)
            if cached is not None:
                if now < cached[1]:
                    return cached[0]
                del self._user_cache[cache_key]
        try:
            principal = self.directory.get_user(token)
        except AppError:
            raise
        except Exception as e:
            raise AuthenticationError(str(e), public_message="Authentication failed") from e
        with self._cache_lock:
            if len(self._user_cache) < _AUTH_CACHE_MAX_SIZE:
                self._user_cache[cache_key] = (principal, now + self.settings.auth_cache_ttl_seconds)
        return principal
