"""Storage and identity-provider interfaces shared by the Supabase and in-memory backends."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

Row = Dict[str, Any]


@dataclass(frozen=True)
class Principal:
    """An identity managed by the auth provider (auth.users)."""
    id: str
    email: str
    email_confirmed_at: Optional[datetime] = None
    user_metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None

    @property
    def email_confirmed(self) -> bool:
        return self.email_confirmed_at is not None


@dataclass(frozen=True)
class AuthSession:
    access_token: str
    principal: Principal
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = None


@dataclass(frozen=True)
class Caller:
    """Session-scoped caller. Policies are evaluated for ``principal_id``."""
    principal_id: str
    access_token: Optional[str] = None
    email: Optional[str] = None


class ProfileStore(ABC):
    """Policy-gated access to profiles, organizations and analytics.

    Session-scoped methods take a ``Caller`` and are subject to row-level
    policies: a row that exists but is hidden from the caller raises
    AuthorizationError, a row that does not exist raises NotFoundError.
    The remaining methods are the trusted backend path (service role).
    """

    # Session-scoped

    @abstractmethod
    def get_profile(self, caller: Caller, profile_id: str) -> Row:
        """Profile row with its organization embedded under ``organization``."""

    @abstractmethod
    def list_profiles(self, caller: Caller) -> List[Row]:
        """Every profile row the caller's policies make visible."""

    @abstractmethod
    def update_profile(self, caller: Caller, profile_id: str, fields: Row) -> Row:
        """Apply ``fields`` to one profile row under the update policies."""

    @abstractmethod
    def get_organization(self, caller: Caller, organization_id: str) -> Row:
        """Organization row visible to the caller."""

    @abstractmethod
    def list_analytics(self, caller: Caller, metric_type: Optional[str] = None) -> List[Row]:
        """Analytics rows visible to the caller, newest first."""

    @abstractmethod
    def record_analytics(self, caller: Caller, row: Row) -> Row:
        """Insert an analytics row under the analytics policy."""

    # Trusted backend path

    @abstractmethod
    def bootstrap_profile(self, row: Row) -> Row:
        """Insert ``row`` keyed by id; on conflict update only email, email_verified and updated_at.

        Must be a single atomic statement.
        """

    @abstractmethod
    def get_profile_by_email(self, email: str) -> Optional[Row]:
        """Profile with this exact email, or None."""

    @abstractmethod
    def list_profiles_by_role(self, role: str) -> List[Row]:
        """All profile rows holding ``role``."""

    @abstractmethod
    def update_profile_as_service(self, profile_id: str, fields: Row) -> Row:
        """Update a profile row bypassing session policies (constraints still apply)."""

    @abstractmethod
    def create_organization(self, row: Row, admin_profile_id: Optional[str] = None) -> Row:
        """Insert an organization row; duplicate slug raises ConflictError.

        With ``admin_profile_id`` the same transaction makes that profile the
        organization's ``org_admin``; if the promotion fails no organization
        is left behind.
        """

    @abstractmethod
    def slug_exists(self, slug: str) -> bool:
        """True when an organization already uses ``slug``."""

    @abstractmethod
    def reserved_super_admin_email(self) -> Optional[str]:
        """Reserved super admin address the store itself enforces, or None when it keeps none."""

    @abstractmethod
    def ping(self) -> bool:
        """Round-trip check that the store is reachable."""


class PrincipalDirectory(ABC):
    """The external identity provider. Password and token handling stay with the provider."""

    @abstractmethod
    def sign_up(
        self, email: str, password: str, metadata: Optional[Dict[str, Any]] = None
    ) -> Tuple[Principal, Optional[AuthSession]]:
        """Create a principal. The session is None when the provider requires email confirmation first."""

    @abstractmethod
    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        """Authenticate and open a session."""

    @abstractmethod
    def sign_out(self, access_token: str) -> None:
        """Invalidate the session behind ``access_token``."""

    @abstractmethod
    def get_user(self, access_token: str) -> Principal:
        """Principal behind a valid access token; AuthenticationError otherwise."""

    @abstractmethod
    def get_principal(self, principal_id: str) -> Optional[Principal]:
        """Principal by id, or None."""

    @abstractmethod
    def list_principals(self) -> List[Principal]:
        """All principals known to the provider."""

    @abstractmethod
    def reset_password_for_email(self, email: str, redirect_to: str) -> None:
        """Send a password-reset message. Unknown emails are accepted silently."""

    @abstractmethod
    def update_password(self, access_token: str, new_password: str) -> Principal:
        """Change the password of the principal behind ``access_token``."""
