"""
Bootstrap procedure: every principal gets exactly one profile, and the
reserved super admin identity is kept canonical.

All entry points are idempotent and never raise; store failures come
back as a ``degraded`` outcome so sign-up and sign-in keep working.
"""

import logging
from typing import Dict, List, Optional, Tuple

from app.config.settings import Settings
from app.core.errors import AppError
from app.core.logging_safety import safe_log_identifier
from app.database.base import Principal, PrincipalDirectory, ProfileStore, Row
from app.modules.bootstrap.schemas import BootstrapOutcome, ReconcileReport
from app.modules.profiles.models import Role
from app.modules.profiles.schemas import Profile

logger = logging.getLogger(__name__)


def _degraded(e: Exception) -> BootstrapOutcome:
    if isinstance(e, AppError):
        return BootstrapOutcome(status="degraded", error=e.public_message)
    return BootstrapOutcome(status="degraded", error="Profile setup failed")


class BootstrapService:
    def __init__(self, store: ProfileStore, directory: PrincipalDirectory, settings: Settings):
        self.store = store
        self.directory = directory
        self.settings = settings

    def is_super_admin_email(self, email: Optional[str]) -> bool:
        return email == self.settings.super_admin_email

    def derive_role(self, email: Optional[str]) -> Tuple[Role, Optional[str]]:
        """Initial role and forced organization id for a new principal."""
        if self.is_super_admin_email(email):
            return Role.SUPER_ADMIN, None
        return Role.USER, None

    def canonical_super_admin_fields(self) -> Row:
        return {
            "role": Role.SUPER_ADMIN.value,
            "organization_id": None,
            "email_verified": True,
            "is_active": True,
            "first_name": self.settings.super_admin_first_name,
            "last_name": self.settings.super_admin_last_name,
        }

    def _profile_row(self, principal: Principal) -> Row:
        role, organization_id = self.derive_role(principal.email)
        metadata = principal.user_metadata or {}
        return {
            "id": principal.id,
            "email": principal.email,
            "role": role.value,
            "organization_id": organization_id,
            "email_verified": principal.email_confirmed,
            "first_name": metadata.get("first_name") or "",
            "last_name": metadata.get("last_name") or "",
        }

    def _demote_other_super_admins(self) -> bool:
        changed = False
        for row in self.store.list_profiles_by_role(Role.SUPER_ADMIN.value):
            if self.is_super_admin_email(row["email"]):
                continue
            logger.warning(
                f"Demoting unexpected super_admin profile {safe_log_identifier(row['id'], prefix='pid')}"
            )
            self.store.update_profile_as_service(row["id"], {"role": Role.USER.value})
            changed = True
        return changed

    def bootstrap_principal(self, principal: Principal) -> BootstrapOutcome:
        """Upsert the principal's profile, then canonicalize it when it is the reserved identity."""
        pid = safe_log_identifier(principal.id, prefix="pid")
        try:
            if self.is_super_admin_email(principal.email):
                self._demote_other_super_admins()
            row = self.store.bootstrap_profile(self._profile_row(principal))
            if row["role"] == Role.SUPER_ADMIN.value and not self.is_super_admin_email(principal.email):
                # The upsert never lowers a role; only the reserved identity may hold super_admin.
                logger.warning(f"Demoting super_admin profile {pid}: email is not the reserved identity")
                row = self.store.update_profile_as_service(principal.id, {"role": Role.USER.value})
            logger.info(f"Bootstrapped profile {pid} role={row['role']}")
        except Exception as e:
            logger.error(f"Error bootstrapping profile {pid}: {e}")
            return _degraded(e)
        if self.is_super_admin_email(principal.email):
            return self.reconcile_super_admin()
        return BootstrapOutcome(status="ok", profile=Profile(**row), changed=True)

    def check_reserved_identity(self) -> bool:
        """Compare the store's reserved super admin address with settings; log loudly on mismatch."""
        try:
            stored = self.store.reserved_super_admin_email()
        except Exception as e:
            logger.error(f"Could not read the reserved super admin email from the store: {e}")
            return False
        if stored is None or stored == self.settings.super_admin_email:
            return True
        logger.error(
            "Reserved super admin email mismatch: the database reserves "
            f"{safe_log_identifier(stored, prefix='em')} but SUPER_ADMIN_EMAIL is "
            f"{safe_log_identifier(self.settings.super_admin_email, prefix='em')}; "
            "sign-ups of either address will be elevated inconsistently"
        )
        return False

    def _find_super_admin_principal(self) -> Optional[Principal]:
        for principal in self.directory.list_principals():
            if self.is_super_admin_email(principal.email):
                return principal
        return None

    def reconcile_super_admin(self) -> BootstrapOutcome:
        """Converge the reserved identity's profile; a no-op when it is already canonical."""
        email = self.settings.super_admin_email
        try:
            changed = self._demote_other_super_admins()
            profile = self.store.get_profile_by_email(email)
            if profile is None:
                principal = self._find_super_admin_principal()
                if principal is None:
                    logger.info("Super admin principal not registered yet; nothing to reconcile")
                    return BootstrapOutcome(status="ok", changed=changed)
                profile = self.store.bootstrap_profile(self._profile_row(principal))
                changed = True
            canonical = self.canonical_super_admin_fields()
            drift: Dict[str, object] = {k: v for k, v in canonical.items() if profile.get(k) != v}
            if drift:
                logger.info(f"Correcting super admin profile drift: {sorted(drift)}")
                profile = self.store.update_profile_as_service(profile["id"], drift)
                changed = True
            else:
                logger.debug("Super admin profile already exists with correct role")
            return BootstrapOutcome(status="ok", profile=Profile(**profile), changed=changed)
        except Exception as e:
            logger.error(f"Error ensuring super admin: {e}")
            return _degraded(e)

    def reconcile_all(self) -> ReconcileReport:
        """Bootstrap every known principal, then reconcile the super admin once."""
        try:
            principals: List[Principal] = self.directory.list_principals()
        except Exception as e:
            logger.error(f"Error listing principals for reconciliation: {e}")
            return ReconcileReport(principals_processed=0, degraded_principal_ids=[], super_admin=_degraded(e))
        degraded: List[str] = []
        for principal in principals:
            if self.is_super_admin_email(principal.email):
                continue
            if self.bootstrap_principal(principal).degraded:
                degraded.append(principal.id)
        super_admin = self.reconcile_super_admin()
        logger.info(f"Reconciled {len(principals)} principal(s), {len(degraded)} degraded")
        return ReconcileReport(
            principals_processed=len(principals),
            degraded_principal_ids=degraded,
            super_admin=super_admin,
        )
