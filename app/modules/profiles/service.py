import logging
from typing import AbstractSet, List, Optional

from app.core.errors import NotFoundError
from app.core.logging_safety import safe_log_identifier
from app.core.results import OperationResult
from app.database.base import Caller, PrincipalDirectory, ProfileStore
from app.modules.bootstrap.service import BootstrapService
from app.modules.profiles.models import SELF_SERVICE_FIELDS
from app.modules.profiles.schemas import Profile, ProfileUpdate

logger = logging.getLogger(__name__)


class ProfileService:
    def __init__(self, store: ProfileStore, directory: PrincipalDirectory, bootstrap: BootstrapService):
        self.store = store
        self.directory = directory
        self.bootstrap = bootstrap

    def get_current_profile(self, caller: Caller) -> OperationResult:
        """Caller's own profile; a missing profile is created lazily and fetched again."""
        try:
            return OperationResult.ok(Profile(**self.store.get_profile(caller, caller.principal_id)))
        except NotFoundError:
            pass
        except Exception as e:
            return OperationResult.from_error(e)

        pid = safe_log_identifier(caller.principal_id, prefix="pid")
        logger.info(f"Creating missing profile for user {pid}")
        try:
            principal = self.directory.get_principal(caller.principal_id)
        except Exception as e:
            return OperationResult.from_error(e)
        if principal is None:
            return OperationResult.from_error(NotFoundError(f"principal {pid} not found"))

        outcome = self.bootstrap.bootstrap_principal(principal)
        if outcome.degraded:
            result = OperationResult.from_error(NotFoundError(f"profile {pid} could not be created"))
            result.degraded = True
            return result
        try:
            return OperationResult.ok(Profile(**self.store.get_profile(caller, caller.principal_id)))
        except Exception as e:
            logger.error(f"Error fetching new profile {pid}: {e}")
            return OperationResult.from_error(e)

    def get_profile(self, caller: Caller, profile_id: str) -> OperationResult:
        try:
            return OperationResult.ok(Profile(**self.store.get_profile(caller, profile_id)))
        except Exception as e:
            return OperationResult.from_error(e)

    def list_profiles(self, caller: Caller) -> OperationResult:
        try:
            profiles: List[Profile] = [Profile(**row) for row in self.store.list_profiles(caller)]
            return OperationResult.ok(profiles)
        except Exception as e:
            return OperationResult.from_error(e)

    def update_profile(self, caller: Caller, update: ProfileUpdate) -> OperationResult:
        """Self-service update of the caller's own row; columns outside SELF_SERVICE_FIELDS are dropped."""
        return self.update_profile_of(caller, caller.principal_id, update, allowed=SELF_SERVICE_FIELDS)

    def update_profile_of(
        self,
        caller: Caller,
        profile_id: str,
        update: ProfileUpdate,
        allowed: Optional[AbstractSet[str]] = None,
    ) -> OperationResult:
        """Update any row the caller's policies allow. Only organization_id may be explicitly cleared."""
        include = set(allowed) if allowed is not None else None
        fields = {
            k: v for k, v in update.model_dump(mode="json", exclude_unset=True, include=include).items()
            if v is not None or k == "organization_id"
        }
        try:
            if not fields:
                return OperationResult.ok(Profile(**self.store.get_profile(caller, profile_id)))
            row = self.store.update_profile(caller, profile_id, fields)
            logger.info(
                f"Profile {safe_log_identifier(profile_id, prefix='pid')} updated by "
                f"{safe_log_identifier(caller.principal_id, prefix='pid')}: {sorted(fields)}"
            )
            return OperationResult.ok(Profile(**row))
        except Exception as e:
            return OperationResult.from_error(e)
