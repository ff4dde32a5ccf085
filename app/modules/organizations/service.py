import logging
import re
from typing import Optional

from app.core.errors import ConflictError
from app.core.results import OperationResult
from app.database.base import Caller, ProfileStore, Row
from app.modules.organizations.schemas import Organization

logger = logging.getLogger(__name__)

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9]")
MAX_SLUG_ATTEMPTS = 20


def slugify(name: str) -> str:
    """Lowercase, every character outside [a-z0-9] becomes '-'."""
    return _NON_SLUG_CHARS.sub("-", name.strip().lower())


class OrganizationService:
    def __init__(self, store: ProfileStore):
        self.store = store

    def _candidate_slugs(self, base: str):
        yield base
        for n in range(2, MAX_SLUG_ATTEMPTS + 1):
            yield f"{base}-{n}"

    def create_organization(
        self,
        name: str,
        industry: Optional[str] = None,
        company_size: Optional[str] = None,
        admin_profile_id: Optional[str] = None,
    ) -> Row:
        """Create an organization with a unique slug. Raises ConflictError when every candidate is taken.

        With ``admin_profile_id`` the store promotes that profile to the
        organization's ``org_admin`` in the same write.
        """
        name = name.strip()
        base = slugify(name)
        for slug in self._candidate_slugs(base):
            if self.store.slug_exists(slug):
                continue
            try:
                return self.store.create_organization({
                    "name": name,
                    "slug": slug,
                    "industry": industry,
                    "company_size": company_size,
                }, admin_profile_id=admin_profile_id)
            except ConflictError:
                # Only a slug taken by a concurrent insert moves on to the next suffix.
                if not self.store.slug_exists(slug):
                    raise
                logger.debug(f"Slug {slug} taken concurrently, retrying")
        raise ConflictError(
            f"No free slug for organization after {MAX_SLUG_ATTEMPTS} attempts",
            public_message="An organization with this name already exists",
        )

    def get_organization(self, caller: Caller, organization_id: str) -> OperationResult:
        try:
            row = self.store.get_organization(caller, organization_id)
            return OperationResult.ok(Organization(**row))
        except Exception as e:
            return OperationResult.from_error(e)
