from pydantic import BaseModel
from typing import List, Literal, Optional

from app.modules.profiles.schemas import Profile


class BootstrapOutcome(BaseModel):
    """Result of a bootstrap or reconciliation run.

    ``degraded`` means the profile write failed; the caller's auth flow
    continues and the profile is retried lazily on the next fetch.
    """
    status: Literal["ok", "degraded"]
    profile: Optional[Profile] = None
    changed: bool = False
    error: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.status == "degraded"


class ReconcileReport(BaseModel):
    principals_processed: int
    degraded_principal_ids: List[str]
    super_admin: BootstrapOutcome
