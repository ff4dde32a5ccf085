"""In-memory policy-gated store used for local runs and tests.

Every operation runs under one re-entrant lock, so the actor lookup, the
policy evaluation and the row access happen in the same "transaction".
Schema constraints mirror the migration's unique indexes and checks.
"""

from __future__ import annotations

import copy
import logging
import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional
from uuid import uuid4

from app.config.policies_config import get_policy_engine
from app.core.errors import ConflictError, NotFoundError, TransientStoreError
from app.core.policies import AccessPolicyEngine, Actor, Operation, SERVICE_ACTOR
from app.database.base import Caller, ProfileStore, Row
from app.modules.profiles.models import (
    ANALYTICS_TABLE,
    ORGANIZATIONS_TABLE,
    PROFILES_TABLE,
    Role,
)

logger = logging.getLogger(__name__)

_ROLE_VALUES = frozenset(role.value for role in Role)
_IMMUTABLE_PROFILE_COLUMNS = frozenset({"id", "created_at"})
_BOOTSTRAP_CONFLICT_COLUMNS = ("email", "email_verified")


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryProfileStore(ProfileStore):
    def __init__(self, engine: Optional[AccessPolicyEngine] = None) -> None:
        self._engine = engine or get_policy_engine()
        self._lock = threading.RLock()
        self.profiles: Dict[str, Row] = {}
        self.organizations: Dict[str, Row] = {}
        self.analytics: Dict[str, Row] = {}
        self.profile_write_count = 0
        # When set, trusted-path writes fail with TransientStoreError.
        self.service_write_failure: Optional[str] = None
        # Address a database-side trigger would elevate; None for this store.
        self.reserved_email: Optional[str] = None

    # Helpers

    def _actor(self, caller: Caller) -> Actor:
        profile = self.profiles.get(caller.principal_id)
        if profile is None:
            return Actor(id=caller.principal_id)
        return Actor(
            id=caller.principal_id,
            role=profile.get("role"),
            organization_id=profile.get("organization_id"),
        )

    def _maybe_fail_service_write(self) -> None:
        if self.service_write_failure:
            raise TransientStoreError(self.service_write_failure)

    def _with_organization(self, row: Row) -> Row:
        result = copy.deepcopy(row)
        organization = self.organizations.get(row.get("organization_id") or "")
        result["organization"] = copy.deepcopy(organization) if organization else None
        return result

    def _check_profile_constraints(self, row: Row) -> None:
        if row.get("role") not in _ROLE_VALUES:
            raise ConflictError(f"invalid input value for enum user_role: {row.get('role')!r}")
        if row["role"] == Role.SUPER_ADMIN.value and row.get("organization_id") is not None:
            raise ConflictError("violates check constraint profiles_super_admin_no_organization")
        organization_id = row.get("organization_id")
        if organization_id is not None and organization_id not in self.organizations:
            raise ConflictError("violates foreign key constraint profiles_organization_id_fkey")
        for other in self.profiles.values():
            if other["id"] == row["id"]:
                continue
            if other["email"] == row["email"]:
                raise ConflictError("duplicate key value violates unique constraint profiles_email_key")
            if row["role"] == Role.SUPER_ADMIN.value and other["role"] == Role.SUPER_ADMIN.value:
                raise ConflictError("duplicate key value violates unique constraint profiles_single_super_admin")

    def _write_profile(self, row: Row) -> Row:
        self._check_profile_constraints(row)
        self.profiles[row["id"]] = row
        self.profile_write_count += 1
        return self._with_organization(row)

    def _get_existing(self, table: Dict[str, Row], row_id: str, label: str) -> Row:
        row = table.get(row_id)
        if row is None:
            raise NotFoundError(f"{label} {row_id} not found")
        return row

    # Session-scoped

    def get_profile(self, caller: Caller, profile_id: str) -> Row:
        with self._lock:
            row = self._get_existing(self.profiles, profile_id, "Profile")
            self._engine.check(Operation.SELECT, PROFILES_TABLE, self._actor(caller), row)
            return self._with_organization(row)

    def list_profiles(self, caller: Caller) -> List[Row]:
        with self._lock:
            rows = self._engine.filter_rows(
                Operation.SELECT, PROFILES_TABLE, self._actor(caller), self.profiles.values()
            )
            rows.sort(key=lambda r: r["created_at"])
            return [self._with_organization(r) for r in rows]

    def update_profile(self, caller: Caller, profile_id: str, fields: Row) -> Row:
        with self._lock:
            old_row = self._get_existing(self.profiles, profile_id, "Profile")
            changes = {k: v for k, v in fields.items() if k not in _IMMUTABLE_PROFILE_COLUMNS}
            new_row = {**old_row, **changes, "updated_at": _now()}
            self._engine.check_write(Operation.UPDATE, PROFILES_TABLE, self._actor(caller), old_row, new_row)
            return self._write_profile(new_row)

    def get_organization(self, caller: Caller, organization_id: str) -> Row:
        with self._lock:
            row = self._get_existing(self.organizations, organization_id, "Organization")
            self._engine.check(Operation.SELECT, ORGANIZATIONS_TABLE, self._actor(caller), row)
            return copy.deepcopy(row)

    def list_analytics(self, caller: Caller, metric_type: Optional[str] = None) -> List[Row]:
        with self._lock:
            rows = self._engine.filter_rows(
                Operation.SELECT, ANALYTICS_TABLE, self._actor(caller), self.analytics.values()
            )
            if metric_type:
                rows = [r for r in rows if r["metric_type"] == metric_type]
            rows.sort(key=lambda r: r["recorded_at"], reverse=True)
            return copy.deepcopy(rows)

    def record_analytics(self, caller: Caller, row: Row) -> Row:
        with self._lock:
            return self._insert_analytics(self._actor(caller), row)

    def _insert_analytics(self, actor: Actor, row: Row) -> Row:
        new_row = {
            "id": str(uuid4()),
            "organization_id": row.get("organization_id"),
            "metric_type": row["metric_type"],
            "metric_value": row.get("metric_value"),
            "metadata": copy.deepcopy(row.get("metadata") or {}),
            "recorded_at": row.get("recorded_at") or _now(),
        }
        self._engine.check_write(Operation.INSERT, ANALYTICS_TABLE, actor, None, new_row)
        organization_id = new_row["organization_id"]
        if organization_id is not None and organization_id not in self.organizations:
            raise ConflictError("violates foreign key constraint analytics_organization_id_fkey")
        self.analytics[new_row["id"]] = new_row
        return copy.deepcopy(new_row)

    # Trusted backend path

    def bootstrap_profile(self, row: Row) -> Row:
        with self._lock:
            self._maybe_fail_service_write()
            now = _now()
            existing = self.profiles.get(row["id"])
            if existing is None:
                new_row = {
                    "first_name": "",
                    "last_name": "",
                    "role": Role.USER.value,
                    "organization_id": None,
                    "email_verified": False,
                    "is_active": True,
                    "last_login_at": None,
                    **row,
                    "created_at": now,
                    "updated_at": now,
                }
            else:
                new_row = dict(existing)
                for column in _BOOTSTRAP_CONFLICT_COLUMNS:
                    if column in row:
                        new_row[column] = row[column]
                new_row["updated_at"] = now
            self._engine.check_write(
                Operation.INSERT if existing is None else Operation.UPDATE,
                PROFILES_TABLE,
                SERVICE_ACTOR,
                existing,
                new_row,
            )
            return self._write_profile(new_row)

    def get_profile_by_email(self, email: str) -> Optional[Row]:
        with self._lock:
            for row in self.profiles.values():
                if row["email"] == email:
                    return self._with_organization(row)
            return None

    def list_profiles_by_role(self, role: str) -> List[Row]:
        with self._lock:
            return [self._with_organization(r) for r in self.profiles.values() if r["role"] == role]

    def update_profile_as_service(self, profile_id: str, fields: Row) -> Row:
        with self._lock:
            self._maybe_fail_service_write()
            return self._update_as_service(profile_id, fields)

    def _update_as_service(self, profile_id: str, fields: Row) -> Row:
        old_row = self._get_existing(self.profiles, profile_id, "Profile")
        changes = {k: v for k, v in fields.items() if k not in _IMMUTABLE_PROFILE_COLUMNS}
        new_row = {**old_row, **changes, "updated_at": _now()}
        self._engine.check_write(Operation.UPDATE, PROFILES_TABLE, SERVICE_ACTOR, old_row, new_row)
        return self._write_profile(new_row)

    def create_organization(self, row: Row, admin_profile_id: Optional[str] = None) -> Row:
        with self._lock:
            self._maybe_fail_service_write()
            if self.slug_exists(row["slug"]):
                raise ConflictError("duplicate key value violates unique constraint organizations_slug_key")
            now = _now()
            new_row = {
                "id": str(uuid4()),
                "name": row["name"],
                "slug": row["slug"],
                "industry": row.get("industry"),
                "company_size": row.get("company_size"),
                "created_at": now,
                "updated_at": now,
            }
            self._engine.check_write(Operation.INSERT, ORGANIZATIONS_TABLE, SERVICE_ACTOR, None, new_row)
            self.organizations[new_row["id"]] = new_row
            if admin_profile_id is not None:
                try:
                    self._update_as_service(admin_profile_id, {
                        "organization_id": new_row["id"],
                        "role": Role.ORG_ADMIN.value,
                    })
                except Exception:
                    del self.organizations[new_row["id"]]
                    raise
            logger.debug(f"Created organization {new_row['id']}")
            return copy.deepcopy(new_row)

    def slug_exists(self, slug: str) -> bool:
        with self._lock:
            return any(org["slug"] == slug for org in self.organizations.values())

    def record_system_metric(self, row: Row) -> Row:
        """Insert an analytics row through the service role (seed data, background jobs)."""
        with self._lock:
            return self._insert_analytics(SERVICE_ACTOR, row)

    def reserved_super_admin_email(self) -> Optional[str]:
        return self.reserved_email

    def ping(self) -> bool:
        return True
