"""Supabase-backed profile store.

Session-scoped calls run through a client carrying the caller's JWT, so
the RLS policies from supabase/migrations decide what is visible. An
empty RLS-filtered result is disambiguated with a service-role lookup:
the row exists but is hidden (AuthorizationError) or it is missing
(NotFoundError).
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import List, Optional

from postgrest.exceptions import APIError
from supabase import Client

from app.core.errors import (
    AppError,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    TransientStoreError,
)
from app.database.base import Caller, ProfileStore, Row
from app.database.supabase_client import SupabaseClient
from app.modules.profiles.models import ANALYTICS_TABLE, ORGANIZATIONS_TABLE, PROFILES_TABLE

logger = logging.getLogger(__name__)

PROFILE_COLUMNS = "*, organization:organizations(*)"

_CONFLICT_CODES = {"23505", "23503", "23514", "22P02"}
_FORBIDDEN_CODES = {"42501"}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@contextmanager
def _postgrest_errors():
    """Translate PostgREST/transport failures into the application taxonomy."""
    try:
        yield
    except AppError:
        raise
    except APIError as e:
        code = str(e.code or "")
        if code in _CONFLICT_CODES:
            raise ConflictError(e.message or str(e)) from e
        if code in _FORBIDDEN_CODES:
            raise AuthorizationError(e.message or str(e)) from e
        if code.startswith("PGRST3"):
            raise AuthenticationError(e.message or str(e), public_message="Invalid or expired token") from e
        raise TransientStoreError(e.message or str(e)) from e
    except Exception as e:
        raise TransientStoreError(str(e)) from e


def _first(data) -> Optional[Row]:
    if isinstance(data, list):
        return data[0] if data else None
    return data or None


class SupabaseProfileStore(ProfileStore):
    def __init__(self, handle: SupabaseClient):
        self.handle = handle

    def _user_client(self, caller: Caller) -> Client:
        if not caller.access_token:
            raise AuthenticationError("caller has no access token", public_message="Invalid or expired token")
        return self.handle.for_user(caller.access_token)

    def _raise_hidden_or_missing(self, table: str, row_id: str) -> None:
        existing = self.handle.get_service_client().table(table)\
            .select("id")\
            .eq("id", row_id)\
            .limit(1)\
            .execute()
        if existing.data:
            raise AuthorizationError(f"{table} row {row_id} hidden by row-level policy")
        raise NotFoundError(f"{table} row {row_id} not found")

    # Session-scoped

    def get_profile(self, caller: Caller, profile_id: str) -> Row:
        with _postgrest_errors():
            result = self._user_client(caller).table(PROFILES_TABLE)\
                .select(PROFILE_COLUMNS)\
                .eq("id", profile_id)\
                .limit(1)\
                .execute()
            row = _first(result.data)
            if row is None:
                self._raise_hidden_or_missing(PROFILES_TABLE, profile_id)
            return row

    def list_profiles(self, caller: Caller) -> List[Row]:
        with _postgrest_errors():
            result = self._user_client(caller).table(PROFILES_TABLE)\
                .select(PROFILE_COLUMNS)\
                .order("created_at")\
                .execute()
            return result.data or []

    def update_profile(self, caller: Caller, profile_id: str, fields: Row) -> Row:
        with _postgrest_errors():
            payload = {k: v for k, v in fields.items() if k not in ("id", "created_at")}
            payload["updated_at"] = _now_iso()
            result = self._user_client(caller).table(PROFILES_TABLE)\
                .update(payload)\
                .eq("id", profile_id)\
                .execute()
            if not result.data:
                self._raise_hidden_or_missing(PROFILES_TABLE, profile_id)
        return self.get_profile(caller, profile_id)

    def get_organization(self, caller: Caller, organization_id: str) -> Row:
        with _postgrest_errors():
            result = self._user_client(caller).table(ORGANIZATIONS_TABLE)\
                .select("*")\
                .eq("id", organization_id)\
                .limit(1)\
                .execute()
            row = _first(result.data)
            if row is None:
                self._raise_hidden_or_missing(ORGANIZATIONS_TABLE, organization_id)
            return row

    def list_analytics(self, caller: Caller, metric_type: Optional[str] = None) -> List[Row]:
        with _postgrest_errors():
            query = self._user_client(caller).table(ANALYTICS_TABLE).select("*")
            if metric_type:
                query = query.eq("metric_type", metric_type)
            result = query.order("recorded_at", desc=True).execute()
            return result.data or []

    def record_analytics(self, caller: Caller, row: Row) -> Row:
        with _postgrest_errors():
            result = self._user_client(caller).table(ANALYTICS_TABLE).insert({
                "organization_id": row.get("organization_id"),
                "metric_type": row["metric_type"],
                "metric_value": row.get("metric_value"),
                "metadata": row.get("metadata") or {},
            }).execute()
            created = _first(result.data)
            if created is None:
                raise TransientStoreError("analytics insert returned no row")
            return created

    # Trusted backend path

    def bootstrap_profile(self, row: Row) -> Row:
        with _postgrest_errors():
            result = self.handle.get_service_client().rpc("bootstrap_profile", {
                "p_id": row["id"],
                "p_email": row["email"],
                "p_role": row.get("role", "user"),
                "p_organization_id": row.get("organization_id"),
                "p_email_verified": bool(row.get("email_verified", False)),
                "p_first_name": row.get("first_name") or "",
                "p_last_name": row.get("last_name") or "",
            }).execute()
            created = _first(result.data)
            if created is None:
                raise TransientStoreError(f"bootstrap_profile returned no row for {row['id']}")
            return created

    def get_profile_by_email(self, email: str) -> Optional[Row]:
        with _postgrest_errors():
            result = self.handle.get_service_client().table(PROFILES_TABLE)\
                .select(PROFILE_COLUMNS)\
                .eq("email", email)\
                .limit(1)\
                .execute()
            return _first(result.data)

    def list_profiles_by_role(self, role: str) -> List[Row]:
        with _postgrest_errors():
            result = self.handle.get_service_client().table(PROFILES_TABLE)\
                .select(PROFILE_COLUMNS)\
                .eq("role", role)\
                .execute()
            return result.data or []

    def update_profile_as_service(self, profile_id: str, fields: Row) -> Row:
        with _postgrest_errors():
            payload = {k: v for k, v in fields.items() if k not in ("id", "created_at")}
            payload["updated_at"] = _now_iso()
            result = self.handle.get_service_client().table(PROFILES_TABLE)\
                .update(payload)\
                .eq("id", profile_id)\
                .execute()
            updated = _first(result.data)
            if updated is None:
                raise NotFoundError(f"profiles row {profile_id} not found")
            return updated

    def create_organization(self, row: Row, admin_profile_id: Optional[str] = None) -> Row:
        with _postgrest_errors():
            if admin_profile_id is not None:
                result = self.handle.get_service_client().rpc("create_organization_with_admin", {
                    "p_name": row["name"],
                    "p_slug": row["slug"],
                    "p_industry": row.get("industry"),
                    "p_company_size": row.get("company_size"),
                    "p_admin_profile_id": admin_profile_id,
                }).execute()
            else:
                now = _now_iso()
                result = self.handle.get_service_client().table(ORGANIZATIONS_TABLE).insert({
                    "name": row["name"],
                    "slug": row["slug"],
                    "industry": row.get("industry"),
                    "company_size": row.get("company_size"),
                    "created_at": now,
                    "updated_at": now,
                }).execute()
            created = _first(result.data)
            if created is None:
                raise TransientStoreError("organization insert returned no row")
            return created

    def slug_exists(self, slug: str) -> bool:
        with _postgrest_errors():
            result = self.handle.get_service_client().table(ORGANIZATIONS_TABLE)\
                .select("id")\
                .eq("slug", slug)\
                .limit(1)\
                .execute()
            return bool(result.data)

    def ping(self) -> bool:
        with _postgrest_errors():
            self.handle.get_client().table(PROFILES_TABLE)\
                .select("id")\
                .limit(1)\
                .execute()
            return True

    def reserved_super_admin_email(self) -> Optional[str]:
        with _postgrest_errors():
            result = self.handle.get_service_client().rpc("reserved_super_admin_email", {}).execute()
            data = result.data
            if isinstance(data, list):
                data = data[0] if data else None
            return data or None
