"""
Row-Level Policy Configuration
This config defines the access policies for profiles, organizations and analytics.
Names match the policies created in supabase/migrations so the in-memory store and
Postgres enforce the same matrix.
"""

from app.core.policies import ALL_OPERATIONS, AccessPolicyEngine, DbRole, Operation, Policy, sql_equals
from app.modules.profiles.models import (
    ADMIN_FIELDS,
    ANALYTICS_TABLE,
    ORG_SCOPED_VIEWER_ROLES,
    ORGANIZATIONS_TABLE,
    PROFILES_TABLE,
    Role,
)


def _is_self(actor, row) -> bool:
    return sql_equals(actor.id, row.get("id"))


def _is_super_admin(actor, row=None) -> bool:
    return actor.role == Role.SUPER_ADMIN.value


def _is_org_viewer_of(actor, row) -> bool:
    return actor.role in ORG_SCOPED_VIEWER_ROLES and sql_equals(actor.organization_id, row.get("organization_id"))


def _admin_fields_unchanged(actor, old_row, new_row) -> bool:
    """Owners may edit their own row but not the administrative columns."""
    if not _is_self(actor, new_row):
        return False
    return all(old_row.get(column) == new_row.get(column) for column in ADMIN_FIELDS)


def _is_member_of(actor, row) -> bool:
    return sql_equals(actor.organization_id, row.get("id"))


def _analytics_access(actor, row) -> bool:
    return _is_super_admin(actor) or sql_equals(actor.organization_id, row.get("organization_id"))


def _always(actor, row) -> bool:
    return True


SELECT = frozenset({Operation.SELECT})
UPDATE = frozenset({Operation.UPDATE})

POLICIES = [
    # profiles
    Policy("profiles_select_own", PROFILES_TABLE, SELECT, _is_self),
    Policy("profiles_update_own", PROFILES_TABLE, UPDATE, _is_self, with_check=_admin_fields_unchanged),
    Policy("profiles_super_admin_select_all", PROFILES_TABLE, SELECT, _is_super_admin),
    Policy("profiles_super_admin_update_all", PROFILES_TABLE, UPDATE, _is_super_admin),
    Policy("profiles_org_admin_select_org", PROFILES_TABLE, SELECT, _is_org_viewer_of),
    Policy("profiles_service_role_all", PROFILES_TABLE, ALL_OPERATIONS, _always, db_role=DbRole.SERVICE_ROLE),
    # organizations
    Policy("organizations_select_member", ORGANIZATIONS_TABLE, SELECT,
           lambda actor, row: _is_super_admin(actor) or _is_member_of(actor, row)),
    Policy("organizations_service_role_all", ORGANIZATIONS_TABLE, ALL_OPERATIONS, _always,
           db_role=DbRole.SERVICE_ROLE),
    # analytics
    Policy("analytics_org_access", ANALYTICS_TABLE, ALL_OPERATIONS, _analytics_access),
    Policy("analytics_service_role_all", ANALYTICS_TABLE, ALL_OPERATIONS, _always, db_role=DbRole.SERVICE_ROLE),
]


def get_policy_engine() -> AccessPolicyEngine:
    return AccessPolicyEngine(POLICIES)


def get_policy_matrix():
    """Policy names grouped by table, for diagnostics and the migration cross-check."""
    matrix = {}
    for policy in POLICIES:
        matrix.setdefault(policy.table, []).append({
            "name": policy.name,
            "operations": sorted(op.value for op in policy.operations),
            "role": policy.db_role.value,
        })
    return matrix
