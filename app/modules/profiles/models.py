# Supabase tables: profiles, organizations, analytics
# This file documents the expected database schema and the column groups
# the services rely on. The DDL lives in supabase/migrations/.

"""
Expected Supabase table structure:

profiles:
- id: uuid (primary key, references auth.users.id)
- email: text (unique, not null) - synced from auth.users
- first_name: text (default '')
- last_name: text (default '')
- role: user_role ('user' | 'org_admin' | 'manager' | 'super_admin')
- organization_id: uuid (nullable, references organizations.id; null for super_admin)
- email_verified: boolean
- is_active: boolean (profiles are deactivated, never hard-deleted)
- last_login_at: timestamptz (nullable)
- created_at, updated_at: timestamptz

organizations:
- id: uuid, name: text, slug: text (unique), industry: text, company_size: text
- created_at, updated_at: timestamptz

analytics:
- id: uuid, organization_id: uuid (nullable; null rows are system metrics)
- metric_type: text, metric_value: numeric, metadata: jsonb, recorded_at: timestamptz
"""

from enum import Enum

PROFILES_TABLE = "profiles"
ORGANIZATIONS_TABLE = "organizations"
ANALYTICS_TABLE = "analytics"


class Role(str, Enum):
    USER = "user"
    ORG_ADMIN = "org_admin"
    MANAGER = "manager"
    SUPER_ADMIN = "super_admin"


ORG_SCOPED_VIEWER_ROLES = frozenset({Role.ORG_ADMIN.value, Role.MANAGER.value})

# Columns the owning principal may change on its own row.
SELF_SERVICE_FIELDS = frozenset({"first_name", "last_name"})

# Columns only a super_admin or the service role may change.
ADMIN_FIELDS = frozenset({"role", "organization_id", "is_active", "email_verified"})
