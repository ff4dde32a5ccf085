"""Builders shared by the test modules."""

from typing import Optional
from uuid import uuid4

from app.config.settings import Settings
from app.database.base import Caller

PASSWORD = "correct-horse-42"


def make_settings(**overrides) -> Settings:
    values = {
        "store_backend": "memory",
        "reconcile_on_startup": False,
        "log_level": "WARNING",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_organization(store, name: str) -> str:
    slug = f"{name.lower()}-{uuid4().hex[:6]}"
    return store.create_organization({"name": name, "slug": slug})["id"]


def make_profile(store, email: str, role: str = "user", organization_id: Optional[str] = None) -> Caller:
    """Insert a profile through the trusted path and return a caller acting as it."""
    profile_id = str(uuid4())
    store.bootstrap_profile({"id": profile_id, "email": email})
    if role != "user" or organization_id is not None:
        store.update_profile_as_service(profile_id, {"role": role, "organization_id": organization_id})
    return Caller(principal_id=profile_id, email=email)


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
