from uuid import uuid4

import pytest

from app.core.errors import AuthorizationError, ConflictError, NotFoundError, TransientStoreError
from tests.helpers import make_organization, make_profile


def test_denied_and_missing_rows_are_distinct(store):
    alice = make_profile(store, "alice@co.com")
    bob = make_profile(store, "bob@co.com")

    assert store.get_profile(alice, alice.principal_id)["email"] == "alice@co.com"
    with pytest.raises(AuthorizationError):
        store.get_profile(alice, bob.principal_id)
    with pytest.raises(NotFoundError):
        store.get_profile(alice, str(uuid4()))


def test_org_scoped_visibility(store):
    org_a = make_organization(store, "A")
    org_b = make_organization(store, "B")
    admin_a = make_profile(store, "admin@a.com", "org_admin", org_a)
    member_a = make_profile(store, "member@a.com", "user", org_a)
    member_b = make_profile(store, "member@b.com", "user", org_b)
    root = make_profile(store, "root@co.com", "super_admin")

    visible = {row["id"] for row in store.list_profiles(admin_a)}
    assert visible == {admin_a.principal_id, member_a.principal_id}
    assert store.get_profile(admin_a, member_a.principal_id)["organization"]["id"] == org_a
    with pytest.raises(AuthorizationError):
        store.get_profile(admin_a, member_b.principal_id)

    assert {row["id"] for row in store.list_profiles(member_a)} == {member_a.principal_id}

    everyone = {row["id"] for row in store.list_profiles(root)}
    assert everyone == {admin_a.principal_id, member_a.principal_id, member_b.principal_id, root.principal_id}


def test_self_update_of_admin_fields_is_rejected(store):
    alice = make_profile(store, "alice@co.com")
    with pytest.raises(AuthorizationError):
        store.update_profile(alice, alice.principal_id, {"role": "super_admin"})
    updated = store.update_profile(alice, alice.principal_id, {"first_name": "Alice"})
    assert updated["first_name"] == "Alice"
    assert updated["role"] == "user"


def test_update_of_hidden_row_is_denied(store):
    org_a = make_organization(store, "A")
    admin_a = make_profile(store, "admin@a.com", "org_admin", org_a)
    member_a = make_profile(store, "member@a.com", "user", org_a)
    with pytest.raises(AuthorizationError):
        store.update_profile(admin_a, member_a.principal_id, {"first_name": "X"})
    with pytest.raises(NotFoundError):
        store.update_profile(admin_a, str(uuid4()), {"first_name": "X"})


def test_super_admin_updates_any_profile(store):
    org_a = make_organization(store, "A")
    root = make_profile(store, "root@co.com", "super_admin")
    bob = make_profile(store, "bob@co.com")
    updated = store.update_profile(root, bob.principal_id, {"role": "manager", "organization_id": org_a})
    assert updated["role"] == "manager"
    assert updated["organization"]["id"] == org_a


def test_schema_constraints(store):
    org_a = make_organization(store, "A")
    make_profile(store, "root@co.com", "super_admin")
    bob = make_profile(store, "bob@co.com")

    with pytest.raises(ConflictError):
        store.update_profile_as_service(bob.principal_id, {"role": "super_admin"})
    with pytest.raises(ConflictError):
        store.bootstrap_profile({"id": str(uuid4()), "email": "bob@co.com"})
    with pytest.raises(ConflictError):
        store.update_profile_as_service(bob.principal_id, {"organization_id": str(uuid4())})
    with pytest.raises(ConflictError):
        store.update_profile_as_service(bob.principal_id, {"role": "owner"})
    with pytest.raises(ConflictError):
        store.bootstrap_profile({
            "id": str(uuid4()), "email": "x@co.com", "role": "super_admin", "organization_id": org_a,
        })


def test_bootstrap_upsert_only_refreshes_email_fields(store):
    profile_id = str(uuid4())
    first = store.bootstrap_profile({"id": profile_id, "email": "old@co.com", "first_name": "Carol"})
    assert first["role"] == "user"
    assert first["email_verified"] is False

    second = store.bootstrap_profile({
        "id": profile_id,
        "email": "new@co.com",
        "email_verified": True,
        "role": "org_admin",
        "first_name": "Mallory",
    })
    assert second["email"] == "new@co.com"
    assert second["email_verified"] is True
    assert second["role"] == "user"
    assert second["first_name"] == "Carol"
    assert second["created_at"] == first["created_at"]
    assert len(store.profiles) == 1


def test_organization_slugs_are_unique(store):
    store.create_organization({"name": "Acme", "slug": "acme"})
    assert store.slug_exists("acme")
    with pytest.raises(ConflictError):
        store.create_organization({"name": "Acme", "slug": "acme"})


def test_organization_visibility(store):
    org_a = make_organization(store, "A")
    member = make_profile(store, "member@a.com", "user", org_a)
    outsider = make_profile(store, "out@co.com")
    root = make_profile(store, "root@co.com", "super_admin")

    assert store.get_organization(member, org_a)["id"] == org_a
    assert store.get_organization(root, org_a)["id"] == org_a
    with pytest.raises(AuthorizationError):
        store.get_organization(outsider, org_a)
    with pytest.raises(NotFoundError):
        store.get_organization(member, str(uuid4()))


def test_service_write_failure_is_transient(store):
    store.service_write_failure = "connection reset by peer"
    with pytest.raises(TransientStoreError):
        store.bootstrap_profile({"id": str(uuid4()), "email": "a@co.com"})
    assert store.profiles == {}
