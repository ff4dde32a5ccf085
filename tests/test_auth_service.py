from concurrent.futures import ThreadPoolExecutor

import pytest

from app.core.errors import AuthenticationError
from app.database.backends import create_backend
from app.core.dependencies import build_services
from app.database.base import Caller
from app.modules.organizations.service import slugify
from tests.helpers import PASSWORD, make_settings


def test_signup_with_organization_makes_creator_org_admin(services, store):
    alice = services.auth.sign_up("alice@co.com", PASSWORD, "Alice", "Smith", organization_name="Acme")
    bob = services.auth.sign_up("bob@co.com", PASSWORD, "Bob", "Jones")

    assert alice.success and not alice.degraded
    assert len(store.organizations) == 1
    acme = next(iter(store.organizations.values()))
    assert acme["name"] == "Acme"
    assert acme["slug"] == "acme"
    assert alice.data.profile.role == "org_admin"
    assert alice.data.profile.organization_id == acme["id"]
    assert alice.data.session.access_token

    assert bob.success
    assert bob.data.profile.role == "user"
    assert bob.data.profile.organization_id is None
    assert store.profiles[bob.data.user.id]["first_name"] == "Bob"


def test_reserved_email_ignores_requested_organization(services, settings, store):
    result = services.auth.sign_up(settings.super_admin_email, PASSWORD, organization_name="Evil Corp")

    assert result.success
    assert result.data.profile.role == "super_admin"
    assert result.data.profile.organization_id is None
    assert store.organizations == {}


def test_concurrent_signups_with_same_email(services, store):
    def attempt(_):
        return services.auth.sign_up("dup@co.com", PASSWORD)

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(attempt, range(8)))

    winners = [r for r in results if r.success]
    losers = [r for r in results if not r.success]
    assert len(winners) == 1
    assert len(losers) == 7
    assert all(r.code == "CONFLICT" for r in losers)
    assert all(r.error == "User already exists" for r in losers)
    assert [p["email"] for p in store.profiles.values()] == ["dup@co.com"]


def test_organization_slugs_get_numeric_suffixes(services, store):
    for n in range(3):
        result = services.auth.sign_up(f"founder{n}@co.com", PASSWORD, organization_name="Acme Inc")
        assert result.success

    assert sorted(org["slug"] for org in store.organizations.values()) == ["acme-inc", "acme-inc-2", "acme-inc-3"]


def test_slugify():
    assert slugify("Acme") == "acme"
    assert slugify("  Hello, World! ") == "hello--world-"


def test_signup_survives_profile_store_outage(services, store):
    store.service_write_failure = "connection refused"

    result = services.auth.sign_up("dave@co.com", PASSWORD, organization_name="Dave Co")

    assert result.success
    assert result.degraded
    assert result.data.profile is None
    assert result.data.session is not None
    assert store.organizations == {}

    # The profile is created lazily on the next fetch.
    store.service_write_failure = None
    caller = Caller(principal_id=result.data.user.id, email="dave@co.com")
    profile = services.profiles.get_current_profile(caller)
    assert profile.success
    assert profile.data.role == "user"


def test_current_profile_stays_missing_while_store_is_down(services, store):
    result = services.auth.sign_up("dave@co.com", PASSWORD)
    store.profiles.clear()
    store.service_write_failure = "connection refused"

    profile = services.profiles.get_current_profile(Caller(principal_id=result.data.user.id))

    assert not profile.success
    assert profile.degraded
    assert profile.code == "NOT_FOUND"


def test_sign_in(services, store):
    signup = services.auth.sign_up("erin@co.com", PASSWORD)

    bad = services.auth.sign_in("erin@co.com", "wrong-password")
    assert not bad.success
    assert bad.code == "AUTHENTICATION_FAILED"
    assert bad.error == "Invalid email or password."

    good = services.auth.sign_in(" erin@co.com ", PASSWORD)
    assert good.success and not good.degraded
    assert good.data.user.id == signup.data.user.id
    assert store.profiles[signup.data.user.id]["last_login_at"] is not None


def test_sign_in_is_degraded_when_last_login_cannot_be_recorded(services, store):
    services.auth.sign_up("erin@co.com", PASSWORD)
    store.service_write_failure = "timeout"

    result = services.auth.sign_in("erin@co.com", PASSWORD)

    assert result.success
    assert result.degraded


def test_sign_out_revokes_token(services):
    token = services.auth.sign_up("frank@co.com", PASSWORD).data.session.access_token
    assert services.auth.get_current_user(token).email == "frank@co.com"

    assert services.auth.sign_out(token).success

    with pytest.raises(AuthenticationError):
        services.auth.get_current_user(token)


def test_password_reset_and_update(services, directory, settings):
    token = services.auth.sign_up("gina@co.com", PASSWORD).data.session.access_token

    assert services.auth.reset_password("gina@co.com").success
    assert services.auth.reset_password("nobody@co.com").success
    assert [(r.email, r.redirect_to) for r in directory.password_reset_outbox] == [
        ("gina@co.com", settings.password_reset_redirect_url)
    ]

    assert services.auth.update_password(token, "a-new-password").success
    assert not services.auth.sign_in("gina@co.com", PASSWORD).success
    assert services.auth.sign_in("gina@co.com", "a-new-password").success


def test_weak_password_is_rejected(services, store):
    result = services.auth.sign_up("hank@co.com", "123")

    assert not result.success
    assert result.code == "AUTHENTICATION_FAILED"
    assert "6 characters" in result.error
    assert store.profiles == {}


def test_unconfirmed_email_cannot_sign_in():
    settings = make_settings(memory_auto_confirm_email=False)
    backend = create_backend(settings)
    services = build_services(backend, settings)

    signup = services.auth.sign_up("ivy@co.com", PASSWORD)
    assert signup.success
    assert signup.data.session is None
    assert signup.data.profile.email_verified is False

    result = services.auth.sign_in("ivy@co.com", PASSWORD)
    assert not result.success
    assert result.error == "Email not confirmed"

    backend.directory.confirm_email(signup.data.user.id)
    result = services.auth.sign_in("ivy@co.com", PASSWORD)
    assert result.success and not result.degraded
    assert backend.store.profiles[signup.data.user.id]["email_verified"] is True
