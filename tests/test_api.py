import logging
from uuid import uuid4

from fastapi.testclient import TestClient

from app.main import create_app
from tests.helpers import PASSWORD, auth_headers, make_settings


def _signup(client, email, **extra):
    response = client.post("/api/v1/auth/signup", json={"email": email, "password": PASSWORD, **extra})
    assert response.status_code == 201, response.text
    body = response.json()
    return body["data"]["user"]["id"], body["data"]["session"]["access_token"]


def test_health_and_ready(client):
    health = client.get("/health")
    assert health.status_code == 200
    assert health.json() == {"status": "healthy"}
    assert health.headers["X-Frame-Options"] == "DENY"
    assert client.get("/ready").json() == {"status": "ready"}


def test_signup_and_profile_roundtrip(client):
    response = client.post("/api/v1/auth/signup", json={
        "email": "alice@co.com",
        "password": PASSWORD,
        "first_name": "Alice",
        "organization_name": "Acme",
    })
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["degraded"] is False
    assert body["data"]["profile"]["role"] == "org_admin"
    token = body["data"]["session"]["access_token"]

    me = client.get("/api/v1/profiles/me", headers=auth_headers(token))
    assert me.status_code == 200
    profile = me.json()["data"]
    assert profile["first_name"] == "Alice"
    assert profile["organization"]["name"] == "Acme"

    current = client.get("/api/v1/auth/me", headers=auth_headers(token)).json()["data"]
    assert current["user"]["email"] == "alice@co.com"
    assert current["profile"]["id"] == current["user"]["id"]


def test_requests_without_valid_token_are_rejected(client):
    missing = client.get("/api/v1/profiles/me")
    assert missing.status_code == 401
    assert missing.json()["success"] is False
    assert missing.json()["code"] == "AUTHENTICATION_FAILED"

    bogus = client.get("/api/v1/profiles/me", headers=auth_headers("not-a-token"))
    assert bogus.status_code == 401


def test_signin_failures_do_not_leak_provider_text(client):
    _signup(client, "bob@co.com")

    bad = client.post("/api/v1/auth/signin", json={"email": "bob@co.com", "password": "nope-nope"})
    assert bad.status_code == 401
    assert bad.json()["error"] == "Invalid email or password."

    good = client.post("/api/v1/auth/signin", json={"email": "bob@co.com", "password": PASSWORD})
    assert good.status_code == 200
    assert good.json()["data"]["session"]["token_type"] == "bearer"


def test_duplicate_signup_is_a_conflict(client):
    _signup(client, "bob@co.com")
    again = client.post("/api/v1/auth/signup", json={"email": "bob@co.com", "password": PASSWORD})
    assert again.status_code == 409
    assert again.json() == {"success": False, "error": "User already exists", "code": "CONFLICT", "degraded": False}


def test_invalid_email_is_rejected(client):
    response = client.post("/api/v1/auth/signup", json={"email": "not-an-email", "password": PASSWORD})
    assert response.status_code == 422


def test_self_service_update_cannot_escalate(client):
    user_id, token = _signup(client, "bob@co.com")

    renamed = client.put("/api/v1/profiles/me", headers=auth_headers(token), json={"first_name": "Robert", "role": "super_admin"})
    assert renamed.status_code == 200
    assert renamed.json()["data"]["first_name"] == "Robert"
    assert renamed.json()["data"]["role"] == "user"

    escalate = client.put(f"/api/v1/profiles/{user_id}", headers=auth_headers(token), json={"role": "super_admin"})
    assert escalate.status_code == 403
    assert escalate.json()["code"] == "FORBIDDEN"


def test_forbidden_and_not_found_are_distinct(client):
    _, alice_token = _signup(client, "alice@co.com")
    bob_id, _ = _signup(client, "bob@co.com")

    hidden = client.get(f"/api/v1/profiles/{bob_id}", headers=auth_headers(alice_token))
    assert hidden.status_code == 403

    missing = client.get(f"/api/v1/profiles/{uuid4()}", headers=auth_headers(alice_token))
    assert missing.status_code == 404
    assert missing.json()["code"] == "NOT_FOUND"


def test_super_admin_assigns_members_to_an_organization(client, settings):
    alice_id, alice_token = _signup(client, "alice@co.com", organization_name="Acme")
    bob_id, bob_token = _signup(client, "bob@co.com")
    _, root_token = _signup(client, settings.super_admin_email)

    acme_id = client.get("/api/v1/profiles/me", headers=auth_headers(alice_token)).json()["data"]["organization_id"]

    # Organization admins can read their members but never reassign them.
    denied = client.put(f"/api/v1/profiles/{bob_id}", headers=auth_headers(alice_token), json={"organization_id": acme_id})
    assert denied.status_code == 403

    everyone = client.get("/api/v1/profiles", headers=auth_headers(root_token)).json()["data"]
    assert len(everyone) == 3

    assigned = client.put(
        f"/api/v1/profiles/{bob_id}",
        headers=auth_headers(root_token),
        json={"role": "manager", "organization_id": acme_id},
    )
    assert assigned.status_code == 200
    assert assigned.json()["data"]["role"] == "manager"

    visible = client.get("/api/v1/profiles", headers=auth_headers(bob_token)).json()["data"]
    assert {p["id"] for p in visible} == {alice_id, bob_id}
    org = client.get(f"/api/v1/organizations/{acme_id}", headers=auth_headers(bob_token))
    assert org.status_code == 200
    assert org.json()["data"]["slug"] == "acme"


def test_organization_hidden_from_non_members(client):
    _, alice_token = _signup(client, "alice@co.com", organization_name="Acme")
    _, bob_token = _signup(client, "bob@co.com")
    acme_id = client.get("/api/v1/profiles/me", headers=auth_headers(alice_token)).json()["data"]["organization_id"]

    response = client.get(f"/api/v1/organizations/{acme_id}", headers=auth_headers(bob_token))
    assert response.status_code == 403


def test_reconcile_requires_super_admin(client, settings):
    _, bob_token = _signup(client, "bob@co.com")
    _, root_token = _signup(client, settings.super_admin_email)

    assert client.post("/api/v1/bootstrap/reconcile", headers=auth_headers(bob_token)).status_code == 403

    response = client.post("/api/v1/bootstrap/reconcile", headers=auth_headers(root_token))
    assert response.status_code == 200
    report = response.json()["data"]
    assert report["principals_processed"] == 2
    assert report["super_admin"]["profile"]["role"] == "super_admin"


def test_analytics_routes(client):
    _, alice_token = _signup(client, "alice@co.com", organization_name="Acme")
    acme_id = client.get("/api/v1/profiles/me", headers=auth_headers(alice_token)).json()["data"]["organization_id"]

    created = client.post(
        "/api/v1/analytics",
        headers=auth_headers(alice_token),
        json={"organization_id": acme_id, "metric_type": "workflow_runs", "metric_value": 12},
    )
    assert created.status_code == 201

    listed = client.get("/api/v1/analytics", params={"metric_type": "workflow_runs"}, headers=auth_headers(alice_token))
    assert [m["metric_value"] for m in listed.json()["data"]] == [12]


def test_signout_invalidates_session(client):
    _, token = _signup(client, "bob@co.com")

    assert client.post("/api/v1/auth/signout", headers=auth_headers(token)).status_code == 200
    assert client.get("/api/v1/profiles/me", headers=auth_headers(token)).status_code == 401


def test_password_reset_route(client, backend):
    _signup(client, "bob@co.com")
    response = client.post("/api/v1/auth/reset-password", json={"email": "bob@co.com"})
    assert response.status_code == 200
    assert response.json() == {"success": True, "degraded": False}
    assert [r.email for r in backend.directory.password_reset_outbox] == ["bob@co.com"]


def test_startup_reconciles_super_admin(backend):
    settings = make_settings(reconcile_on_startup=True)
    principal, _ = backend.directory.sign_up(settings.super_admin_email, PASSWORD)
    assert backend.store.profiles == {}

    with TestClient(create_app(settings=settings, backend=backend)):
        pass

    assert backend.store.profiles[principal.id]["role"] == "super_admin"


def test_startup_logs_reserved_identity_mismatch(backend, caplog):
    backend.store.reserved_email = "someone-else@co.com"

    with caplog.at_level(logging.ERROR):
        with TestClient(create_app(settings=make_settings(), backend=backend)):
            pass

    assert any("Reserved super admin email mismatch" in r.getMessage() for r in caplog.records)
