# tests/API/test_cms_api_integration.py
# Description: End-to-end checks of the HTTP boundary with a real app on temporary storage.
#
# Imports
from unittest.mock import AsyncMock, MagicMock
#
# Third-party imports
import pytest
from fastapi.testclient import TestClient
#
# Local imports
from cms_Server_API.app.core.config import settings
from cms_Server_API.app.main import create_app
#
########################################################################################################################
#
# Functions:

ADMIN_USER = "owner"
ADMIN_PASS = "s3cret-pass"


def build_config(tmp_path, **overrides):
    config = dict(settings)
    config.update({
        "CONTENT_STORE_DIR": tmp_path / "admin",
        "SHARE_LINKS_FILE": tmp_path / "admin" / "share-links.json",
        "SHARE_LINKS_LEGACY_FILE": tmp_path / "legacy-share-links.json",
        "HISTORY_MAX_ENTRIES": 0,
        "GITHUB_SYNC_ENABLED": False,
        "ADMIN_USER": ADMIN_USER,
        "ADMIN_PASS": ADMIN_PASS,
        "JWT_SECRET": "api-test-secret",
        "ADMIN_REQUIRE_HTTPS": True,
        "ADMIN_LOGIN_DISABLED": False,
        "ADMIN_ENV_ISSUES": [],
        "IS_PRODUCTION": False,
    })
    config.update(overrides)
    return config


@pytest.fixture
def app(tmp_path):
    return create_app(build_config(tmp_path))


@pytest.fixture
def client(app):
    with TestClient(app, base_url="https://testserver") as test_client:
        app.state.session_guard.sleep = AsyncMock()
        yield test_client


@pytest.fixture
def admin_client(client):
    response = client.post("/api/v1/admin-access/login", json={"username": ADMIN_USER, "password": ADMIN_PASS})
    assert response.status_code == 200, response.text
    return client


def _package(name, **extra):
    return {"name": name, "price": "3000", "category": "wedding", **extra}


# == Admin access ==
def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_status_when_logged_out(client):
    body = client.get("/api/v1/admin-access/status").json()
    assert body == {"authenticated": False, "expiresAt": None, "loginDisabled": False, "envIssues": []}


def test_login_sets_cookie_and_status_reports_session(client):
    response = client.post("/api/v1/admin-access/login", json={"username": ADMIN_USER, "password": ADMIN_PASS})

    assert response.status_code == 200
    assert response.json()["success"] is True
    set_cookie = response.headers["set-cookie"]
    assert "admin_access=" in set_cookie
    assert "HttpOnly" in set_cookie
    assert "SameSite=strict" in set_cookie

    status_body = client.get("/api/v1/admin-access/status").json()
    assert status_body["authenticated"] is True
    assert status_body["expiresAt"].endswith("Z")


def test_logout_clears_session(admin_client):
    assert admin_client.post("/api/v1/admin-access/logout").json() == {"success": True}
    assert admin_client.get("/api/v1/admin-access/status").json()["authenticated"] is False


def test_bad_credentials_then_rate_limited(client):
    for _ in range(5):
        response = client.post("/api/v1/admin-access/login", json={"username": ADMIN_USER, "password": "nope"})
        assert response.status_code == 401

    response = client.post("/api/v1/admin-access/login", json={"username": ADMIN_USER, "password": ADMIN_PASS})
    assert response.status_code == 429
    assert int(response.headers["retry-after"]) > 0


def test_login_over_plain_http_is_refused(tmp_path):
    app = create_app(build_config(tmp_path))
    with TestClient(app) as client:
        response = client.post("/api/v1/admin-access/login", json={"username": ADMIN_USER, "password": ADMIN_PASS})
        assert response.status_code == 403

        # A TLS-terminating proxy in front of the app is accepted.
        response = client.post("/api/v1/admin-access/login", json={"username": ADMIN_USER, "password": ADMIN_PASS},
                               headers={"X-Forwarded-Proto": "https"})
        assert response.status_code == 200


def test_login_disabled(tmp_path):
    app = create_app(build_config(tmp_path, ADMIN_LOGIN_DISABLED=True))
    with TestClient(app, base_url="https://testserver") as client:
        response = client.post("/api/v1/admin-access/login", json={"username": ADMIN_USER, "password": ADMIN_PASS})
        assert response.status_code == 403
        assert client.get("/api/v1/admin-access/status").json()["loginDisabled"] is True


# == Content ==
def test_mutations_require_admin(client):
    assert client.post("/api/v1/content/packages", json=_package("A")).status_code == 401
    assert client.delete("/api/v1/content/packages/1").status_code == 401
    assert client.get("/api/v1/content/packages/history").status_code == 401


def test_public_reads(admin_client):
    admin_client.post("/api/v1/content/packages", json=_package("Shown", sortOrder=2))
    admin_client.post("/api/v1/content/packages", json=_package("Hidden", sortOrder=1, visible=False))
    admin_client.post("/api/v1/admin-access/logout")

    all_packages = admin_client.get("/api/v1/content/packages").json()
    visible = admin_client.get("/api/v1/content/packages", params={"visible_only": True}).json()

    assert [p["name"] for p in all_packages] == ["Hidden", "Shown"]
    assert [p["name"] for p in visible] == ["Shown"]
    assert admin_client.get("/api/v1/content/packages/1").json()["name"] == "Shown"


def test_package_crud(admin_client):
    created = admin_client.post("/api/v1/content/packages", json=_package("Gold", features=["album"]))
    assert created.status_code == 201
    package = created.json()
    assert package["id"] == 1
    assert package["createdAt"].endswith("Z")

    updated = admin_client.patch(f"/api/v1/content/packages/{package['id']}", json={"price": "3500"})
    assert updated.json()["price"] == "3500"

    assert admin_client.delete("/api/v1/content/packages/1").json() == {"success": True}
    assert admin_client.delete("/api/v1/content/packages/1").json() == {"success": False}
    assert admin_client.get("/api/v1/content/packages/1").status_code == 404
    assert admin_client.patch("/api/v1/content/packages/1", json={"price": "1"}).status_code == 404


def test_keyed_content(admin_client):
    url = "/api/v1/content/site-content/key/hero_title"
    first = admin_client.put(url, json={"value": "Hello", "category": "home"}).json()
    second = admin_client.put(url, json={"value": "Welcome", "category": "home"}).json()

    assert second["id"] == first["id"]
    assert admin_client.get(url).json()["value"] == "Welcome"

    section = {"key": "faq", "name": "FAQ", "visible": True, "page": "home"}
    assert admin_client.post("/api/v1/content/sections", json=section).status_code == 201
    assert admin_client.post("/api/v1/content/sections", json=section).status_code == 409
    toggled = admin_client.patch("/api/v1/content/sections/key/faq", json={"visible": False}).json()
    assert toggled["visible"] is False
    assert admin_client.delete("/api/v1/content/sections/key/faq").json() == {"success": True}


def test_invalid_content_requests(admin_client):
    assert admin_client.get("/api/v1/content/unicorns").status_code == 404
    assert admin_client.post("/api/v1/content/packages", json=_package("X", colour="red")).status_code == 400
    assert admin_client.post("/api/v1/content/packages", json={"name": "No price"}).status_code == 400
    assert admin_client.put("/api/v1/content/packages/key/gold", json=_package("Gold")).status_code == 400


def test_package_history_endpoints(admin_client):
    admin_client.post("/api/v1/content/packages", json=_package("A"))
    admin_client.patch("/api/v1/content/packages/1", json={"name": "B"})
    admin_client.delete("/api/v1/content/packages/1")

    history = admin_client.get("/api/v1/content/packages/history", params={"package_id": 1}).json()
    assert [entry["action"] for entry in history] == ["delete", "update", "create"]

    update_snapshot = history[1]["snapshot"]
    restored = admin_client.post("/api/v1/content/packages/history/restore", json={"snapshot": update_snapshot})
    assert restored.status_code == 200
    assert restored.json()["name"] == "B"
    assert admin_client.get("/api/v1/content/packages/1").json()["name"] == "B"

    snapshots = admin_client.post("/api/v1/content/packages/history/snapshot").json()
    assert [entry["action"] for entry in snapshots] == ["snapshot"]

    assert admin_client.delete("/api/v1/content/packages/history").json() == {"success": True}
    assert admin_client.get("/api/v1/content/packages/history").json() == []


def test_patch_to_taken_key_conflicts(admin_client):
    admin_client.put("/api/v1/content/contact-info/key/phone", json={"value": "555-0100"})
    email = admin_client.put("/api/v1/content/contact-info/key/email", json={"value": "hi@example.com"}).json()

    response = admin_client.patch(f"/api/v1/content/contact-info/{email['id']}", json={"key": "phone"})

    assert response.status_code == 409
    assert admin_client.get("/api/v1/content/contact-info/key/email").json()["id"] == email["id"]


def test_restore_rejects_invalid_snapshot(admin_client):
    response = admin_client.post("/api/v1/content/packages/history/restore", json={"snapshot": {"id": 42, "bogus": 1}})

    assert response.status_code == 400
    assert admin_client.get("/api/v1/content/packages/42").status_code == 404


def test_store_failure_on_read_is_reported(app, client, monkeypatch):
    monkeypatch.setattr(app.state.content_db.packages, "get_by_id", AsyncMock(side_effect=RuntimeError("disk gone")))

    response = client.get("/api/v1/content/packages/1")

    assert response.status_code == 500
    assert response.json()["detail"] == "An unexpected error occurred while processing your request for package."


# == Share links ==
def test_share_link_lifecycle(admin_client):
    created = admin_client.post("/api/v1/share-links/", json={"ttlHours": 24, "note": "family"})
    assert created.status_code == 201
    link = created.json()
    assert link["permanent"] is False
    assert link["note"] == "family"

    listed = admin_client.get("/api/v1/share-links/").json()
    assert [item["code"] for item in listed] == [link["code"]]

    check = admin_client.get("/api/v1/share-links/validate-short", params={"code": link["code"]}).json()
    assert check == {"valid": True, "expiresAt": link["expiresAt"]}

    extended = admin_client.post("/api/v1/share-links/extend", json={"code": link["code"], "hours": 2}).json()
    assert extended["expiresAt"] > link["expiresAt"]

    assert admin_client.post("/api/v1/share-links/revoke", json={"code": link["code"]}).json() == {"success": True}
    check = admin_client.get("/api/v1/share-links/validate-short", params={"code": link["code"]}).json()
    assert check["valid"] is False

    response = admin_client.post("/api/v1/share-links/extend", json={"code": link["code"], "hours": 2})
    assert response.status_code == 400


def test_share_link_create_validation(admin_client):
    assert admin_client.post("/api/v1/share-links/", json={}).status_code == 400
    assert admin_client.post("/api/v1/share-links/", json={"ttlHours": 500}).status_code == 422
    permanent = admin_client.post("/api/v1/share-links/", json={"permanent": True}).json()
    assert permanent["permanent"] is True
    assert permanent["expiresAt"] is None
    response = admin_client.post("/api/v1/share-links/extend", json={"code": "zzzzz", "hours": 1})
    assert response.status_code == 404


def test_share_link_admin_routes_are_protected(client):
    assert client.get("/api/v1/share-links/").status_code == 401
    assert client.post("/api/v1/share-links/", json={"ttlHours": 1}).status_code == 401
    assert client.post("/api/v1/share-links/revoke", json={"code": "abcd"}).status_code == 401


def test_long_share_token(admin_client):
    issued = admin_client.post("/api/v1/share-links/token", json={"ttlHours": 1}).json()

    valid = admin_client.get("/api/v1/share-links/validate", params={"token": issued["token"]}).json()
    invalid = admin_client.get("/api/v1/share-links/validate", params={"token": issued["token"][:-3] + "xyz"}).json()

    assert valid == {"valid": True, "expiresAt": issued["expiresAt"]}
    assert invalid == {"valid": False, "expiresAt": None}


def test_share_token_failure_is_reported(app, admin_client, monkeypatch):
    monkeypatch.setattr(app.state.link_issuer, "create_share_token", MagicMock(side_effect=RuntimeError("no key")))

    response = admin_client.post("/api/v1/share-links/token", json={"ttlHours": 1})

    assert response.status_code == 500
    assert response.json()["detail"] == "An unexpected error occurred while processing the share link."


def test_unknown_short_code_is_invalid(client):
    assert client.get("/api/v1/share-links/validate-short", params={"code": "k7pq"}).json()["valid"] is False

#
# End of test_cms_api_integration.py
########################################################################################################################
