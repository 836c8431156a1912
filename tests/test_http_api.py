"""HTTP API: auth, update/info/rollback routes, force-recheck redirect.

Coverage:
  GET  /v1/health                      public, status + services
  GET  /v1/plugins/{slug}/update       401 without token, decision payload
  GET  /v1/plugins/{slug}/info         details view
  GET  /v1/plugins/{slug}/rollback     403 without capability, 404 when unavailable
  POST /v1/plugins/{slug}/rollback     200 on success, 400 with errorCode on failure
  POST /v1/plugins/{slug}/check-update 303 redirect with a valid nonce, 403 otherwise
"""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from upkeep.api.main import create_app
from upkeep.auth.jwt import JWTManager
from upkeep.exceptions import ProfileError
from upkeep.types import FetchFailure
from upkeep.updater.engine import Updater

from tests.conftest import PLUGIN_ID, SECRET, FakeHost, FakeInstaller

CATALOG = {
    "new_version": "2.1.0",
    "package": "https://updates.acme.test/dl/acme-2.1.0.zip",
    "allow_rollback": "yes",
    "versions": {"1.9.0": "https://updates.acme.test/dl/acme-1.9.0.zip"},
}


# ── Fixtures ───────────────────────────────────────────────────────────────────

@pytest.fixture(autouse=True)
def _secret(monkeypatch):
    from upkeep.config import config
    monkeypatch.setattr(config, "secret_key", SECRET)


@pytest.fixture
def fetcher():
    fetcher = MagicMock()
    fetcher.fetch.return_value = dict(CATALOG)
    return fetcher


@pytest.fixture
def installer():
    return FakeInstaller()


@pytest.fixture
def client(session, config, nonces, fetcher, installer):
    def factory(slug):
        if slug != "acme-widgets":
            raise ProfileError(f"No plugin profile for '{slug}'")
        return Updater(session, fetcher=fetcher, host=FakeHost(), installer=installer, nonces=nonces, cfg=config)

    return TestClient(create_app(updater_factory=factory))


def _headers(capabilities=("update_plugins",), actor="alice"):
    token = JWTManager().create_token(actor, list(capabilities))
    return {"Authorization": f"Bearer {token}"}


# ── Health / auth ──────────────────────────────────────────────────────────────

class TestHealthAndAuth:

    def test_health_is_public(self, client):
        response = client.get("/v1/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] in ("ok", "degraded")
        assert data["services"]["api"] is True
        assert response.headers["X-Content-Type-Options"] == "nosniff"

    def test_missing_token(self, client):
        response = client.get("/v1/plugins/acme-widgets/update")
        assert response.status_code == 401
        assert response.json()["detail"] == "Missing Authorization header"

    def test_bad_scheme(self, client):
        response = client.get("/v1/plugins/acme-widgets/update", headers={"Authorization": "Basic abc"})
        assert response.status_code == 401

    def test_garbage_token(self, client):
        response = client.get("/v1/plugins/acme-widgets/update", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid token"

    def test_unknown_plugin(self, client):
        response = client.get("/v1/plugins/ghost/update", headers=_headers())
        assert response.status_code == 404


# ── Update / info ──────────────────────────────────────────────────────────────

class TestUpdateRoutes:

    def test_update_available(self, client):
        data = client.get("/v1/plugins/acme-widgets/update", headers=_headers()).json()
        assert data["available"] is True
        assert data["version"] == "2.0.0"
        assert data["new_version"] == "2.1.0"
        assert data["allow_rollback"] is True
        assert data["check_update_url"].startswith("/v1/plugins/acme-widgets/check-update?nonce=")

    def test_server_down(self, client, fetcher):
        fetcher.fetch.return_value = FetchFailure(reason="timeout")
        data = client.get("/v1/plugins/acme-widgets/update?refresh=true", headers=_headers()).json()
        assert data["available"] is False
        assert data["reason"] == "transport_failure"

    def test_info(self, client):
        data = client.get("/v1/plugins/acme-widgets/info", headers=_headers()).json()
        assert data["name"] == "Acme Widgets"
        assert data["allow_rollback"] is True
        assert set(data["versions"]) == {"1.9.0", "trunk"}


# ── Rollback ───────────────────────────────────────────────────────────────────

class TestRollbackRoutes:

    def _page(self, client, headers):
        response = client.get("/v1/plugins/acme-widgets/rollback", headers=headers)
        assert response.status_code == 200
        return response.json()

    def test_page(self, client):
        page = self._page(client, _headers())
        assert page["pluginName"] == "Acme Widgets"
        assert page["currentVersion"] == "2.0.0"
        assert [v["version"] for v in page["versions"]] == ["1.9.0"]
        assert page["nonce"]

    def test_page_requires_capability(self, client):
        response = client.get("/v1/plugins/acme-widgets/rollback", headers=_headers(capabilities=()))
        assert response.status_code == 403

    def test_page_unavailable(self, client, fetcher):
        fetcher.fetch.return_value = {**CATALOG, "allow_rollback": "no"}
        response = client.get("/v1/plugins/acme-widgets/rollback", headers=_headers())
        assert response.status_code == 404
        assert "Acme Widgets" in response.json()["detail"]

    def test_rollback_success(self, client, installer):
        headers = _headers()
        page = self._page(client, headers)
        response = client.post(
            "/v1/plugins/acme-widgets/rollback",
            json={"targetVersion": "1.9.0", "nonce": page["nonce"]},
            headers=headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["error"] is False
        assert data["targetVersion"] == "1.9.0"
        assert data["versionID"] == "1-9-0"
        assert data["plugin"] == PLUGIN_ID
        assert installer.calls[0][0] == "https://updates.acme.test/dl/acme-1.9.0.zip"

    def test_nonce_from_other_actor(self, client, installer):
        page = self._page(client, _headers(actor="alice"))
        response = client.post(
            "/v1/plugins/acme-widgets/rollback",
            json={"targetVersion": "1.9.0", "nonce": page["nonce"]},
            headers=_headers(actor="mallory"),
        )
        assert response.status_code == 400
        assert response.json()["errorCode"] == "validation_failure"
        assert installer.calls == []

    def test_rollback_without_capability(self, client, installer):
        page = self._page(client, _headers())
        response = client.post(
            "/v1/plugins/acme-widgets/rollback",
            json={"targetVersion": "1.9.0", "nonce": page["nonce"]},
            headers=_headers(capabilities=()),
        )
        assert response.status_code == 400
        assert response.json()["errorCode"] == "validation_failure"
        assert installer.calls == []

    def test_unknown_version(self, client):
        headers = _headers()
        page = self._page(client, headers)
        response = client.post(
            "/v1/plugins/acme-widgets/rollback",
            json={"targetVersion": "0.1.0", "nonce": page["nonce"]},
            headers=headers,
        )
        assert response.status_code == 400
        assert response.json()["errorCode"] == "no_target_version"


# ── Force recheck ──────────────────────────────────────────────────────────────

class TestCheckUpdate:

    def test_redirects_after_recheck(self, client, fetcher):
        headers = _headers()
        link = client.get("/v1/plugins/acme-widgets/update", headers=headers).json()["check_update_url"]
        response = client.post(link, headers=headers, follow_redirects=False)
        assert response.status_code == 303
        assert response.headers["location"] == "/plugins"

    def test_invalid_nonce(self, client):
        response = client.post(
            "/v1/plugins/acme-widgets/check-update?nonce=forged", headers=_headers(), follow_redirects=False
        )
        assert response.status_code == 403
