"""Integration tests for the admin API

Tests cover:
- Alias CRUD and the wildcard toggle
- Security stats, manual ban/unban and expired ban cleanup
- 503 while the security system is unavailable
- Admin token enforcement
- Health reporting and request correlation IDs
"""

import pytest
from fastapi.testclient import TestClient

from ghostinbox.main import create_app
from ghostinbox.security.engine import UnavailableMitigationEngine

pytestmark = pytest.mark.integration


@pytest.fixture
def client(settings, alias_store, mitigation):
    app = create_app(settings=settings, alias_store=alias_store, mitigation=mitigation)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def degraded_client(settings, alias_store):
    app = create_app(
        settings=settings,
        alias_store=alias_store,
        mitigation=UnavailableMitigationEngine("disk I/O error"),
    )
    with TestClient(app) as test_client:
        yield test_client


class TestAliasEndpoints:
    """Test /aliases"""

    def test_create_and_list(self, client: TestClient):
        response = client.post("/aliases", json={"alias": "Shop@Example.com", "note": " Online shopping "})

        assert response.status_code == 201
        assert response.json() == {"success": True, "message": "Alias shop created"}

        data = client.get("/aliases").json()
        assert data["total"] == 1
        alias = data["aliases"][0]
        assert alias["alias"] == "shop"
        assert alias["enabled"] is True
        assert alias["notes"] == "Online shopping"
        assert alias["last_sender"] is None

    def test_duplicate_rejected(self, client: TestClient):
        client.post("/aliases", json={"alias": "shop"})

        response = client.post("/aliases", json={"alias": "SHOP"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Alias already exists"

    def test_blank_alias_rejected(self, client: TestClient):
        response = client.post("/aliases", json={"alias": "  "})

        assert response.status_code == 400
        assert response.json()["detail"] == "Missing alias"

    def test_update_note(self, client: TestClient, alias_store):
        client.post("/aliases", json={"alias": "shop"})

        response = client.patch("/aliases/shop", json={"note": "Groceries"})

        assert response.status_code == 200
        assert alias_store.get("shop").notes == "Groceries"

    def test_block_and_unblock(self, client: TestClient, alias_store):
        client.post("/aliases", json={"alias": "news"})

        assert client.post("/aliases/news/block").status_code == 200
        assert alias_store.get("news").enabled is False

        assert client.post("/aliases/news/unblock").status_code == 200
        assert alias_store.get("news").enabled is True

    def test_delete(self, client: TestClient, alias_store):
        client.post("/aliases", json={"alias": "shop"})

        assert client.delete("/aliases/shop").status_code == 200
        assert alias_store.get("shop") is None
        assert client.delete("/aliases/shop").status_code == 404

    @pytest.mark.parametrize(
        "method,path",
        [
            ("patch", "/aliases/missing"),
            ("post", "/aliases/missing/block"),
            ("post", "/aliases/missing/unblock"),
            ("delete", "/aliases/missing"),
        ],
    )
    def test_missing_alias_is_404(self, client: TestClient, method, path):
        kwargs = {"json": {"note": "x"}} if method == "patch" else {}

        response = getattr(client, method)(path, **kwargs)

        assert response.status_code == 404
        assert response.json()["detail"] == "Alias missing not found"


class TestWildcardEndpoints:
    """Test /wildcard"""

    def test_default_enabled(self, client: TestClient):
        assert client.get("/wildcard").json() == {"enabled": True}

    def test_set_and_toggle(self, client: TestClient, alias_store):
        assert client.put("/wildcard", json={"enabled": False}).json() == {"enabled": False}
        assert alias_store.get_wildcard_policy() is False

        assert client.post("/wildcard/toggle").json() == {"enabled": True}
        assert alias_store.get_wildcard_policy() is True


class TestSecurityEndpoints:
    """Test /security"""

    def test_manual_ban_shows_in_stats(self, client: TestClient, packet_filter):
        response = client.post("/security/ban", json={"ip": "198.51.100.7"})

        assert response.status_code == 200
        assert response.json()["message"] == "IP 198.51.100.7 has been banned"

        stats = client.get("/security/stats").json()
        assert stats["active_bans"] == 1
        assert stats["total_banned_ips"] == 1
        ban = stats["banned_ips"][0]
        assert ban["ip"] == "198.51.100.7"
        assert ban["reason"] == "Manual ban"
        assert ban["duration"] == 7200
        assert ban["remaining"] == 7200
        assert ban["is_permanent"] is False
        assert stats["events"][0]["event_type"] == "BAN"
        assert [row["ip"] for row in stats["recent_ips"]] == ["198.51.100.7"]

    def test_ban_with_reason(self, client: TestClient):
        client.post("/security/ban", json={"ip": "198.51.100.7", "reason": "Spam run"})

        stats = client.get("/security/stats").json()

        assert stats["banned_ips"][0]["reason"] == "Spam run"

    def test_whitelisted_ip_refused(self, client: TestClient):
        response = client.post("/security/ban", json={"ip": "127.0.0.1"})

        assert response.status_code == 400

    def test_invalid_ip_rejected(self, client: TestClient):
        response = client.post("/security/ban", json={"ip": "not-an-ip"})

        assert response.status_code == 422

    def test_unban(self, client: TestClient, mitigation):
        client.post("/security/ban", json={"ip": "198.51.100.7"})

        response = client.post("/security/unban", json={"ip": "198.51.100.7"})

        assert response.status_code == 200
        assert mitigation.is_banned("198.51.100.7") is False

    def test_cleanup_removes_expired_bans(self, client: TestClient, clock):
        client.post("/security/ban", json={"ip": "198.51.100.7"})
        clock.advance(7201)

        response = client.post("/security/cleanup")

        assert response.json() == {"success": True, "message": "Removed 1 expired bans"}
        assert client.get("/security/stats").json()["active_bans"] == 0

    @pytest.mark.parametrize(
        "method,path,body",
        [
            ("get", "/security/stats", None),
            ("post", "/security/cleanup", None),
            ("post", "/security/ban", {"ip": "198.51.100.7"}),
            ("post", "/security/unban", {"ip": "198.51.100.7"}),
        ],
    )
    def test_unavailable_security_is_503(self, degraded_client: TestClient, method, path, body):
        kwargs = {"json": body} if body else {}

        response = getattr(degraded_client, method)(path, **kwargs)

        assert response.status_code == 503
        assert response.json()["detail"] == "Security system unavailable"


class TestAdminToken:
    """Test X-Admin-Token enforcement"""

    @pytest.fixture
    def guarded_client(self, settings, alias_store, mitigation):
        settings.ADMIN_API_TOKEN = "s3cret-token"
        app = create_app(settings=settings, alias_store=alias_store, mitigation=mitigation)
        with TestClient(app) as test_client:
            yield test_client

    def test_missing_token_rejected(self, guarded_client: TestClient):
        assert guarded_client.get("/aliases").status_code == 401
        assert guarded_client.get("/security/stats").status_code == 401

    def test_wrong_token_rejected(self, guarded_client: TestClient):
        response = guarded_client.get("/aliases", headers={"X-Admin-Token": "guess"})

        assert response.status_code == 401

    def test_valid_token_accepted(self, guarded_client: TestClient):
        response = guarded_client.get("/wildcard", headers={"X-Admin-Token": "s3cret-token"})

        assert response.status_code == 200

    def test_health_stays_open(self, guarded_client: TestClient):
        assert guarded_client.get("/health").status_code == 200


class TestHealth:
    """Test /health"""

    def test_healthy(self, client: TestClient):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["components"]["database"]["status"] == "healthy"
        assert data["components"]["security"]["security_status"] == "operational"

    def test_unavailable_security_degrades(self, degraded_client: TestClient):
        response = degraded_client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "degraded"
        assert data["components"]["security"]["security_status"] == "unavailable"

    def test_request_id_echoed(self, client: TestClient):
        response = client.get("/health", headers={"X-Request-ID": "req-42"})

        assert response.headers["X-Request-ID"] == "req-42"

    def test_request_id_generated(self, client: TestClient):
        response = client.get("/health")

        assert response.headers["X-Request-ID"]
