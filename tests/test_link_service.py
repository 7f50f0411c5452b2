"""
Test the link service HTTP surface, role sync webhook and settings.
"""

import json

import httpx
import pytest
from fastapi.testclient import TestClient

from accountlink.config import LinkSettings
from accountlink.errors import SyncError
from accountlink.link_service import LinkService, create_app
from accountlink.reconciler import LinkReconciler
from accountlink.role_sync import WebhookRoleSync


@pytest.fixture
def service(store, make_lookup_client, role_sync):
    return LinkService(LinkReconciler(make_lookup_client(), store, role_sync=role_sync))


def test_link_endpoint_creates_link(service, store):
    """Test that POST /api/v1/link returns the outcome and persists the link."""
    with TestClient(create_app(service=service)) as client:
        response = client.post("/api/v1/link", json={"requester_id": 1001, "username": "Player1"})

    assert response.status_code == 200
    body = response.json()
    assert body["state"] == "linked"
    assert body["account_id"] == 42
    assert body["reply"] == "Linked <@1001> to game account Player1 (42)!"
    assert store.find_owner(42) == 1001


def test_link_endpoint_returns_failures_as_outcomes(service):
    """Test that terminal failures are normal responses carrying the reply."""
    with TestClient(create_app(service=service)) as client:
        response = client.post("/api/v1/link", json={"requester_id": 1001, "username": "a" * 17})

    assert response.status_code == 200
    assert response.json()["state"] == "failed"
    assert response.json()["error"] == "InvalidInput"


def test_link_endpoint_rejects_out_of_range_requester(service):
    """Test that requester ids outside the signed 64-bit range are rejected."""
    with TestClient(create_app(service=service)) as client:
        response = client.post("/api/v1/link", json={"requester_id": 2**63, "username": "Player1"})

    assert response.status_code == 422


def test_get_linked_account(service, store):
    """Test reading back a requester's link."""
    store.create_link(1001, 42)

    with TestClient(create_app(service=service)) as client:
        found = client.get("/api/v1/links/1001")
        missing = client.get("/api/v1/links/2002")

    assert found.status_code == 200
    assert found.json() == {"requester_id": 1001, "account_id": 42}
    assert missing.status_code == 404


def test_health(service):
    with TestClient(create_app(service=service)) as client:
        assert client.get("/health").json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_webhook_role_sync_posts_requester():
    """Test that the webhook receives the requester id."""
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(204)

    sync = WebhookRoleSync(
        "https://bot.test/sync", credential="secret",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )
    await sync.sync(1001)
    await sync.close()

    assert seen[0].method == "POST"
    assert seen[0].headers["Authorization"] == "secret"
    assert json.loads(seen[0].content) == {"requester_id": 1001}


def _unreachable(request):
    raise httpx.ConnectError("down", request=request)


@pytest.mark.asyncio
@pytest.mark.parametrize("handler", [
    lambda request: httpx.Response(500, text="no"),
    _unreachable,
])
async def test_webhook_role_sync_failures(handler):
    """Test that webhook errors and transport failures raise SyncError."""
    sync = WebhookRoleSync("https://bot.test/sync", client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    with pytest.raises(SyncError):
        await sync.sync(1001)


def test_settings_from_env(monkeypatch):
    """Test reading settings from ACCOUNTLINK_* variables."""
    monkeypatch.setenv("ACCOUNTLINK_BASE_URL", "https://game.test/")
    monkeypatch.setenv("ACCOUNTLINK_SERVER_PASSWORD", "secret")
    monkeypatch.setenv("ACCOUNTLINK_LOOKUP_TIMEOUT", "2.5")
    monkeypatch.setenv("ACCOUNTLINK_PORT", "9000")
    monkeypatch.delenv("ACCOUNTLINK_ROLE_SYNC_URL", raising=False)

    settings = LinkSettings.from_env()

    assert settings.base_url == "https://game.test"
    assert settings.server_password == "secret"
    assert settings.lookup_timeout == 2.5
    assert settings.port == 9000
    assert settings.lookup_path == "/gsp/lookup"
    assert settings.role_sync_url is None


def test_settings_require_base_url(monkeypatch):
    monkeypatch.delenv("ACCOUNTLINK_BASE_URL", raising=False)

    with pytest.raises(ValueError):
        LinkSettings.from_env()


def test_settings_reject_non_http_base_url():
    with pytest.raises(ValueError):
        LinkSettings(base_url="ftp://game.test")
