"""
Shared fixtures for account link tests.

The lookup service is faked with httpx.MockTransport and the store runs on a
throwaway SQLite file per test.
"""

from typing import Callable, Dict, List, Tuple

import httpx
import pytest

from accountlink.errors import SyncError
from accountlink.link_store import LinkStore
from accountlink.lookup_client import LookupClient
from accountlink.sqlite_client import SQLiteClient

BASE_URL = "https://game.test"
CREDENTIAL = "server-password"

# username -> (account_id, display name)
DEFAULT_ACCOUNTS: Dict[str, Tuple[int, str]] = {
    "Player1": (42, "Player1"),
    "Rival": (77, "Rival"),
}


class RecordingRoleSync:
    """Role sync stand-in that records calls and can be told to fail."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: List[int] = []

    async def sync(self, requester_id: int) -> None:
        self.calls.append(requester_id)
        if self.fail:
            raise SyncError("role service unavailable")


def accounts_handler(accounts: Dict[str, Tuple[int, str]]) -> Callable[[httpx.Request], httpx.Response]:
    """Lookup endpoint that answers from a fixed account table, 404 otherwise."""

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/gsp/lookup"
        assert request.headers["Authorization"] == CREDENTIAL
        account = accounts.get(request.url.params["username"])
        if account is None:
            return httpx.Response(404)
        return httpx.Response(200, json={"account_id": account[0], "name": account[1]})

    return handler


@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "links.db")


@pytest.fixture
def store(db_path) -> LinkStore:
    return LinkStore(SQLiteClient(db_path))


@pytest.fixture
def make_lookup_client() -> Callable[..., LookupClient]:
    """Factory building a LookupClient around a request handler."""

    def factory(handler=None) -> LookupClient:
        transport = httpx.MockTransport(handler or accounts_handler(DEFAULT_ACCOUNTS))
        return LookupClient(BASE_URL, credential=CREDENTIAL, client=httpx.AsyncClient(transport=transport))

    return factory


@pytest.fixture
def role_sync() -> RecordingRoleSync:
    return RecordingRoleSync()
