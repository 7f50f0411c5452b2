"""
Role sync trigger interface.

Role sync runs after a link is committed. What it does is owned by the host
application; this module only defines the call shape and a webhook
implementation for hosts that expose sync over HTTP.
"""

import logging
from typing import Optional, Protocol

import httpx

from .errors import SyncError

logger = logging.getLogger(__name__)


class RoleSync(Protocol):
    """Best-effort side effect invoked after a successful link."""

    async def sync(self, requester_id: int) -> None:
        """Sync roles for a requester, raising SyncError on failure."""
        ...


class WebhookRoleSync:
    """Triggers role sync by POSTing the requester id to a webhook."""

    def __init__(
        self,
        url: str,
        credential: str = "",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.url = url
        self.credential = credential
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def sync(self, requester_id: int) -> None:
        try:
            response = await self.client.post(
                self.url,
                json={"requester_id": requester_id},
                headers={"Authorization": self.credential}
            )
        except httpx.TransportError as e:
            raise SyncError(f"Role sync request failed: {e!r}", cause=e) from e

        if not response.is_success:
            raise SyncError(
                f"Role sync failed: code {response.status_code}, message: {response.text or '<no message>'}"
            )

        logger.debug(f"Role sync triggered for requester {requester_id}")

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()
