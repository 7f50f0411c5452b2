"""
Client for the authoritative account lookup service.

Resolves a username to the game account id and current display name. Each
failure mode raises its own exception; there are no retries at this layer.
"""

import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from .errors import LookupNotFound, LookupServerError, LookupTransportError, LookupUnparseable
from .models import LookupResult

logger = logging.getLogger(__name__)


class LookupClient:
    """
    HTTP client for the account lookup endpoint.

    The credential is sent unchanged as the Authorization header on every
    call. Usernames must be validated by the caller.
    """

    def __init__(
        self,
        base_url: str,
        credential: str = "",
        lookup_path: str = "/gsp/lookup",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize lookup client.

        Args:
            base_url: URL of the lookup service
            credential: Value of the Authorization header
            lookup_path: Path of the lookup endpoint
            timeout: Request timeout in seconds
            client: Pre-built client, mainly for tests
        """
        self.base_url = base_url.rstrip("/")
        self.lookup_path = "/" + lookup_path.lstrip("/")
        self.credential = credential
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def lookup(self, username: str) -> LookupResult:
        """
        Resolve a username to a game account.

        Args:
            username: Pre-validated username

        Returns:
            LookupResult with the account id and display name

        Raises:
            LookupTransportError: The request failed before a usable response arrived
            LookupNotFound: The service answered 404
            LookupServerError: Any other non-success status
            LookupUnparseable: Success status with a malformed or undecodable body
        """
        try:
            response = await self.client.get(
                f"{self.base_url}{self.lookup_path}",
                params={"username": username},
                headers={"Authorization": self.credential}
            )
        except httpx.DecodingError as e:
            # Body arrived but its content encoding is broken.
            raise LookupUnparseable("<undecodable body>", e) from e
        except httpx.RequestError as e:
            raise LookupTransportError(e) from e

        if not response.is_success:
            if response.status_code == 404:
                raise LookupNotFound(username)

            raise LookupServerError(response.status_code, response.text or "<no message>")

        body = response.text
        try:
            result = LookupResult.model_validate_json(body)
        except ValidationError as e:
            raise LookupUnparseable(body, e) from e

        logger.debug(f"Resolved username '{username}' to account {result.account_id}")
        return result

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
