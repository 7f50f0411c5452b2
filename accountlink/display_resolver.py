"""
Display name resolution for requesters.

Only used when telling a requester that an account already belongs to
someone else. Resolution is best-effort: cached name, else a fetch through
the configured fetcher, else the raw id.

Usage by a host bot:
    from accountlink.display_resolver import DisplayNameResolver

    async def fetch_name(requester_id: int) -> Optional[str]:
        user = await bot.fetch_user(requester_id)
        return user.name if user else None

    resolver = DisplayNameResolver(fetcher=fetch_name)
"""

import logging
from collections import OrderedDict
from typing import Awaitable, Callable, Optional

import httpx

logger = logging.getLogger(__name__)

Fetcher = Callable[[int], Awaitable[Optional[str]]]


class DisplayNameResolver:
    """Resolves requester ids to '@name' handles with a bounded LRU cache."""

    def __init__(self, fetcher: Optional[Fetcher] = None, max_cache_size: int = 1000):
        """
        Initialize resolver.

        Args:
            fetcher: Async function returning a name for an id, or None if unknown
            max_cache_size: Maximum cached names before LRU eviction
        """
        self.fetcher = fetcher
        self._max_cache_size = max_cache_size
        self._cache: OrderedDict[int, str] = OrderedDict()

    def remember(self, requester_id: int, name: str) -> None:
        """Cache a known name, e.g. from the host's own member cache."""
        self._cache[requester_id] = name
        self._cache.move_to_end(requester_id)
        while len(self._cache) > self._max_cache_size:
            self._cache.popitem(last=False)

    async def resolve(self, requester_id: int) -> str:
        """
        Resolve a requester id to a readable handle.

        Never raises; falls back to the raw id as a string.
        """
        cached = self._cache.get(requester_id)
        if cached is not None:
            self._cache.move_to_end(requester_id)
            return f"@{cached}"

        if self.fetcher is not None:
            try:
                name = await self.fetcher(requester_id)
            except Exception as e:
                logger.debug(f"Display name fetch for {requester_id} failed: {e}")
                name = None

            if name:
                self.remember(requester_id, name)
                return f"@{name}"

        return str(requester_id)


class DiscordUserFetcher:
    """Fetches usernames from the Discord REST API with a bot token."""

    API_BASE = "https://discord.com/api/v10"

    def __init__(self, token: str, timeout: float = 5.0, client: Optional[httpx.AsyncClient] = None):
        self.token = token
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def __call__(self, requester_id: int) -> Optional[str]:
        response = await self.client.get(
            f"{self.API_BASE}/users/{requester_id}",
            headers={"Authorization": f"Bot {self.token}"}
        )
        if response.status_code != 200:
            logger.debug(f"Discord user {requester_id} lookup returned {response.status_code}")
            return None
        return response.json().get("username")

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()
