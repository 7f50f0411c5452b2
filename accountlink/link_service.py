"""
Link service.

Standalone FastAPI service exposing account linking to a chat bot. The bot
forwards the requester id and username and relays the returned reply.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel

from .config import LinkSettings
from .display_resolver import DiscordUserFetcher, DisplayNameResolver
from .errors import StoreError
from .link_store import LinkStore
from .lookup_client import LookupClient
from .models import LinkOutcome, LinkRequest, MAX_REQUESTER_ID
from .reconciler import LinkReconciler
from .role_sync import WebhookRoleSync
from .sqlite_client import SQLiteClient

logger = logging.getLogger(__name__)


# =====================================================================
# API Models
# =====================================================================

class LinkedAccountResponse(BaseModel):
    """Current link of a requester."""
    requester_id: int
    account_id: int


# =====================================================================
# Service State
# =====================================================================

class LinkService:
    """Owns the collaborators behind the HTTP surface."""

    def __init__(self, reconciler: LinkReconciler, closables: Optional[List[Any]] = None):
        self.reconciler = reconciler
        self._closables = closables or []

    @classmethod
    def from_settings(cls, settings: LinkSettings) -> "LinkService":
        """Wire lookup client, store, role sync and display resolver from settings."""
        lookup_client = LookupClient(
            settings.base_url,
            credential=settings.server_password,
            lookup_path=settings.lookup_path,
            timeout=settings.lookup_timeout
        )
        store = LinkStore(SQLiteClient(settings.db_path))
        closables: List[Any] = [lookup_client]

        role_sync = None
        if settings.role_sync_url:
            role_sync = WebhookRoleSync(settings.role_sync_url, credential=settings.server_password)
            closables.append(role_sync)
        else:
            logger.info("No role sync URL configured, links will not trigger role sync")

        fetcher = None
        if settings.discord_token:
            fetcher = DiscordUserFetcher(settings.discord_token)
            closables.append(fetcher)

        reconciler = LinkReconciler(
            lookup_client,
            store,
            role_sync=role_sync,
            display_resolver=DisplayNameResolver(fetcher=fetcher)
        )
        return cls(reconciler, closables)

    async def close(self):
        for closable in self._closables:
            await closable.close()


# =====================================================================
# FastAPI Application
# =====================================================================

def create_app(settings: Optional[LinkSettings] = None, service: Optional[LinkService] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Used to wire a LinkService when none is given
        service: Pre-built service, mainly for tests
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifecycle management."""
        logger.info("Starting link service...")
        app.state.link_service = service or LinkService.from_settings(settings or LinkSettings.from_env())
        yield
        logger.info("Shutting down link service...")
        await app.state.link_service.close()

    app = FastAPI(
        title="Account Link Service",
        description="Links chat accounts to game accounts",
        version="0.1.0",
        lifespan=lifespan
    )

    @app.get("/health")
    async def health_check() -> Dict[str, Any]:
        """Health check endpoint."""
        return {"status": "healthy", "service": "accountlink"}

    @app.post("/api/v1/link", response_model=LinkOutcome)
    async def link_account(link_request: LinkRequest, request: Request) -> LinkOutcome:
        """
        Link a requester to a game account.

        Every terminal outcome, including conflicts and lookup failures, is
        returned with status 200; the reply field carries the message.
        """
        reconciler = request.app.state.link_service.reconciler
        try:
            return await reconciler.link(link_request.requester_id, link_request.username)
        except Exception as e:
            logger.error(f"Error processing link request from {link_request.requester_id}: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail="Failed to process link request")

    @app.get("/api/v1/links/{requester_id}", response_model=LinkedAccountResponse)
    async def get_linked_account(requester_id: int, request: Request) -> LinkedAccountResponse:
        """Get the game account a requester is linked to."""
        if not 0 <= requester_id <= MAX_REQUESTER_ID:
            raise HTTPException(status_code=422, detail="requester_id out of range")

        store = request.app.state.link_service.reconciler.store
        try:
            account_id = await asyncio.to_thread(store.find_account, requester_id)
        except StoreError as e:
            logger.error(f"[{e.code}] {e.message}", exc_info=e)
            raise HTTPException(status_code=500, detail="Failed to read link")

        if account_id is None:
            raise HTTPException(status_code=404, detail="Not linked")

        return LinkedAccountResponse(requester_id=requester_id, account_id=account_id)

    return app


def main():
    """Run the link service with uvicorn."""
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    settings = LinkSettings.from_env()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_level="info")


if __name__ == "__main__":
    main()
