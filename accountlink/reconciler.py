"""
Link reconciliation.

Drives a single link request through lookup, insert and conflict
classification, and turns every terminal state into exactly one reply:

    start -> looked up -> linked | conflict_self | conflict_other | failed

Store calls are blocking and run in worker threads; nothing here holds a
lock across an await. Once an insert has been handed to the store it is
shielded from caller cancellation, and a committed link is always followed by
a role sync attempt.
"""

import asyncio
import logging
from typing import Optional, Set

from .display_resolver import DisplayNameResolver
from .errors import (
    ErrorKind,
    LinkConflict,
    LookupFailure,
    LookupNotFound,
    StoreError,
    SyncError,
)
from .link_store import LinkStore
from .lookup_client import LookupClient
from .models import LinkOutcome, LinkState, LookupResult, is_valid_requester_id, is_valid_username
from .role_sync import RoleSync

logger = logging.getLogger(__name__)


FAILURE_REPLIES = {
    ErrorKind.INVALID_INPUT: ":x: Invalid username was provided.",
    ErrorKind.LOOKUP_TRANSPORT_ERROR: ":x: Failed to make a request to the server!",
    ErrorKind.LOOKUP_NOT_FOUND: (
        ":x: Failed to find the user by the given name. "
        "Make sure you are currently online and try again."
    ),
    ErrorKind.LOOKUP_SERVER_ERROR: ":x: Server returned an unexpected error.",
    ErrorKind.LOOKUP_UNPARSEABLE: ":x: Server returned unparsable data.",
    ErrorKind.STORE_ERROR: ":x: Unknown database error has occurred.",
}

ALREADY_LINKED_REPLY = ":x: Already linked. Use the `/unlink` command to unlink your account."

LINKED_ELSEWHERE_REPLY = (
    ":x: This game account is already linked to another account ({owner}). "
    "If this is not you, please contact the moderator team."
)

LINKED_REPLY = "Linked <@{requester_id}> to game account {name} ({account_id})!"

LINKED_SYNC_FAILED_REPLY = (
    "Linked <@{requester_id}> to game account {name} ({account_id}) successfully, "
    "but role syncing failed. Try to execute the `/sync` command manually."
)


class LinkReconciler:
    """Links requesters to game accounts and classifies every conflict."""

    def __init__(
        self,
        lookup_client: LookupClient,
        store: LinkStore,
        role_sync: Optional[RoleSync] = None,
        display_resolver: Optional[DisplayNameResolver] = None
    ):
        """
        Initialize reconciler.

        Args:
            lookup_client: Resolves usernames to game accounts
            store: Link persistence
            role_sync: Post-link side effect; skipped when None
            display_resolver: Names existing owners in conflict replies
        """
        self.lookup_client = lookup_client
        self.store = store
        self.role_sync = role_sync
        self.display_resolver = display_resolver or DisplayNameResolver()
        # Syncs still running for callers that were cancelled mid-request
        self._detached: Set[asyncio.Task] = set()

    async def link(self, requester_id: int, username: str) -> LinkOutcome:
        """
        Link a requester to the game account behind a username.

        Args:
            requester_id: Requesting account id
            username: Claimed game account username, unvalidated

        Returns:
            LinkOutcome with the terminal state and its reply
        """
        if not is_valid_requester_id(requester_id):
            logger.info(f"Rejected link request: invalid requester id {requester_id!r}")
            return self._failed(ErrorKind.INVALID_INPUT)

        if not is_valid_username(username):
            logger.info(f"Rejected link request from {requester_id}: invalid username {username!r}")
            return self._failed(ErrorKind.INVALID_INPUT)

        try:
            result = await self.lookup_client.lookup(username)
        except LookupNotFound as e:
            logger.info(f"Link request from {requester_id}: {e.message}")
            return self._failed(e.kind)
        except LookupFailure as e:
            logger.error(f"[{e.code}] {e.message}")
            return self._failed(e.kind)

        insert = asyncio.ensure_future(
            asyncio.to_thread(self.store.create_link, requester_id, result.account_id)
        )
        try:
            await asyncio.shield(insert)
        except LinkConflict:
            return await self._resolve_conflict(requester_id, result)
        except StoreError as e:
            logger.error(f"[{e.code}] {e.message}", exc_info=e)
            return self._failed(ErrorKind.STORE_ERROR)
        except asyncio.CancelledError:
            insert.add_done_callback(lambda done: self._sync_if_committed(requester_id, done))
            raise

        sync_failed = await self._sync_shielded(requester_id)
        template = LINKED_SYNC_FAILED_REPLY if sync_failed else LINKED_REPLY
        return LinkOutcome(
            state=LinkState.LINKED,
            reply=template.format(requester_id=requester_id, name=result.name, account_id=result.account_id),
            error=ErrorKind.SYNC_ERROR if sync_failed else None,
            account_id=result.account_id,
            account_name=result.name,
            sync_failed=sync_failed,
        )

    async def _resolve_conflict(self, requester_id: int, result: LookupResult) -> LinkOutcome:
        """Work out who holds the account after an insert was rejected."""
        try:
            owner = await asyncio.to_thread(self.store.find_owner, result.account_id)
        except StoreError as e:
            # Ownership unknown: report a store failure rather than guess.
            logger.error(f"[{e.code}] conflict disambiguation failed: {e.message}", exc_info=e)
            return self._failed(ErrorKind.STORE_ERROR)

        if owner is not None and owner != requester_id:
            owner_display = await self.display_resolver.resolve(owner)
            logger.info(
                f"Requester {requester_id} tried to link account {result.account_id} owned by {owner}"
            )
            return LinkOutcome(
                state=LinkState.CONFLICT_OTHER,
                reply=LINKED_ELSEWHERE_REPLY.format(owner=owner_display),
                error=ErrorKind.STORE_CONFLICT_OTHER,
                account_id=result.account_id,
                account_name=result.name,
                owner_id=owner,
            )

        if owner is None:
            # The account has no owner, so the requester's own row must be the collision.
            logger.warning(
                f"Conflict linking {requester_id} to {result.account_id} but account has no owner; "
                f"treating as already linked"
            )

        return LinkOutcome(
            state=LinkState.CONFLICT_SELF,
            reply=ALREADY_LINKED_REPLY,
            error=ErrorKind.STORE_CONFLICT_SELF,
            account_id=result.account_id,
            account_name=result.name,
        )

    async def _sync_shielded(self, requester_id: int) -> bool:
        """Run role sync to completion even if the caller goes away. Returns True on failure."""
        task = asyncio.ensure_future(self._run_sync(requester_id))
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            self._detach(task)
            raise

    async def _run_sync(self, requester_id: int) -> bool:
        if self.role_sync is None:
            return False

        try:
            await self.role_sync.sync(requester_id)
        except SyncError as e:
            logger.warning(f"Failed to sync roles for {requester_id}: {e.message}")
            return True
        except Exception as e:
            logger.warning(f"Failed to sync roles for {requester_id}: {e!r}", exc_info=True)
            return True

        return False

    def _sync_if_committed(self, requester_id: int, insert: asyncio.Future) -> None:
        """Done-callback for inserts whose caller was cancelled."""
        if insert.cancelled() or insert.exception() is not None:
            return
        logger.info(f"Link for {requester_id} committed after caller cancelled; syncing roles anyway")
        self._detach(asyncio.ensure_future(self._run_sync(requester_id)))

    def _detach(self, task: asyncio.Task) -> None:
        self._detached.add(task)
        task.add_done_callback(self._detached.discard)

    @staticmethod
    def _failed(kind: ErrorKind) -> LinkOutcome:
        return LinkOutcome(state=LinkState.FAILED, reply=FAILURE_REPLIES[kind], error=kind)
