"""
Error types for account linking.

Every failure carries a stable code and an ErrorKind so the reconciler can map
it to exactly one reply, and operators can grep logs by code. Diagnostic
details (status codes, response bodies, causes) live on the exception and are
never copied into user-facing replies.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Terminal failure categories of a link request."""
    INVALID_INPUT = "InvalidInput"
    LOOKUP_TRANSPORT_ERROR = "LookupTransportError"
    LOOKUP_NOT_FOUND = "LookupNotFound"
    LOOKUP_SERVER_ERROR = "LookupServerError"
    LOOKUP_UNPARSEABLE = "LookupUnparseable"
    STORE_CONFLICT_SELF = "StoreConflictSelf"
    STORE_CONFLICT_OTHER = "StoreConflictOther"
    STORE_ERROR = "StoreError"
    SYNC_ERROR = "SyncError"


class AccountLinkError(Exception):
    """Base exception for all account linking failures."""

    def __init__(self, message: str, code: str, kind: ErrorKind):
        super().__init__(message)
        self.message = message
        self.code = code
        self.kind = kind


class InvalidUsername(AccountLinkError):
    """Username failed the shape check (non-ASCII or too long)."""

    def __init__(self, username: str):
        super().__init__(
            f"Invalid username: {username!r}",
            "INVALID_USERNAME", ErrorKind.INVALID_INPUT,
        )
        self.username = username


# ─── Lookup Errors ──────────────────────────────────────────────

class LookupFailure(AccountLinkError):
    """Base class for identity lookup failures."""


class LookupTransportError(LookupFailure):
    """The lookup request never got a response."""

    def __init__(self, cause: Exception):
        super().__init__(
            f"User lookup failed: {cause!r}",
            "LOOKUP_TRANSPORT", ErrorKind.LOOKUP_TRANSPORT_ERROR,
        )
        self.cause = cause


class LookupNotFound(LookupFailure):
    """No account currently matches the username."""

    def __init__(self, username: str):
        super().__init__(
            f"User lookup found no account for {username!r}",
            "LOOKUP_NOT_FOUND", ErrorKind.LOOKUP_NOT_FOUND,
        )
        self.username = username


class LookupServerError(LookupFailure):
    """The lookup service answered with an unexpected status."""

    def __init__(self, status_code: int, body: str):
        super().__init__(
            f"User lookup failed: code {status_code}, message: {body}",
            "LOOKUP_SERVER_ERROR", ErrorKind.LOOKUP_SERVER_ERROR,
        )
        self.status_code = status_code
        self.body = body


class LookupUnparseable(LookupFailure):
    """The lookup service returned success with a malformed body."""

    def __init__(self, body: str, cause: Optional[Exception] = None):
        super().__init__(
            f"User lookup failed: failed to parse response: {cause!r}\nResponse was: {body}",
            "LOOKUP_UNPARSEABLE", ErrorKind.LOOKUP_UNPARSEABLE,
        )
        self.body = body
        self.cause = cause


# ─── Store Errors ───────────────────────────────────────────────

class LinkConflict(AccountLinkError):
    """
    Insert rejected by a uniqueness constraint.

    Deliberately does not say which column collided; callers disambiguate
    with LinkStore.find_owner().
    """

    def __init__(self, requester_id: int, account_id: int):
        super().__init__(
            f"Link ({requester_id}, {account_id}) violates a uniqueness constraint",
            "LINK_CONFLICT", ErrorKind.STORE_CONFLICT_SELF,
        )
        self.requester_id = requester_id
        self.account_id = account_id


class StoreError(AccountLinkError):
    """Any storage failure other than a uniqueness conflict."""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message, "STORE_ERROR", ErrorKind.STORE_ERROR)
        self.cause = cause


# ─── Side Effects ───────────────────────────────────────────────

class SyncError(AccountLinkError):
    """Role sync failed after a successful link."""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message, "SYNC_ERROR", ErrorKind.SYNC_ERROR)
        self.cause = cause
