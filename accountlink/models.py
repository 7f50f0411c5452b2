"""
Account link models.

Defines the records exchanged between the lookup service, the link store
and the reconciler, plus the terminal outcome returned to callers.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .errors import ErrorKind

# Requester ids are platform snowflakes; they must fit a signed 64-bit column.
MAX_REQUESTER_ID = 2**63 - 1

# Range of the INTEGER column holding game account ids.
MIN_ACCOUNT_ID = -2**63
MAX_ACCOUNT_ID = 2**63 - 1

MAX_USERNAME_LENGTH = 16


# =====================================================================
# USERNAME SHAPE CHECK
# =====================================================================

def is_valid_username(username: str) -> bool:
    """
    Basic shape check applied before any network or store access.

    Only rejects what the lookup service can never match: non-ASCII text
    and names longer than MAX_USERNAME_LENGTH.
    """
    return username.isascii() and len(username) <= MAX_USERNAME_LENGTH


def is_valid_requester_id(requester_id: int) -> bool:
    """Requester ids are non-negative and fit a signed 64-bit column."""
    return (
        isinstance(requester_id, int)
        and not isinstance(requester_id, bool)
        and 0 <= requester_id <= MAX_REQUESTER_ID
    )


# =====================================================================
# LOOKUP SERVICE
# =====================================================================

class LookupResult(BaseModel):
    """
    Account resolved by the lookup service. Never persisted.

    Parsed strictly: strings, floats and booleans are not account ids, and
    ids must fit the signed 64-bit store column.
    """
    model_config = {"strict": True}

    account_id: int = Field(ge=MIN_ACCOUNT_ID, le=MAX_ACCOUNT_ID, description="Authoritative game account id")
    name: str = Field(description="Current display name of the account")


# =====================================================================
# LINK STORE
# =====================================================================

class LinkRecord(BaseModel):
    """A persisted requester <-> game account mapping."""
    model_config = {"frozen": True}

    requester_id: int = Field(ge=0, le=MAX_REQUESTER_ID, description="Chat-platform account id")
    account_id: int = Field(description="Game account id")


# =====================================================================
# LINK REQUESTS AND OUTCOMES
# =====================================================================

class LinkState(str, Enum):
    """Terminal states of the link state machine."""
    LINKED = "linked"
    CONFLICT_SELF = "conflict_self"
    CONFLICT_OTHER = "conflict_other"
    FAILED = "failed"


class LinkRequest(BaseModel):
    """A link request as supplied by the chat command surface."""
    requester_id: int = Field(ge=0, le=MAX_REQUESTER_ID, description="Requesting account id")
    username: str = Field(description="Claimed game account username")


class LinkOutcome(BaseModel):
    """The single terminal result of a link request."""
    state: LinkState
    reply: str = Field(description="User-facing reply, free of diagnostics")
    error: Optional[ErrorKind] = Field(default=None, description="Failure kind for non-linked states")
    account_id: Optional[int] = Field(default=None)
    account_name: Optional[str] = Field(default=None)
    owner_id: Optional[int] = Field(default=None, description="Existing owner when the account belongs to someone else")
    sync_failed: bool = Field(default=False, description="Link succeeded but role sync did not")

    @field_validator('error')
    @classmethod
    def validate_error_kind(cls, v, info):
        """Linked outcomes only ever carry a sync failure."""
        state = info.data.get('state')
        if state == LinkState.LINKED and v not in (None, ErrorKind.SYNC_ERROR):
            raise ValueError(f"Linked outcome cannot carry error {v}")
        return v

    @property
    def linked(self) -> bool:
        return self.state == LinkState.LINKED
