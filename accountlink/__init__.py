"""
accountlink

Links chat-platform accounts to game accounts through an authoritative
lookup service, keeping the mapping one-to-one on both sides.
"""

from .errors import ErrorKind
from .models import (
    LookupResult,
    LinkRecord,
    LinkRequest,
    LinkOutcome,
    LinkState
)
from .reconciler import LinkReconciler

__all__ = [
    'ErrorKind',
    'LookupResult',
    'LinkRecord',
    'LinkRequest',
    'LinkOutcome',
    'LinkState',
    'LinkReconciler'
]
