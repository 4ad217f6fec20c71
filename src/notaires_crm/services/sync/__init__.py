"""Synchronization layer between the spreadsheet and the in-memory store."""

from .store import StoreState, Subscription, SyncStore
from .validators import is_valid_interest_zone, is_valid_record
from .write_queue import WriteQueue, requires_immediate_write

__all__ = [
    "SyncStore",
    "StoreState",
    "Subscription",
    "WriteQueue",
    "requires_immediate_write",
    "is_valid_record",
    "is_valid_interest_zone",
]
