"""Realtime change notification."""

from advance_tracker.realtime.events import (
    ChangeBatch,
    ChangeEvent,
    ChangeEventType,
    ChangeFeed,
    get_change_feed,
)
from advance_tracker.realtime.sync import ClientSync

__all__ = [
    "ChangeBatch",
    "ChangeEvent",
    "ChangeEventType",
    "ChangeFeed",
    "ClientSync",
    "get_change_feed",
]
