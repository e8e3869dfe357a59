"""Client-side reaction to the change feed."""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Union
from uuid import UUID

from advance_tracker.realtime.events import ChangeEvent, ChangeEventType

logger = logging.getLogger(__name__)

Refetch = Callable[[str], Union[None, Awaitable[None]]]
Alert = Callable[[str, str], Union[None, Awaitable[None]]]


async def _call(fn: Callable[..., Any], *args: Any) -> None:
    result = fn(*args)
    if inspect.isawaitable(result):
        await result


class ClientSync:
    """Keeps one client's view converged with the store.

    Every change triggers a refetch of the affected collection. A new
    notification addressed to the current user additionally raises an alert.
    """

    def __init__(self, current_user_id: UUID | str, refetch: Refetch, alert: Alert):
        self.current_user_id = str(current_user_id)
        self._refetch = refetch
        self._alert = alert

    async def __call__(self, event: ChangeEvent) -> None:
        await _call(self._refetch, event.table)

        if self.is_alert(event):
            record = event.new_record
            await _call(self._alert, record.get("message", ""), record.get("type", "info"))

    def is_alert(self, event: ChangeEvent) -> bool:
        return (
            event.table == "notifications"
            and event.event_type == ChangeEventType.INSERT
            and str(event.new_record.get("user_id")) == self.current_user_id
        )
