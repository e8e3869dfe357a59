"""Change events and the feed that publishes them.

Every persisted mutation is described by a ``ChangeEvent`` carrying the table,
the kind of change and the new row. Services collect events in a
``ChangeBatch`` while a unit of work runs; the batch is published only after
the unit of work commits, so subscribers never see rolled-back changes.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Awaitable, Callable, Union
from uuid import UUID

logger = logging.getLogger(__name__)


class ChangeEventType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


@dataclass(frozen=True)
class ChangeEvent:
    """One row-level change: ``{table, eventType, new}``."""

    table: str
    event_type: ChangeEventType
    new_record: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def for_entity(cls, entity: Any, event_type: ChangeEventType) -> ChangeEvent:
        return cls(
            table=entity.__tablename__,
            event_type=event_type,
            new_record=_jsonable(entity.to_dict()),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "table": self.table,
            "eventType": self.event_type.value,
            "new": self.new_record,
        }

    def to_signal(self) -> dict[str, Any]:
        """The event without its row, enough for a client to refetch."""
        return {"table": self.table, "eventType": self.event_type.value}


ChangeHandler = Callable[[ChangeEvent], Union[None, Awaitable[None]]]


@dataclass
class _Subscription:
    handler: ChangeHandler
    tables: set[str] | None  # None = all tables


class ChangeBatch:
    """Events collected during one unit of work."""

    def __init__(self) -> None:
        self.events: list[ChangeEvent] = []

    def add(self, event: ChangeEvent) -> None:
        self.events.append(event)

    def inserted(self, entity: Any) -> None:
        self.add(ChangeEvent.for_entity(entity, ChangeEventType.INSERT))

    def updated(self, entity: Any) -> None:
        self.add(ChangeEvent.for_entity(entity, ChangeEventType.UPDATE))

    def deleted(self, entity: Any) -> None:
        self.add(ChangeEvent.for_entity(entity, ChangeEventType.DELETE))

    def clear(self) -> None:
        self.events = []

    def __len__(self) -> int:
        return len(self.events)


class ChangeFeed:
    """Publishes change events to subscribers.

    Handlers may be sync or async and are isolated: a failing handler is
    logged and does not stop delivery to the others.

    Usage:
        feed = ChangeFeed()
        feed.subscribe(handler, tables={"advances"})

        async with feed.batch() as batch:
            batch.inserted(advance)
        # published when the block exits without an exception
    """

    def __init__(self) -> None:
        self._subscriptions: list[_Subscription] = []

    def subscribe(
        self, handler: ChangeHandler, tables: set[str] | None = None
    ) -> None:
        self._subscriptions.append(_Subscription(handler=handler, tables=tables))

    def unsubscribe(self, handler: ChangeHandler) -> None:
        self._subscriptions = [
            sub for sub in self._subscriptions if sub.handler is not handler
        ]

    async def publish(self, event: ChangeEvent) -> list[Exception]:
        """Deliver an event to all matching subscribers.

        Returns list of any exceptions raised by handlers.
        """
        errors: list[Exception] = []
        for sub in list(self._subscriptions):
            if sub.tables is not None and event.table not in sub.tables:
                continue
            try:
                result = sub.handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.exception(
                    "Change handler %s failed for %s on %s",
                    sub.handler,
                    event.event_type.value,
                    event.table,
                )
                errors.append(e)
        return errors

    async def publish_batch(self, batch: ChangeBatch) -> list[Exception]:
        errors: list[Exception] = []
        events = batch.events
        batch.clear()
        for event in events:
            errors.extend(await self.publish(event))
        return errors

    def batch(self) -> _FeedBatchContext:
        """Collect events and publish them when the context exits cleanly."""
        return _FeedBatchContext(self)


class _FeedBatchContext:
    def __init__(self, feed: ChangeFeed) -> None:
        self._feed = feed
        self._batch = ChangeBatch()
        self.errors: list[Exception] = []

    async def __aenter__(self) -> ChangeBatch:
        return self._batch

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if exc_type is None:
            self.errors = await self._feed.publish_batch(self._batch)
        else:
            # Unit of work failed - discard
            self._batch.clear()


_feed: ChangeFeed | None = None


def get_change_feed() -> ChangeFeed:
    """Process-wide feed shared by the API and the websocket hub."""
    global _feed
    if _feed is None:
        _feed = ChangeFeed()
    return _feed
