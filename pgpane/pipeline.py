"""Query execution pipeline: non-blocking submit, streaming, cancel-then-replace."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from contextlib import aclosing
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, overload

from .connections import ConnectionGateway
from .query import ColumnHeaders, CommandTag, QueryExecutionError, Row, prepare_statement

LOG = logging.getLogger(__name__)


class QueryStatus(str, Enum):
    """Lifecycle of a single query execution."""

    PENDING = "pending"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def active(self) -> bool:
        return self in {QueryStatus.PENDING, QueryStatus.STREAMING}


class RowLog(Sequence[Row]):
    """Prefix view of an append-only row list.

    Every snapshot of one execution shares the same list and only remembers how
    many rows it had seen, so appending a batch costs the batch, not the whole log.
    """

    __slots__ = ("_rows", "_length")

    def __init__(self, rows: list[Row] | None = None, length: int | None = None) -> None:
        self._rows = rows if rows is not None else []
        self._length = len(self._rows) if length is None else length

    def extended(self, batch: Sequence[Row]) -> RowLog:
        """Snapshot with ``batch`` appended; only valid on the newest snapshot."""

        if self._length != len(self._rows):
            raise ValueError("Only the newest row snapshot can be extended.")
        self._rows.extend(batch)
        return RowLog(self._rows, len(self._rows))

    def __len__(self) -> int:
        return self._length

    @overload
    def __getitem__(self, index: int) -> Row: ...

    @overload
    def __getitem__(self, index: slice) -> tuple[Row, ...]: ...

    def __getitem__(self, index: int | slice) -> Row | tuple[Row, ...]:
        if isinstance(index, slice):
            return tuple(self._rows[position] for position in range(self._length)[index])
        if index < 0:
            index += self._length
        if not 0 <= index < self._length:
            raise IndexError("row index out of range")
        return self._rows[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Sequence) or isinstance(other, (str, bytes)):
            return NotImplemented
        return len(other) == self._length and all(a == b for a, b in zip(self, other))

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"RowLog({self[:]!r})"


@dataclass(frozen=True, slots=True)
class QueryExecution:
    """Immutable snapshot of one submitted statement and what it produced so far."""

    id: int
    sql: str
    status: QueryStatus = QueryStatus.PENDING
    columns: tuple[str, ...] = ()
    rows: Sequence[Row] = field(default_factory=RowLog)
    error: str | None = None
    command_tag: str | None = None
    started_at: float = 0.0
    elapsed_ms: int | None = None

    @property
    def active(self) -> bool:
        return self.status.active


@dataclass(frozen=True, slots=True)
class HeadersArrived:
    execution_id: int
    columns: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class RowsArrived:
    execution_id: int
    rows: tuple[Row, ...]


@dataclass(frozen=True, slots=True)
class StreamEnded:
    execution_id: int
    command_tag: str | None = None


@dataclass(frozen=True, slots=True)
class StreamFailed:
    execution_id: int
    message: str


Notification = HeadersArrived | RowsArrived | StreamEnded | StreamFailed
ExecutionListener = Callable[[QueryExecution], None]


class QueryPipeline:
    """Owns the current QueryExecution and the background task feeding it.

    The background task never touches the execution: it posts notifications on
    a queue and the owner applies them in order. Notifications for anything but
    the current, still-active execution are dropped.
    """

    def __init__(
        self,
        gateway: ConnectionGateway,
        *,
        batch_size: int = 200,
        flush_interval: float = 0.1,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._gateway = gateway
        self._batch_size = max(1, batch_size)
        self._flush_interval = flush_interval
        self._clock = clock
        self._channel: asyncio.Queue[Notification] = asyncio.Queue()
        self._current: QueryExecution | None = None
        self._task: asyncio.Task[None] | None = None
        self._next_id = 1
        self._listeners: set[ExecutionListener] = set()

    @property
    def current(self) -> QueryExecution | None:
        """Latest snapshot; safe to hand to the renderer as-is."""

        return self._current

    @property
    def active(self) -> bool:
        return self._current is not None and self._current.active

    def subscribe(self, listener: ExecutionListener) -> Callable[[], None]:
        """Subscribe to execution changes; returns an unsubscribe handle."""

        self._listeners.add(listener)

        def _unsubscribe() -> None:
            self._listeners.discard(listener)

        return _unsubscribe

    def submit(self, sql: str) -> QueryExecution:
        """Start ``sql`` in the background, cancelling any active execution first."""

        if self._cancel_active():
            self._notify()
        execution = QueryExecution(id=self._next_id, sql=sql, started_at=self._clock())
        self._next_id += 1
        try:
            statement = prepare_statement(sql)
        except QueryExecutionError as exc:
            self._current = self._finish(execution, QueryStatus.FAILED, error=str(exc))
            self._notify()
            return self._current
        self._current = execution
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(
            self._stream(execution.id, statement),
            name=f"pgpane-query-{execution.id}",
        )
        LOG.info("Query submitted", extra={"execution_id": execution.id})
        self._notify()
        return execution

    def cancel(self) -> bool:
        """Cancel the active execution without starting another one."""

        if not self._cancel_active():
            return False
        self._notify()
        return True

    def apply(self, notification: Notification) -> bool:
        """Fold one notification into the current execution; stale ones are ignored."""

        current = self._current
        if current is None or notification.execution_id != current.id or not current.active:
            LOG.debug("Discarding stale query notification", extra={"execution_id": notification.execution_id})
            return False
        if isinstance(notification, HeadersArrived):
            updated = replace(current, status=QueryStatus.STREAMING, columns=notification.columns)
        elif isinstance(notification, RowsArrived):
            rows = _extend(current.rows, notification.rows)
            updated = replace(current, status=QueryStatus.STREAMING, rows=rows)
        elif isinstance(notification, StreamEnded):
            updated = self._finish(current, QueryStatus.COMPLETED, command_tag=notification.command_tag)
        else:
            updated = self._finish(current, QueryStatus.FAILED, error=notification.message)
        self._current = updated
        self._notify()
        return True

    def drain(self) -> int:
        """Apply every queued notification without waiting; returns how many applied."""

        applied = 0
        while True:
            try:
                notification = self._channel.get_nowait()
            except asyncio.QueueEmpty:
                return applied
            if self.apply(notification):
                applied += 1

    async def next_notification(self) -> bool:
        """Wait for the next notification and apply it."""

        notification = await self._channel.get()
        return self.apply(notification)

    async def run(self) -> None:
        """Pump notifications forever; the app runs this as a worker."""

        while True:
            await self.next_notification()

    async def wait(self) -> QueryExecution | None:
        """Wait for the background task to finish, then apply what it posted."""

        task = self._task
        if task is not None:
            await asyncio.wait({task})
        self.drain()
        return self._current

    async def shutdown(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait({task})

    async def _stream(self, execution_id: int, statement: str) -> None:
        post = self._channel.put_nowait
        batch: list[Row] = []
        last_flush = self._clock()
        command_tag: str | None = None

        def _flush() -> None:
            nonlocal batch, last_flush
            if batch:
                post(RowsArrived(execution_id, tuple(batch)))
                batch = []
            last_flush = self._clock()

        try:
            async with aclosing(self._gateway.run_query(statement)) as stream:
                async for item in stream:
                    if isinstance(item, ColumnHeaders):
                        post(HeadersArrived(execution_id, item.names))
                    elif isinstance(item, CommandTag):
                        command_tag = item.status
                    else:
                        batch.append(item)
                        if len(batch) >= self._batch_size or self._clock() - last_flush >= self._flush_interval:
                            _flush()
        except QueryExecutionError as exc:
            _flush()
            post(StreamFailed(execution_id, str(exc)))
            return
        except Exception as exc:
            LOG.exception("Query stream crashed", extra={"execution_id": execution_id})
            _flush()
            post(StreamFailed(execution_id, str(exc) or exc.__class__.__name__))
            return
        _flush()
        post(StreamEnded(execution_id, command_tag))

    def _cancel_active(self) -> bool:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
        current = self._current
        if current is not None and current.active:
            LOG.info("Query cancelled", extra={"execution_id": current.id})
            self._current = self._finish(current, QueryStatus.CANCELLED)
            return True
        return False

    def _finish(self, execution: QueryExecution, status: QueryStatus, **changes: object) -> QueryExecution:
        elapsed_ms = int((self._clock() - execution.started_at) * 1000)
        return replace(execution, status=status, elapsed_ms=max(0, elapsed_ms), **changes)

    def _notify(self) -> None:
        current = self._current
        if current is None:
            return
        for listener in tuple(self._listeners):
            listener(current)


def _extend(rows: Sequence[Row], batch: Sequence[Row]) -> Sequence[Row]:
    if isinstance(rows, RowLog):
        return rows.extended(batch)
    return RowLog([*rows, *batch])


__all__ = [
    "HeadersArrived",
    "Notification",
    "QueryExecution",
    "QueryPipeline",
    "QueryStatus",
    "RowLog",
    "RowsArrived",
    "StreamEnded",
    "StreamFailed",
]
