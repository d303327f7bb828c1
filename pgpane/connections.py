"""Connection gateways: the single live server session behind the explorer."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, AsyncIterator, Mapping, Protocol, Sequence, runtime_checkable

import asyncpg
from sqlglot import exp, parse_one
from sqlglot.errors import ParseError, TokenError

from .models import ConnectionProfile, DatabaseEntry, TableEntry
from .query import (
    DIALECT,
    ColumnHeaders,
    CommandTag,
    QueryExecutionError,
    StreamItem,
    prepare_statement,
    returns_rows,
)

LOG = logging.getLogger(__name__)


class ConnectionBackendError(RuntimeError):
    """Raised when the gateway cannot open its connection."""


class MetadataFetchError(RuntimeError):
    """Raised when listing databases or tables fails."""


@runtime_checkable
class ConnectionGateway(Protocol):
    """Protocol implemented by connection gateways."""

    @property
    def database(self) -> str | None:
        """Database the live connection is attached to."""

    async def connect(self) -> None:
        """Open the connection; raises ConnectionBackendError."""

    async def list_databases(self) -> tuple[DatabaseEntry, ...]:
        """Databases visible to the session; raises MetadataFetchError."""

    async def list_tables(self, database: str) -> tuple[TableEntry, ...]:
        """Tables of ``database``; subsequent queries run against it."""

    def run_query(self, sql: str) -> AsyncIterator[StreamItem]:
        """Stream column headers then rows; raises QueryExecutionError."""

    async def close(self) -> None:
        """Release the connection."""


class AsyncpgGateway:
    """Gateway that talks to PostgreSQL via asyncpg.

    One connection is held at a time. PostgreSQL scopes a session to a single
    database, so listing the tables of another database reconnects. Every
    operation is serialized through one lock since the protocol is not
    pipeline-safe.
    """

    _DATABASES_QUERY = """
        SELECT datname
        FROM pg_database
        WHERE datistemplate = false AND datallowconn
        ORDER BY datname
    """

    _TABLES_QUERY = """
        SELECT table_schema, table_name
        FROM information_schema.tables
        WHERE table_schema NOT IN ('pg_catalog', 'information_schema')
        ORDER BY table_schema, table_name
    """

    def __init__(
        self,
        profile: ConnectionProfile,
        *,
        connect_timeout: float = 3.0,
        fetch_batch_size: int = 200,
    ) -> None:
        self._profile = profile
        self._connect_timeout = connect_timeout
        self._batch_size = fetch_batch_size
        self._lock = asyncio.Lock()
        self._conn: Any = None
        self._database: str | None = profile.database

    @property
    def profile(self) -> ConnectionProfile:
        return self._profile

    @property
    def database(self) -> str | None:
        return self._database

    async def connect(self) -> None:
        async with self._lock:
            await self._open(self._database)

    async def close(self) -> None:
        async with self._lock:
            await self._close_current()

    async def list_databases(self) -> tuple[DatabaseEntry, ...]:
        async with self._lock:
            try:
                conn = await self._require(self._database)
                rows = await conn.fetch(self._DATABASES_QUERY)
            except ConnectionBackendError as exc:
                raise MetadataFetchError(str(exc)) from exc
            except Exception as exc:
                raise MetadataFetchError(f"Failed to list databases: {exc}") from exc
        return tuple(DatabaseEntry(name=str(row["datname"])) for row in rows)

    async def list_tables(self, database: str) -> tuple[TableEntry, ...]:
        async with self._lock:
            try:
                conn = await self._require(database)
                rows = await conn.fetch(self._TABLES_QUERY)
            except ConnectionBackendError as exc:
                raise MetadataFetchError(str(exc)) from exc
            except Exception as exc:
                raise MetadataFetchError(f"Failed to list tables of '{database}': {exc}") from exc
        return tuple(
            TableEntry(name=str(row["table_name"]), schema=str(row["table_schema"]))
            for row in rows
        )

    async def run_query(self, sql: str) -> AsyncIterator[StreamItem]:
        statement = prepare_statement(sql)
        async with self._lock:
            try:
                conn = await self._require(self._database)
            except ConnectionBackendError as exc:
                raise QueryExecutionError(str(exc)) from exc
            started = time.perf_counter()
            try:
                if returns_rows(statement):
                    async with conn.transaction():
                        prepared = await conn.prepare(statement)
                        yield ColumnHeaders(tuple(attr.name for attr in prepared.get_attributes()))
                        async for record in prepared.cursor(prefetch=self._batch_size):
                            yield tuple(record.values())
                else:
                    status = await conn.execute(statement)
                    yield ColumnHeaders(())
                    yield CommandTag(str(status))
            except QueryExecutionError:
                raise
            except Exception as exc:
                raise QueryExecutionError(str(exc)) from exc
            LOG.debug(
                "Query finished",
                extra={"elapsed_ms": int((time.perf_counter() - started) * 1000)},
            )

    async def _require(self, database: str | None) -> Any:
        if self._conn is None or self._conn.is_closed() or database != self._database:
            await self._open(database)
        return self._conn

    async def _open(self, database: str | None) -> None:
        await self._close_current()
        try:
            self._conn = await asyncpg.connect(**self._connect_kwargs(database))
        except Exception as exc:
            raise ConnectionBackendError(
                f"Failed to connect to profile '{self._profile.name}': {exc}"
            ) from exc
        self._database = database
        LOG.info("Connected", extra={"profile": self._profile.name, "database": database})

    async def _close_current(self) -> None:
        conn, self._conn = self._conn, None
        if conn is None:
            return
        try:
            await conn.close()
        except Exception:  # pragma: no cover - best effort cleanup
            LOG.debug("Ignoring error while closing connection", exc_info=True)

    def _connect_kwargs(self, database: str | None) -> dict[str, object]:
        profile = self._profile
        kwargs: dict[str, object] = {}
        if profile.dsn:
            kwargs["dsn"] = profile.dsn
        else:
            kwargs["host"] = profile.host or "localhost"
            if profile.port is not None:
                kwargs["port"] = profile.port
            if profile.user:
                kwargs["user"] = profile.user
            if profile.password:
                kwargs["password"] = profile.password
        if database:
            kwargs["database"] = database
        kwargs.setdefault("timeout", self._connect_timeout)
        return kwargs


DemoTable = tuple[Sequence[str], Sequence[Sequence[object]]]

DEMO_DATABASES: Mapping[str, Mapping[str, DemoTable]] = {
    "app_db": {
        "public.users": (
            ("id", "email", "active"),
            ((1, "alice@example.com", True), (2, "bob@example.com", False), (3, "carol@example.com", True)),
        ),
        "public.orders": (
            ("id", "total"),
            ((1, 19.99), (2, 5.0)),
        ),
    },
    "analytics": {
        "analytics.sessions": (
            ("id", "user_id", "device"),
            tuple((idx, idx % 3 + 1, ("ios", "android", "web")[idx % 3]) for idx in range(1, 51)),
        ),
        "analytics.events": (
            ("id", "session_id", "name"),
            tuple((idx, idx % 50 + 1, f"event_{idx}") for idx in range(1, 501)),
        ),
    },
}


class DemoGateway:
    """In-memory gateway serving preset databases; handy offline and in tests."""

    def __init__(
        self,
        databases: Mapping[str, Mapping[str, DemoTable]] | None = None,
        *,
        row_delay: float = 0.0,
    ) -> None:
        self._databases = databases if databases is not None else DEMO_DATABASES
        self._row_delay = row_delay
        self._database: str | None = None
        self.connected = False

    @property
    def database(self) -> str | None:
        return self._database

    async def connect(self) -> None:
        self.connected = True
        self._database = next(iter(self._databases), None)

    async def close(self) -> None:
        self.connected = False

    async def list_databases(self) -> tuple[DatabaseEntry, ...]:
        return tuple(DatabaseEntry(name=name) for name in self._databases)

    async def list_tables(self, database: str) -> tuple[TableEntry, ...]:
        tables = self._databases.get(database)
        if tables is None:
            raise MetadataFetchError(f'database "{database}" does not exist')
        self._database = database
        entries: list[TableEntry] = []
        for key in tables:
            schema, _, name = key.rpartition(".")
            entries.append(TableEntry(name=name, schema=schema or "public"))
        return tuple(entries)

    async def run_query(self, sql: str) -> AsyncIterator[StreamItem]:
        statement = prepare_statement(sql)
        if not returns_rows(statement):
            yield ColumnHeaders(())
            yield CommandTag("OK")
            return
        columns, rows = self._resolve(statement)
        yield ColumnHeaders(tuple(columns))
        for row in rows:
            if self._row_delay:
                await asyncio.sleep(self._row_delay)
            yield tuple(row)

    def _resolve(self, statement: str) -> DemoTable:
        try:
            table = parse_one(statement, read=DIALECT).find(exp.Table)
        except (ParseError, TokenError) as exc:
            raise QueryExecutionError(f"syntax error: {exc}") from exc
        if table is None:
            return ("?column?",), ((1,),)
        tables = self._databases.get(self._database or "", {})
        schema = table.db or "public"
        found = tables.get(f"{schema}.{table.name}")
        if found is None and not table.db:
            found = next(
                (value for key, value in tables.items() if key.rpartition(".")[2] == table.name),
                None,
            )
        if found is None:
            raise QueryExecutionError(f'relation "{table.name}" does not exist')
        return found


class UnavailableGateway:
    """Stands in when no usable profile is configured; every call reports ``reason``."""

    def __init__(self, reason: str) -> None:
        self.reason = reason

    @property
    def database(self) -> str | None:
        return None

    async def connect(self) -> None:
        raise ConnectionBackendError(self.reason)

    async def close(self) -> None:
        return None

    async def list_databases(self) -> tuple[DatabaseEntry, ...]:
        raise MetadataFetchError(self.reason)

    async def list_tables(self, database: str) -> tuple[TableEntry, ...]:
        raise MetadataFetchError(self.reason)

    async def run_query(self, sql: str) -> AsyncIterator[StreamItem]:
        raise QueryExecutionError(self.reason)
        yield ColumnHeaders(())  # pragma: no cover - makes this an async generator


__all__ = [
    "AsyncpgGateway",
    "ConnectionBackendError",
    "ConnectionGateway",
    "DEMO_DATABASES",
    "DemoGateway",
    "MetadataFetchError",
    "UnavailableGateway",
]
