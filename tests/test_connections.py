"""Tests for the connection gateways."""

from __future__ import annotations

from typing import Any, AsyncIterator

import pytest

from pgpane.connections import (
    AsyncpgGateway,
    ConnectionBackendError,
    ConnectionGateway,
    DemoGateway,
    MetadataFetchError,
)
from pgpane.models import ConnectionProfile, DatabaseEntry, TableEntry
from pgpane.query import ColumnHeaders, CommandTag, QueryExecutionError, StreamItem


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class _FakeAttribute:
    def __init__(self, name: str) -> None:
        self.name = name


class _FakePrepared:
    def __init__(self, columns: tuple[str, ...], rows: list[dict[str, object]]) -> None:
        self._columns = columns
        self._rows = rows
        self.prefetch: int | None = None

    def get_attributes(self) -> tuple[_FakeAttribute, ...]:
        return tuple(_FakeAttribute(name) for name in self._columns)

    async def _iterate(self) -> AsyncIterator[dict[str, object]]:
        for row in self._rows:
            yield row

    def cursor(self, *, prefetch: int | None = None) -> AsyncIterator[dict[str, object]]:
        self.prefetch = prefetch
        return self._iterate()


class _FakeTransaction:
    async def __aenter__(self) -> _FakeTransaction:
        return self

    async def __aexit__(self, *exc: object) -> None:
        return None


class _FakeConnection:
    def __init__(self, database: str | None) -> None:
        self.database = database
        self.closed = False
        self.executed: list[str] = []
        self.prepared: _FakePrepared | None = None

    async def fetch(self, query: str) -> list[dict[str, str]]:
        if "pg_database" in query:
            return [{"datname": "analytics"}, {"datname": "app_db"}]
        assert "information_schema.tables" in query
        if self.database == "analytics":
            return [{"table_schema": "analytics", "table_name": "events"}]
        return [{"table_schema": "public", "table_name": "orders"}]

    def transaction(self) -> _FakeTransaction:
        return _FakeTransaction()

    async def prepare(self, statement: str) -> _FakePrepared:
        if "missing" in statement:
            raise RuntimeError('relation "missing" does not exist')
        self.prepared = _FakePrepared(("id", "total"), [{"id": 1, "total": 19.99}, {"id": 2, "total": 5.0}])
        return self.prepared

    async def execute(self, statement: str) -> str:
        self.executed.append(statement)
        return "UPDATE 3"

    def is_closed(self) -> bool:
        return self.closed

    async def close(self) -> None:
        self.closed = True


class _Connector:
    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []
        self.connections: list[_FakeConnection] = []

    async def __call__(self, **kwargs: Any) -> _FakeConnection:
        self.calls.append(kwargs)
        conn = _FakeConnection(kwargs.get("database"))
        self.connections.append(conn)
        return conn


@pytest.fixture
def connector(monkeypatch: pytest.MonkeyPatch) -> _Connector:
    fake = _Connector()
    monkeypatch.setattr("pgpane.connections.asyncpg.connect", fake)
    return fake


def _profile() -> ConnectionProfile:
    return ConnectionProfile(
        name="Local",
        host="db",
        port=5433,
        database="postgres",
        user="postgres",
        password="secret",
    )


async def _collect(stream: AsyncIterator[StreamItem]) -> list[StreamItem]:
    return [item async for item in stream]


@pytest.mark.anyio
async def test_lists_databases_and_reconnects_for_tables(connector: _Connector) -> None:
    gateway = AsyncpgGateway(_profile())
    await gateway.connect()

    databases = await gateway.list_databases()
    tables = await gateway.list_tables("analytics")

    assert databases == (DatabaseEntry("analytics"), DatabaseEntry("app_db"))
    assert tables == (TableEntry("events", schema="analytics"),)
    assert gateway.database == "analytics"
    assert [call["database"] for call in connector.calls] == ["postgres", "analytics"]
    assert connector.calls[0]["password"] == "secret"
    assert connector.calls[0]["port"] == 5433
    assert connector.connections[0].closed is True

    await gateway.list_tables("analytics")
    assert len(connector.calls) == 2
    await gateway.close()
    assert connector.connections[-1].closed is True


@pytest.mark.anyio
async def test_run_query_streams_headers_then_rows(connector: _Connector) -> None:
    gateway = AsyncpgGateway(_profile(), fetch_batch_size=25)

    items = await _collect(gateway.run_query("select * from orders"))

    assert items == [ColumnHeaders(("id", "total")), (1, 19.99), (2, 5.0)]
    prepared = connector.connections[-1].prepared
    assert prepared is not None and prepared.prefetch == 25


@pytest.mark.anyio
async def test_run_query_reports_command_tag(connector: _Connector) -> None:
    gateway = AsyncpgGateway(_profile())

    items = await _collect(gateway.run_query("update orders set total = 0"))

    assert items == [ColumnHeaders(()), CommandTag("UPDATE 3")]
    assert connector.connections[-1].executed == ["update orders set total = 0"]


@pytest.mark.anyio
async def test_run_query_wraps_driver_errors(connector: _Connector) -> None:
    gateway = AsyncpgGateway(_profile())

    with pytest.raises(QueryExecutionError, match="does not exist"):
        await _collect(gateway.run_query("select * from missing"))


@pytest.mark.anyio
async def test_connection_errors_surface(monkeypatch: pytest.MonkeyPatch) -> None:
    async def _broken_connect(**kwargs: Any) -> None:
        raise RuntimeError("boom")

    monkeypatch.setattr("pgpane.connections.asyncpg.connect", _broken_connect)
    gateway = AsyncpgGateway(ConnectionProfile(name="Broken"))

    with pytest.raises(ConnectionBackendError, match="Broken"):
        await gateway.connect()
    with pytest.raises(MetadataFetchError):
        await gateway.list_databases()
    with pytest.raises(QueryExecutionError):
        await _collect(gateway.run_query("select 1"))


def test_dsn_takes_precedence_over_fields() -> None:
    profile = ConnectionProfile(name="Dsn", dsn="postgresql://app@db/app", host="ignored")
    gateway = AsyncpgGateway(profile, connect_timeout=1.5)

    kwargs = gateway._connect_kwargs("analytics")

    assert kwargs == {"dsn": "postgresql://app@db/app", "database": "analytics", "timeout": 1.5}


@pytest.mark.anyio
async def test_demo_gateway_serves_preset_data() -> None:
    gateway = DemoGateway()
    await gateway.connect()

    assert isinstance(gateway, ConnectionGateway)
    assert [entry.name for entry in await gateway.list_databases()] == ["app_db", "analytics"]
    tables = await gateway.list_tables("analytics")
    assert tables[0] == TableEntry("sessions", schema="analytics")
    assert gateway.database == "analytics"

    items = await _collect(gateway.run_query("select * from analytics.sessions"))
    assert items[0] == ColumnHeaders(("id", "user_id", "device"))
    assert len(items) == 51


@pytest.mark.anyio
async def test_demo_gateway_errors() -> None:
    gateway = DemoGateway()
    await gateway.connect()

    with pytest.raises(MetadataFetchError):
        await gateway.list_tables("nope")
    with pytest.raises(QueryExecutionError, match='relation "nosuchtable" does not exist'):
        await _collect(gateway.run_query("select * from nosuchtable"))
    assert await _collect(gateway.run_query("delete from users")) == [ColumnHeaders(()), CommandTag("OK")]
