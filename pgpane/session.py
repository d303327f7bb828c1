"""Session: owns the app state, the gateway and the query pipeline."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine

from .config import AppConfig, ConnectionProfileConfig
from .connections import (
    AsyncpgGateway,
    ConnectionGateway,
    DemoGateway,
    MetadataFetchError,
    UnavailableGateway,
)
from .controller import (
    CancelQuery,
    Effect,
    FetchDatabases,
    FetchTables,
    Quit,
    SubmitQuery,
    Transition,
    databases_failed,
    databases_loaded,
    handle_key,
    query_submitted,
    reconnecting,
    tables_failed,
    tables_loaded,
)
from .focus import KeyPress, Pane
from .models import ConnectionProfile
from .pipeline import QueryExecution, QueryPipeline
from .render import Frame, project
from .state import AppState

LOG = logging.getLogger(__name__)

FrameListener = Callable[[Frame], None]
Spawner = Callable[[Coroutine[Any, Any, None], str], object]


def profile_from_config(profile: ConnectionProfileConfig) -> ConnectionProfile:
    return ConnectionProfile(
        name=profile.name,
        dsn=profile.dsn,
        host=profile.host,
        port=profile.port,
        database=profile.database,
        user=profile.user,
        password=profile.password,
    )


def build_gateway(config: AppConfig) -> tuple[ConnectionGateway, str]:
    """Pick the gateway for ``config``; returns it with a display name."""

    if config.demo:
        return DemoGateway(), "Demo"
    try:
        profile = profile_from_config(config.profile())
    except ValueError as exc:
        LOG.error("No usable connection profile", extra={"error": str(exc)})
        return UnavailableGateway(str(exc)), config.active_profile or ""
    return AsyncpgGateway(profile, fetch_batch_size=config.query.fetch_batch_size), profile.name


class Session:
    """Single-operator session threading one ``AppState`` through key handlers.

    Metadata fetches run as background units of work started through
    ``spawn``; the query pipeline streams on its own task. Every change
    re-projects the frame and hands it to the subscribed listeners.
    """

    def __init__(
        self,
        gateway: ConnectionGateway,
        *,
        profile_name: str = "",
        batch_size: int = 200,
        result_row_limit: int = 1000,
        spawn: Spawner | None = None,
    ) -> None:
        self._gateway = gateway
        self._pipeline = QueryPipeline(gateway, batch_size=batch_size)
        self._state = AppState(profile_name=profile_name, result_row_limit=result_row_limit)
        self._listeners: set[FrameListener] = set()
        self._tasks: set[asyncio.Task[None]] = set()
        self._spawn = spawn or self._spawn_task
        self._pipeline_unsubscribe = self._pipeline.subscribe(lambda _execution: self._notify())

    @classmethod
    def from_config(cls, config: AppConfig, *, spawn: Spawner | None = None) -> Session:
        gateway, name = build_gateway(config)
        return cls(
            gateway,
            profile_name=name,
            batch_size=config.query.fetch_batch_size,
            result_row_limit=config.query.result_row_limit,
            spawn=spawn,
        )

    @property
    def state(self) -> AppState:
        return self._state

    @property
    def pipeline(self) -> QueryPipeline:
        return self._pipeline

    @property
    def gateway(self) -> ConnectionGateway:
        return self._gateway

    @property
    def execution(self) -> QueryExecution | None:
        return self._pipeline.current

    def frame(self) -> Frame:
        return project(self._state, self._pipeline.current)

    def subscribe(self, listener: FrameListener) -> Callable[[], None]:
        """Subscribe to frame updates; returns an unsubscribe handle."""

        self._listeners.add(listener)

        def _unsubscribe() -> None:
            self._listeners.discard(listener)

        return _unsubscribe

    async def start(self) -> None:
        """Open the connection and load the database list.

        Raises ``ConnectionBackendError`` when the server is unreachable.
        """

        await self._gateway.connect()
        self._state = reconnecting(self._state)
        self._notify()
        await self.load_databases()

    async def close(self) -> None:
        self._pipeline_unsubscribe()
        await self._pipeline.shutdown()
        for task in tuple(self._tasks):
            task.cancel()
        await self._gateway.close()

    def handle_key(self, press: KeyPress) -> bool:
        """Process one key press; returns ``False`` once the operator asked to quit."""

        transition = handle_key(self._state, press, self._pipeline.current)
        return self.dispatch(transition)

    def dispatch(self, transition: Transition) -> bool:
        self._state = transition.state
        running = True
        for effect in transition.effects:
            running = self._run_effect(effect) and running
        self._notify()
        return running

    def resize(self, pane: Pane, rows: int) -> None:
        if self._state.viewport(pane) == max(1, rows):
            return
        self._state = self._state.with_viewport(pane, rows)
        self._notify()

    def cancel_query(self) -> bool:
        return self.dispatch(Transition(self._state, (CancelQuery(),)))

    def reconnect(self) -> None:
        self.dispatch(Transition(reconnecting(self._state), (FetchDatabases(),)))

    async def load_databases(self) -> None:
        try:
            entries = await self._gateway.list_databases()
        except MetadataFetchError as exc:
            LOG.warning("Listing databases failed", extra={"error": str(exc)})
            self._state = databases_failed(self._state, str(exc))
        else:
            self._state = databases_loaded(self._state, entries)
        self._notify()

    async def load_tables(self, database: str) -> None:
        try:
            entries = await self._gateway.list_tables(database)
        except MetadataFetchError as exc:
            LOG.warning("Listing tables failed", extra={"database": database, "error": str(exc)})
            self._state = tables_failed(self._state, database, str(exc))
        else:
            self._state = tables_loaded(self._state, database, entries)
        self._notify()

    async def settle(self) -> QueryExecution | None:
        """Wait for background fetches and the running query (testing helper)."""

        while self._tasks:
            await asyncio.wait(set(self._tasks))
        return await self._pipeline.wait()

    def _run_effect(self, effect: Effect) -> bool:
        if isinstance(effect, FetchTables):
            self._spawn(self.load_tables(effect.database), "tables")
        elif isinstance(effect, FetchDatabases):
            self._spawn(self.load_databases(), "databases")
        elif isinstance(effect, SubmitQuery):
            self._state = query_submitted(self._state)
            self._pipeline.submit(effect.sql)
        elif isinstance(effect, CancelQuery):
            self._pipeline.cancel()
        elif isinstance(effect, Quit):
            return False
        return True

    def _spawn_task(self, coro: Coroutine[Any, Any, None], group: str) -> object:
        task = asyncio.get_running_loop().create_task(coro, name=f"pgpane-{group}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _notify(self) -> None:
        if not self._listeners:
            return
        frame = self.frame()
        for listener in tuple(self._listeners):
            listener(frame)


__all__ = ["Session", "build_gateway", "profile_from_config"]
