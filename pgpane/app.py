"""Textual application entry point for pgpane."""

from __future__ import annotations

import logging
import sys
from typing import Any, Callable, Coroutine

from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.logging import TextualHandler
from textual.widgets import Footer, Header

from .config import AppConfig, LoggingSettings, load_config
from .connections import ConnectionBackendError
from .controller import Transition, connection_failed
from .focus import KeyPress, Pane
from .providers import SessionActionsProvider
from .render import Frame
from .session import Session
from .widgets import ConnectionErrorScreen, PaneResized, PaneView, StatusBar

LOG = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _load_app_config() -> AppConfig:
    """Load configuration with a small wrapper for test overrides."""

    return load_config()


def configure_logging(settings: LoggingSettings) -> None:
    """Send pgpane's log records to Textual's devtools console and an optional file."""

    logger = logging.getLogger("pgpane")
    logger.setLevel(settings.level.upper())
    if not any(isinstance(handler, TextualHandler) for handler in logger.handlers):
        logger.addHandler(TextualHandler())
    if settings.file:
        handler = logging.FileHandler(settings.file, encoding="utf-8")
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)


class PgpaneApp(App[None]):
    """Four-pane PostgreSQL explorer."""

    COMMANDS = App.COMMANDS | {SessionActionsProvider}
    CSS = """
    Screen {
        layout: vertical;
    }
    #content {
        layout: horizontal;
        height: 1fr;
    }
    #left-column {
        width: 30;
        min-width: 20;
        height: 1fr;
    }
    #right-column {
        width: 1fr;
        height: 1fr;
    }
    #query-editor {
        height: 6;
    }
    """

    BINDINGS = [
        Binding("ctrl+q", "quit", "Quit", priority=True),
        Binding("ctrl+p", "command_palette", "Command Palette", priority=True),
    ]

    def __init__(self, config: AppConfig | None = None, *, session: Session | None = None) -> None:
        super().__init__()
        self._config = config or _load_app_config()
        self._session = session or Session.from_config(self._config, spawn=self._spawn_worker)
        self._views: dict[Pane, PaneView] = {}
        self._status_bar: StatusBar | None = None
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def session(self) -> Session:
        """Expose the session for providers and tests."""

        return self._session

    def compose(self) -> ComposeResult:
        """Compose the 2x2 pane layout."""

        yield Header(show_clock=True)
        views = {
            Pane.DATABASE_LIST: PaneView(Pane.DATABASE_LIST),
            Pane.TABLE_LIST: PaneView(Pane.TABLE_LIST),
            Pane.QUERY_EDITOR: PaneView(Pane.QUERY_EDITOR),
            Pane.RESULTS: PaneView(Pane.RESULTS, chrome_rows=2),
        }
        self._views = views
        left = Vertical(views[Pane.DATABASE_LIST], views[Pane.TABLE_LIST], id="left-column")
        if self._config.layout.sidebar_width:
            left.styles.width = self._config.layout.sidebar_width
        right = Vertical(views[Pane.QUERY_EDITOR], views[Pane.RESULTS], id="right-column")
        yield Horizontal(left, right, id="content")
        self._status_bar = StatusBar()
        yield self._status_bar
        yield Footer()

    async def on_mount(self) -> None:
        self.theme = "textual-light" if self._config.theme == "light" else "textual-dark"
        self._unsubscribe = self._session.subscribe(self._show_frame)
        self._show_frame(self._session.frame())
        self.run_worker(self._session.pipeline.run(), name="query-notifications", group="pipeline")
        self.run_worker(self._start_session(), name="session-start", group="session", exclusive=True)

    async def _shutdown(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None
        await self._session.close()
        await super()._shutdown()

    async def on_key(self, event: events.Key) -> None:
        if self._session.state.connection_error:
            return
        event.stop()
        press = KeyPress.parse(event.key, event.character)
        if not self._session.handle_key(press):
            self.exit(return_code=0)

    def on_pane_resized(self, message: PaneResized) -> None:
        self._session.resize(message.pane, message.rows)

    def action_reconnect(self) -> None:
        self._session.reconnect()

    def action_cancel_query(self) -> None:
        self._session.cancel_query()

    async def _start_session(self) -> None:
        try:
            await self._session.start()
        except ConnectionBackendError as exc:
            LOG.error("Startup connection failed", extra={"error": str(exc)})
            self._session.dispatch(Transition(connection_failed(self._session.state, str(exc))))
            self.push_screen(ConnectionErrorScreen(str(exc)), callback=self._exit_after_failure)

    def _exit_after_failure(self, _acknowledged: bool | None) -> None:
        self.exit(return_code=1)

    def _spawn_worker(self, coro: Coroutine[Any, Any, None], group: str) -> object:
        return self.run_worker(coro, name=f"fetch-{group}", group=group, exclusive=True)

    def _show_frame(self, frame: Frame) -> None:
        for pane, view in self._views.items():
            view.show_region(frame.region(pane))
        if self._status_bar is not None:
            self._status_bar.show_frame(frame)


def main() -> None:
    """Invoke the Textual application."""

    config = _load_app_config()
    configure_logging(config.logging)
    app = PgpaneApp(config)
    app.run()
    sys.exit(app.return_code or 0)


if __name__ == "__main__":
    main()
