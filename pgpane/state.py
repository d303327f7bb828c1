"""The single application-state value threaded through handlers and the renderer."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Generic, Mapping, TypeVar

from .editor import QueryBuffer
from .focus import INITIAL_PANE, Pane
from .models import DatabaseEntry, TableEntry
from .navigation import NavigationState

T = TypeVar("T")

DEFAULT_VIEWPORT = 10


class LoadStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class Listing(Generic[T]):
    """Items fetched from the gateway together with how the fetch went."""

    items: tuple[T, ...] = ()
    status: LoadStatus = LoadStatus.IDLE
    error: str | None = None

    def loading(self, *, keep_items: bool = False) -> Listing[T]:
        return Listing(items=self.items if keep_items else (), status=LoadStatus.LOADING)

    def ready(self, items: tuple[T, ...]) -> Listing[T]:
        return Listing(items=tuple(items), status=LoadStatus.READY)

    def failed(self, error: str) -> Listing[T]:
        return Listing(status=LoadStatus.FAILED, error=error)

    def __len__(self) -> int:
        return len(self.items)


def _default_viewports() -> Mapping[Pane, int]:
    return {pane: DEFAULT_VIEWPORT for pane in Pane}


@dataclass(frozen=True, slots=True)
class AppState:
    """Everything the explorer knows, minus the query execution snapshot."""

    focus: Pane = INITIAL_PANE
    navigation: NavigationState = field(default_factory=NavigationState)
    databases: Listing[DatabaseEntry] = field(default_factory=Listing)
    tables: Listing[TableEntry] = field(default_factory=Listing)
    tables_for: str | None = None
    buffer: QueryBuffer = field(default_factory=QueryBuffer)
    viewports: Mapping[Pane, int] = field(default_factory=_default_viewports)
    profile_name: str = ""
    result_row_limit: int = 1000
    connection_error: str | None = None

    def viewport(self, pane: Pane) -> int:
        return max(1, self.viewports.get(pane, DEFAULT_VIEWPORT))

    def with_viewport(self, pane: Pane, rows: int) -> AppState:
        viewports = dict(self.viewports)
        viewports[pane] = max(1, rows)
        # Shrinking a pane must not hide its cursor.
        cursor = self.navigation.cursor(pane)
        navigation = self.navigation.set_cursor(pane, cursor, length=cursor + 1, viewport=rows)
        return replace(self, viewports=viewports, navigation=navigation)

    @property
    def selected_database(self) -> DatabaseEntry | None:
        index = self.navigation.selected_database
        if index is None or not 0 <= index < len(self.databases.items):
            return None
        return self.databases.items[index]

    @property
    def selected_table(self) -> TableEntry | None:
        index = self.navigation.selected_table
        if index is None or not 0 <= index < len(self.tables.items):
            return None
        return self.tables.items[index]


__all__ = ["AppState", "DEFAULT_VIEWPORT", "Listing", "LoadStatus"]
