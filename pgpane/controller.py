"""Key handlers: route input to the focused pane and compute the next state.

Handlers are pure. They return the new ``AppState`` plus the side effects the
session should run (fetching tables, submitting or cancelling a query, ...).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable, Union

from .focus import Direction, KeyPress, Pane, focus_direction, move_focus, pane_direction
from .models import DatabaseEntry, TableEntry
from .pipeline import QueryExecution
from .query import default_select
from .state import AppState


@dataclass(frozen=True, slots=True)
class FetchDatabases:
    pass


@dataclass(frozen=True, slots=True)
class FetchTables:
    database: str


@dataclass(frozen=True, slots=True)
class SubmitQuery:
    sql: str


@dataclass(frozen=True, slots=True)
class CancelQuery:
    pass


@dataclass(frozen=True, slots=True)
class Quit:
    pass


Effect = Union[FetchDatabases, FetchTables, SubmitQuery, CancelQuery, Quit]


@dataclass(frozen=True, slots=True)
class Transition:
    state: AppState
    effects: tuple[Effect, ...] = ()


PaneHandler = Callable[[AppState, KeyPress, "QueryExecution | None"], Transition]


def handle_key(state: AppState, press: KeyPress, execution: QueryExecution | None = None) -> Transition:
    """Route ``press`` to focus switching, a global action or the focused pane."""

    direction = focus_direction(press)
    if direction is not None:
        return Transition(replace(state, focus=move_focus(state.focus, direction)))
    if press.ctrl and press.key == "q":
        return Transition(state, (Quit(),))
    if press.ctrl and press.key == "r":
        return Transition(reconnecting(state), (FetchDatabases(),))
    if not press.ctrl and press.key == "escape":
        if execution is not None and execution.active:
            return Transition(state, (CancelQuery(),))
        return Transition(state)
    return _PANE_HANDLERS[state.focus](state, press, execution)


def reconnecting(state: AppState) -> AppState:
    """Mark the database list as reloading; the old entries stay so the selection can be matched by name."""

    return replace(state, databases=state.databases.loading(keep_items=True), connection_error=None)


def databases_loaded(state: AppState, entries: tuple[DatabaseEntry, ...]) -> AppState:
    navigation = state.navigation.set_cursor(
        Pane.DATABASE_LIST,
        state.navigation.cursor(Pane.DATABASE_LIST),
        length=len(entries),
        viewport=state.viewport(Pane.DATABASE_LIST),
    )
    selected = state.selected_database
    index = next((idx for idx, entry in enumerate(entries) if selected and entry.name == selected.name), None)
    navigation = replace(navigation, selected_database=index)
    if index is None:
        navigation = replace(navigation, selected_table=None)
    return replace(state, databases=state.databases.ready(entries), navigation=navigation)


def databases_failed(state: AppState, error: str) -> AppState:
    return replace(state, databases=state.databases.failed(error))


def tables_loaded(state: AppState, database: str, entries: tuple[TableEntry, ...]) -> AppState:
    """Store the tables of ``database`` unless another database was picked meanwhile."""

    if database != state.tables_for:
        return state
    return replace(state, tables=state.tables.ready(entries))


def tables_failed(state: AppState, database: str, error: str) -> AppState:
    if database != state.tables_for:
        return state
    return replace(state, tables=state.tables.failed(error))


def query_submitted(state: AppState) -> AppState:
    return replace(state, navigation=state.navigation.reset_results())


def connection_failed(state: AppState, error: str) -> AppState:
    return replace(state, connection_error=error)


def _list_motion(state: AppState, pane: Pane, press: KeyPress, length: int) -> AppState | None:
    """Cursor motion shared by every list-like pane; ``None`` if ``press`` is not one."""

    navigation = state.navigation
    viewport = state.viewport(pane)
    direction = pane_direction(press)
    if direction is Direction.DOWN:
        delta = 1
    elif direction is Direction.UP:
        delta = -1
    elif press.key == "pagedown":
        delta = viewport
    elif press.key == "pageup":
        delta = -viewport
    elif press.key in {"g", "home"}:
        return replace(state, navigation=navigation.set_cursor(pane, 0, length=length, viewport=viewport))
    elif press.key in {"G", "end"} or press.character == "G":
        return replace(
            state,
            navigation=navigation.set_cursor(pane, length - 1, length=length, viewport=viewport),
        )
    else:
        return None
    return replace(state, navigation=navigation.move_cursor(pane, delta, length=length, viewport=viewport))


def _on_database_list(state: AppState, press: KeyPress, execution: QueryExecution | None) -> Transition:
    entries = state.databases.items
    moved = _list_motion(state, Pane.DATABASE_LIST, press, len(entries))
    if moved is not None:
        return Transition(moved)
    if press.key == "enter" and entries:
        index = state.navigation.cursor(Pane.DATABASE_LIST)
        database = entries[index].name
        updated = replace(
            state,
            navigation=state.navigation.select_database(index),
            tables=state.tables.loading(),
            tables_for=database,
        )
        return Transition(updated, (FetchTables(database),))
    if press.key == "q":
        return Transition(state, (Quit(),))
    return Transition(state)


def _on_table_list(state: AppState, press: KeyPress, execution: QueryExecution | None) -> Transition:
    entries = state.tables.items
    moved = _list_motion(state, Pane.TABLE_LIST, press, len(entries))
    if moved is not None:
        return Transition(moved)
    if press.key == "enter" and entries:
        index = state.navigation.cursor(Pane.TABLE_LIST)
        buffer = state.buffer.from_text(default_select(entries[index]))
        return Transition(replace(state, navigation=state.navigation.select_table(index), buffer=buffer))
    if press.key == "q":
        return Transition(state, (Quit(),))
    return Transition(state)


def _on_query_editor(state: AppState, press: KeyPress, execution: QueryExecution | None) -> Transition:
    buffer = state.buffer
    key = press.key
    if press.ctrl:
        return Transition(state)
    if key == "enter":
        return Transition(state, (SubmitQuery(buffer.text),))
    if key == "left":
        buffer = buffer.move(-1)
    elif key == "right":
        buffer = buffer.move(1)
    elif key == "home":
        buffer = buffer.home()
    elif key == "end":
        buffer = buffer.end()
    elif key == "backspace":
        buffer = buffer.backspace()
    elif key == "delete":
        buffer = buffer.delete()
    elif press.character and len(press.character) == 1 and press.character.isprintable():
        buffer = buffer.insert(press.character)
    else:
        return Transition(state)
    return Transition(replace(state, buffer=buffer))


def _on_results(state: AppState, press: KeyPress, execution: QueryExecution | None) -> Transition:
    rows = len(execution.rows) if execution is not None else 0
    columns = len(execution.columns) if execution is not None else 0
    moved = _list_motion(state, Pane.RESULTS, press, min(rows, state.result_row_limit))
    if moved is not None:
        return Transition(moved)
    direction = pane_direction(press)
    if direction is Direction.LEFT:
        return Transition(replace(state, navigation=state.navigation.scroll_columns(-1, column_count=columns)))
    if direction is Direction.RIGHT:
        return Transition(replace(state, navigation=state.navigation.scroll_columns(1, column_count=columns)))
    if press.key == "q":
        return Transition(state, (Quit(),))
    return Transition(state)


_PANE_HANDLERS: dict[Pane, PaneHandler] = {
    Pane.DATABASE_LIST: _on_database_list,
    Pane.TABLE_LIST: _on_table_list,
    Pane.QUERY_EDITOR: _on_query_editor,
    Pane.RESULTS: _on_results,
}


__all__ = [
    "CancelQuery",
    "Effect",
    "FetchDatabases",
    "FetchTables",
    "Quit",
    "SubmitQuery",
    "Transition",
    "connection_failed",
    "databases_failed",
    "databases_loaded",
    "handle_key",
    "query_submitted",
    "reconnecting",
    "tables_failed",
    "tables_loaded",
]
