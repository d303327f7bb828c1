"""Tests for key routing and pane handlers."""

from __future__ import annotations

from dataclasses import replace

from pgpane.controller import (
    CancelQuery,
    FetchTables,
    Quit,
    SubmitQuery,
    databases_loaded,
    handle_key,
    tables_failed,
    tables_loaded,
)
from pgpane.focus import KeyPress, Pane
from pgpane.models import DatabaseEntry, TableEntry
from pgpane.pipeline import QueryExecution, QueryStatus
from pgpane.state import AppState, LoadStatus

DATABASES = (DatabaseEntry("app_db"), DatabaseEntry("analytics"), DatabaseEntry("postgres"))
TABLES = (TableEntry("users"), TableEntry("orders"), TableEntry("events", schema="audit"))


def _key(name: str) -> KeyPress:
    return KeyPress.parse(name, name if len(name) == 1 else None)


def _loaded() -> AppState:
    return databases_loaded(AppState(), DATABASES)


def test_focus_switch_does_not_touch_navigation() -> None:
    state = _loaded()

    moved = handle_key(state, _key("ctrl+l")).state

    assert moved.focus is Pane.QUERY_EDITOR
    assert moved.navigation == state.navigation
    assert handle_key(state, _key("ctrl+k")).state.focus is Pane.DATABASE_LIST


def test_plain_directions_move_the_list_cursor_not_focus() -> None:
    state = _loaded()

    state = handle_key(state, _key("j")).state
    state = handle_key(state, _key("down")).state
    state = handle_key(state, _key("j")).state

    assert state.focus is Pane.DATABASE_LIST
    assert state.navigation.cursor(Pane.DATABASE_LIST) == 2
    assert handle_key(state, _key("l")).state == state


def test_selecting_a_database_requests_its_tables() -> None:
    state = handle_key(_loaded(), _key("j")).state
    state = replace(state, tables=state.tables.ready(TABLES), tables_for="app_db")
    state = replace(state, navigation=state.navigation.select_table(1))

    transition = handle_key(state, _key("enter"))

    assert transition.effects == (FetchTables("analytics"),)
    assert transition.state.navigation.selected_database == 1
    assert transition.state.navigation.selected_table is None
    assert transition.state.navigation.cursor(Pane.TABLE_LIST) == 0
    assert transition.state.navigation.offset(Pane.TABLE_LIST) == 0
    assert transition.state.tables.status is LoadStatus.LOADING
    assert transition.state.tables_for == "analytics"


def test_late_tables_for_a_previous_database_are_ignored() -> None:
    state = replace(_loaded(), tables_for="analytics")
    state = replace(state, tables=state.tables.loading())

    stale = tables_loaded(state, "app_db", TABLES)
    assert stale.tables.status is LoadStatus.LOADING
    assert tables_failed(state, "app_db", "boom") == state

    fresh = tables_loaded(state, "analytics", TABLES)
    assert fresh.tables.items == TABLES


def test_selecting_a_table_prefills_the_query() -> None:
    state = replace(_loaded(), focus=Pane.TABLE_LIST, tables=AppState().tables.ready(TABLES), tables_for="app_db")
    state = handle_key(state, _key("j")).state

    state = handle_key(state, _key("enter")).state

    assert state.navigation.selected_table == 1
    assert state.buffer.text == "select * from orders"
    assert state.buffer.cursor == len("select * from orders")
    assert state.focus is Pane.TABLE_LIST

    state = handle_key(state, _key("G")).state
    state = handle_key(state, _key("enter")).state
    assert state.buffer.text == "select * from audit.events"


def test_editor_keys_edit_text_and_enter_submits() -> None:
    state = replace(AppState(), focus=Pane.QUERY_EDITOR)
    for char in "selct jkl":
        state = handle_key(state, KeyPress(key=char, character=char)).state
    for key in ("left",) * 6:
        state = handle_key(state, _key(key)).state
    state = handle_key(state, KeyPress(key="e", character="e")).state
    state = handle_key(state, _key("end")).state
    for _ in range(4):
        state = handle_key(state, _key("backspace")).state

    assert state.buffer.text == "select"
    assert state.focus is Pane.QUERY_EDITOR

    transition = handle_key(state, _key("enter"))
    assert transition.effects == (SubmitQuery("select"),)


def test_q_quits_outside_the_editor_only() -> None:
    assert handle_key(_loaded(), _key("q")).effects == (Quit(),)
    editor = replace(_loaded(), focus=Pane.QUERY_EDITOR)
    transition = handle_key(editor, _key("q"))
    assert transition.effects == ()
    assert transition.state.buffer.text == "q"
    assert handle_key(editor, _key("ctrl+q")).effects == (Quit(),)


def test_escape_cancels_only_an_active_query() -> None:
    streaming = QueryExecution(id=1, sql="select 1", status=QueryStatus.STREAMING)
    done = replace(streaming, status=QueryStatus.COMPLETED)

    assert handle_key(AppState(), _key("escape"), streaming).effects == (CancelQuery(),)
    assert handle_key(AppState(), _key("escape"), done).effects == ()
    assert handle_key(AppState(), _key("escape"), None).effects == ()


def test_results_pane_scrolls_rows_and_columns() -> None:
    execution = QueryExecution(
        id=1,
        sql="select",
        status=QueryStatus.COMPLETED,
        columns=("a", "b", "c"),
        rows=tuple((idx, idx, idx) for idx in range(30)),
    )
    state = replace(AppState(), focus=Pane.RESULTS).with_viewport(Pane.RESULTS, 5)

    for _ in range(7):
        state = handle_key(state, _key("j"), execution).state
    state = handle_key(state, _key("l"), execution).state

    assert state.navigation.cursor(Pane.RESULTS) == 7
    assert state.navigation.offset(Pane.RESULTS) == 3
    assert state.navigation.column_offset == 1

    state = handle_key(state, _key("G"), execution).state
    assert state.navigation.cursor(Pane.RESULTS) == 29
