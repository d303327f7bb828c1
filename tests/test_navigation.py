"""Tests for the navigation model and the query buffer."""

from __future__ import annotations

from pgpane.editor import QueryBuffer
from pgpane.focus import Pane
from pgpane.navigation import NavigationState, scroll_to_cursor


def test_cursor_clamps_to_list_bounds() -> None:
    nav = NavigationState()

    nav = nav.move_cursor(Pane.DATABASE_LIST, -1, length=3, viewport=10)
    assert nav.cursor(Pane.DATABASE_LIST) == 0

    nav = nav.move_cursor(Pane.DATABASE_LIST, 5, length=3, viewport=10)
    assert nav.cursor(Pane.DATABASE_LIST) == 2


def test_scroll_moves_by_the_minimum_amount() -> None:
    nav = NavigationState()
    for _ in range(5):
        nav = nav.move_cursor(Pane.TABLE_LIST, 1, length=20, viewport=3)

    assert nav.cursor(Pane.TABLE_LIST) == 5
    assert nav.offset(Pane.TABLE_LIST) == 3

    nav = nav.move_cursor(Pane.TABLE_LIST, -1, length=20, viewport=3)
    assert nav.offset(Pane.TABLE_LIST) == 3

    nav = nav.move_cursor(Pane.TABLE_LIST, -2, length=20, viewport=3)
    assert nav.cursor(Pane.TABLE_LIST) == 2
    assert nav.offset(Pane.TABLE_LIST) == 2


def test_scroll_to_cursor_handles_empty_lists() -> None:
    assert scroll_to_cursor(4, 2, 0, 5) == (0, 0)


def test_selecting_a_database_clears_table_selection_and_position() -> None:
    nav = NavigationState().select_database(0)
    nav = nav.move_cursor(Pane.TABLE_LIST, 7, length=10, viewport=3).select_table(7)
    assert nav.offset(Pane.TABLE_LIST) == 5

    nav = nav.select_database(1)

    assert nav.selected_database == 1
    assert nav.selected_table is None
    assert nav.cursor(Pane.TABLE_LIST) == 0
    assert nav.offset(Pane.TABLE_LIST) == 0


def test_column_scroll_is_bounded() -> None:
    nav = NavigationState().scroll_columns(5, column_count=3)
    assert nav.column_offset == 2
    assert nav.scroll_columns(-9, column_count=3).column_offset == 0


def test_buffer_edits_at_the_cursor() -> None:
    buffer = QueryBuffer.from_text("selct 1")
    buffer = buffer.move_to(3).insert("e")

    assert buffer.text == "select 1"
    assert buffer.cursor == 4

    buffer = buffer.end().backspace().insert("2")
    assert buffer.text == "select 2"

    buffer = buffer.home().delete()
    assert buffer.text == "elect 2"
    assert buffer.cursor == 0
    assert buffer.backspace() == buffer


def test_buffer_cursor_stays_inside_text() -> None:
    buffer = QueryBuffer.from_text("ab")

    assert buffer.move(10).cursor == 2
    assert buffer.move(-10).cursor == 0
    assert buffer.delete() == buffer
