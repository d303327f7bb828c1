"""Render projector: a pure mapping from application state to a frame description."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from .focus import Pane
from .pipeline import QueryExecution, QueryStatus
from .query import format_cell
from .state import AppState, Listing, LoadStatus

PANE_TITLES: dict[Pane, str] = {
    Pane.DATABASE_LIST: "Databases",
    Pane.TABLE_LIST: "Tables",
    Pane.QUERY_EDITOR: "Query",
    Pane.RESULTS: "Results",
}


@dataclass(frozen=True, slots=True)
class Notice:
    """Single-line message shown at the top of a region."""

    text: str
    severity: str = "info"


@dataclass(frozen=True, slots=True)
class ListBody:
    """Visible window of a list; indices are relative to the window."""

    items: tuple[str, ...]
    cursor: int | None
    selected: int | None
    offset: int
    total: int


@dataclass(frozen=True, slots=True)
class EditorBody:
    text: str
    cursor: int


@dataclass(frozen=True, slots=True)
class GridBody:
    """Visible slice of the result grid."""

    columns: tuple[str, ...]
    rows: tuple[tuple[str, ...], ...]
    cursor: int | None
    first_row: int
    first_column: int
    total_rows: int
    truncated: bool = False


Body = Union[ListBody, EditorBody, GridBody]


@dataclass(frozen=True, slots=True)
class Region:
    pane: Pane
    title: str
    focused: bool
    notice: Notice | None = None
    body: Body | None = None


@dataclass(frozen=True, slots=True)
class Frame:
    regions: tuple[Region, ...]
    status: str

    def region(self, pane: Pane) -> Region:
        for region in self.regions:
            if region.pane is pane:
                return region
        raise KeyError(pane)

    @property
    def focused(self) -> Pane:
        return next(region.pane for region in self.regions if region.focused)


def project(state: AppState, execution: QueryExecution | None) -> Frame:
    """Describe what every pane shows for ``state`` and one execution snapshot."""

    regions = (
        _list_region(state, Pane.DATABASE_LIST, state.databases, [entry.name for entry in state.databases.items]),
        _tables_region(state),
        _editor_region(state),
        _results_region(state, execution),
    )
    return Frame(regions=regions, status=_status_line(state, execution))


def _tables_region(state: AppState) -> Region:
    if state.tables.status is LoadStatus.IDLE:
        return Region(
            pane=Pane.TABLE_LIST,
            title=PANE_TITLES[Pane.TABLE_LIST],
            focused=state.focus is Pane.TABLE_LIST,
            notice=Notice("Select a database to list its tables."),
        )
    labels = [
        entry.name if entry.schema == "public" else entry.qualified_name
        for entry in state.tables.items
    ]
    region = _list_region(state, Pane.TABLE_LIST, state.tables, labels)
    if state.tables_for:
        region = Region(
            pane=region.pane,
            title=f"{region.title} · {state.tables_for}",
            focused=region.focused,
            notice=region.notice,
            body=region.body,
        )
    return region


def _list_region(state: AppState, pane: Pane, listing: Listing, labels: list[str]) -> Region:
    title = PANE_TITLES[pane]
    focused = state.focus is pane
    if listing.status is LoadStatus.LOADING:
        return Region(pane, title, focused, notice=Notice("Loading…", "loading"))
    if listing.status is LoadStatus.FAILED:
        return Region(pane, title, focused, notice=Notice(f"Error: {listing.error}", "error"))
    if not labels:
        return Region(pane, title, focused, notice=Notice("Nothing to show."))
    navigation = state.navigation
    offset = navigation.offset(pane)
    window = tuple(labels[offset : offset + state.viewport(pane)])
    if pane is Pane.DATABASE_LIST:
        selected_index = navigation.selected_database
    else:
        selected_index = navigation.selected_table
    body = ListBody(
        items=window,
        cursor=_relative(navigation.cursor(pane), offset, len(window)),
        selected=_relative(selected_index, offset, len(window)),
        offset=offset,
        total=len(labels),
    )
    return Region(pane, title, focused, body=body)


def _editor_region(state: AppState) -> Region:
    body = EditorBody(text=state.buffer.text, cursor=state.buffer.cursor)
    return Region(Pane.QUERY_EDITOR, PANE_TITLES[Pane.QUERY_EDITOR], state.focus is Pane.QUERY_EDITOR, body=body)


def _results_region(state: AppState, execution: QueryExecution | None) -> Region:
    pane = Pane.RESULTS
    focused = state.focus is pane
    title = PANE_TITLES[pane]
    if execution is None:
        return Region(pane, title, focused, notice=Notice("Press Enter in the query pane to run a statement."))
    status = execution.status
    if status is QueryStatus.PENDING:
        return Region(pane, f"{title} #{execution.id}", focused, notice=Notice("Running…", "loading"))
    notice: Notice | None = None
    if status is QueryStatus.STREAMING:
        notice = Notice(f"Streaming… {len(execution.rows):,} row(s) so far", "loading")
    elif status is QueryStatus.FAILED:
        notice = Notice(f"Error: {execution.error}", "error")
    elif status is QueryStatus.CANCELLED:
        notice = Notice(f"Query cancelled after {len(execution.rows):,} row(s).", "warning")
    elif not execution.columns:
        notice = Notice(execution.command_tag or "OK", "success")
    body = _grid(state, execution) if execution.columns else None
    return Region(pane, f"{title} #{execution.id} · {_summary(execution)}", focused, notice=notice, body=body)


def _grid(state: AppState, execution: QueryExecution) -> GridBody:
    navigation = state.navigation
    limit = state.result_row_limit
    total = min(len(execution.rows), limit)
    offset = navigation.offset(Pane.RESULTS)
    first_column = min(navigation.column_offset, max(0, len(execution.columns) - 1))
    window = execution.rows[offset : min(total, offset + state.viewport(Pane.RESULTS))]
    rows = tuple(tuple(format_cell(value) for value in row[first_column:]) for row in window)
    return GridBody(
        columns=execution.columns[first_column:],
        rows=rows,
        cursor=_relative(navigation.cursor(Pane.RESULTS), offset, len(rows)),
        first_row=offset,
        first_column=first_column,
        total_rows=total,
        truncated=len(execution.rows) > limit,
    )


def _summary(execution: QueryExecution) -> str:
    parts = [execution.status.value, f"{len(execution.rows):,} row(s)"]
    if execution.elapsed_ms is not None:
        parts.append(f"{execution.elapsed_ms} ms")
    return " · ".join(parts)


def _status_line(state: AppState, execution: QueryExecution | None) -> str:
    database = state.selected_database
    parts = [
        f"Profile: {state.profile_name or '-'}",
        f"Database: {database.name if database else '-'}",
        f"Focus: {PANE_TITLES[state.focus]}",
    ]
    if execution is not None:
        parts.append(f"Query #{execution.id}: {_summary(execution)}")
    if state.connection_error:
        parts.append(f"Error: {state.connection_error.splitlines()[0][:80]}")
    return " | ".join(parts)


def _relative(index: int | None, offset: int, size: int) -> int | None:
    if index is None:
        return None
    relative = index - offset
    if 0 <= relative < size:
        return relative
    return None


__all__ = [
    "EditorBody",
    "Frame",
    "GridBody",
    "ListBody",
    "Notice",
    "PANE_TITLES",
    "Region",
    "project",
]
