"""Navigation model: selections plus per-pane cursor and scroll state."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Mapping

from .focus import Pane


def _zeroed() -> Mapping[Pane, int]:
    return {pane: 0 for pane in Pane}


def scroll_to_cursor(cursor: int, offset: int, length: int, viewport: int) -> tuple[int, int]:
    """Clamp ``cursor`` to the list and scroll ``offset`` just enough to show it."""

    if length <= 0:
        return 0, 0
    viewport = max(1, viewport)
    cursor = max(0, min(length - 1, cursor))
    if cursor < offset:
        offset = cursor
    elif cursor >= offset + viewport:
        offset = cursor - viewport + 1
    return cursor, max(0, offset)


@dataclass(frozen=True, slots=True)
class NavigationState:
    """Selected database/table and where each pane's cursor and window sit."""

    selected_database: int | None = None
    selected_table: int | None = None
    cursors: Mapping[Pane, int] = field(default_factory=_zeroed)
    offsets: Mapping[Pane, int] = field(default_factory=_zeroed)
    column_offset: int = 0

    def cursor(self, pane: Pane) -> int:
        return self.cursors.get(pane, 0)

    def offset(self, pane: Pane) -> int:
        return self.offsets.get(pane, 0)

    def move_cursor(self, pane: Pane, delta: int, *, length: int, viewport: int) -> NavigationState:
        """Move ``pane``'s cursor by ``delta`` rows, clamped to ``[0, length - 1]``."""

        return self.set_cursor(pane, self.cursor(pane) + delta, length=length, viewport=viewport)

    def set_cursor(self, pane: Pane, index: int, *, length: int, viewport: int) -> NavigationState:
        cursor, offset = scroll_to_cursor(index, self.offset(pane), length, viewport)
        return self._with_position(pane, cursor, offset)

    def select_database(self, index: int) -> NavigationState:
        """Pick a database; the table selection and TableList position never survive it."""

        updated = replace(self, selected_database=index, selected_table=None)
        return updated._with_position(Pane.TABLE_LIST, 0, 0)

    def select_table(self, index: int) -> NavigationState:
        return replace(self, selected_table=index)

    def scroll_columns(self, delta: int, *, column_count: int) -> NavigationState:
        limit = max(0, column_count - 1)
        return replace(self, column_offset=max(0, min(limit, self.column_offset + delta)))

    def reset_results(self) -> NavigationState:
        return replace(self._with_position(Pane.RESULTS, 0, 0), column_offset=0)

    def _with_position(self, pane: Pane, cursor: int, offset: int) -> NavigationState:
        cursors = dict(self.cursors)
        offsets = dict(self.offsets)
        cursors[pane] = cursor
        offsets[pane] = offset
        return replace(self, cursors=cursors, offsets=offsets)


__all__ = ["NavigationState", "scroll_to_cursor"]
