"""Pane focus state machine: which pane owns the keyboard and how focus moves."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Pane(str, Enum):
    """The four visual regions of the explorer."""

    DATABASE_LIST = "database_list"
    TABLE_LIST = "table_list"
    QUERY_EDITOR = "query_editor"
    RESULTS = "results"


class Direction(str, Enum):
    LEFT = "left"
    DOWN = "down"
    UP = "up"
    RIGHT = "right"


INITIAL_PANE = Pane.DATABASE_LIST

# (row, column) in the 2x2 layout: lists on the left, editor above results on the right.
_GRID: dict[Pane, tuple[int, int]] = {
    Pane.DATABASE_LIST: (0, 0),
    Pane.TABLE_LIST: (1, 0),
    Pane.QUERY_EDITOR: (0, 1),
    Pane.RESULTS: (1, 1),
}
_BY_CELL = {cell: pane for pane, cell in _GRID.items()}
_STEP: dict[Direction, tuple[int, int]] = {
    Direction.LEFT: (0, -1),
    Direction.RIGHT: (0, 1),
    Direction.UP: (-1, 0),
    Direction.DOWN: (1, 0),
}

_VIM_DIRECTIONS = {"h": Direction.LEFT, "j": Direction.DOWN, "k": Direction.UP, "l": Direction.RIGHT}
_ARROW_DIRECTIONS = {
    "left": Direction.LEFT,
    "down": Direction.DOWN,
    "up": Direction.UP,
    "right": Direction.RIGHT,
}


def move_focus(current: Pane, direction: Direction) -> Pane:
    """Return the pane adjacent to ``current`` in ``direction``; edges are no-ops."""

    row, col = _GRID[current]
    d_row, d_col = _STEP[direction]
    return _BY_CELL.get((row + d_row, col + d_col), current)


@dataclass(frozen=True, slots=True)
class KeyPress:
    """Terminal key event reduced to a symbolic key plus the ctrl modifier."""

    key: str
    ctrl: bool = False
    character: str | None = None

    @classmethod
    def parse(cls, key: str, character: str | None = None) -> KeyPress:
        """Build from a Textual key name such as ``"ctrl+h"`` or ``"j"``."""

        if key.startswith("ctrl+"):
            return cls(key=key[len("ctrl+"):], ctrl=True)
        return cls(key=key, character=character)


def focus_direction(press: KeyPress) -> Direction | None:
    """Direction of a focus-switch chord, or ``None`` for in-pane input."""

    if not press.ctrl:
        return None
    return _VIM_DIRECTIONS.get(press.key) or _ARROW_DIRECTIONS.get(press.key)


def pane_direction(press: KeyPress, *, allow_letters: bool = True) -> Direction | None:
    """Direction of plain in-pane movement (``h/j/k/l`` or arrows)."""

    if press.ctrl:
        return None
    if press.key in _ARROW_DIRECTIONS:
        return _ARROW_DIRECTIONS[press.key]
    if allow_letters:
        return _VIM_DIRECTIONS.get(press.key)
    return None


__all__ = [
    "Direction",
    "INITIAL_PANE",
    "KeyPress",
    "Pane",
    "focus_direction",
    "move_focus",
    "pane_direction",
]
