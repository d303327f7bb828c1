"""Widget library for the Textual UI."""

from __future__ import annotations

from .error_screen import ConnectionErrorScreen
from .pane_view import PaneResized, PaneView
from .status_bar import StatusBar

__all__ = ["ConnectionErrorScreen", "PaneResized", "PaneView", "StatusBar"]
