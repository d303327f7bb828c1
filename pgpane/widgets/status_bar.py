"""Status bar widget that mirrors the session's frame status line."""

from __future__ import annotations

from textual.widgets import Static

from pgpane.render import Frame


class StatusBar(Static):
    """Compact status strip rendered above Textual's footer."""

    DEFAULT_CSS = """
    StatusBar {
        height: 1;
        padding: 0 1;
        background: $surface-darken-3;
        color: $text;
    }
    """

    def __init__(self) -> None:
        super().__init__("", id="status-bar", markup=False)

    def show_frame(self, frame: Frame) -> None:
        self.update(frame.status)


__all__ = ["StatusBar"]
