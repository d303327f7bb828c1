"""Widget drawing one region of the frame produced by the render projector."""

from __future__ import annotations

from rich.console import Group, RenderableType
from rich.table import Table
from rich.text import Text
from textual import events
from textual.message import Message
from textual.widgets import Static

from pgpane.focus import Pane
from pgpane.render import EditorBody, GridBody, ListBody, Notice, Region

NOTICE_STYLES = {
    "loading": "italic yellow",
    "error": "bold red",
    "warning": "yellow",
    "success": "green",
    "info": "dim",
}


class PaneView(Static):
    """Bordered pane; highlighted when it owns keyboard input."""

    DEFAULT_CSS = """
    PaneView {
        border: round $surface-lighten-2;
        padding: 0 1;
        height: 1fr;
    }

    PaneView.focused {
        border: round $warning;
    }
    """

    def __init__(self, pane: Pane, *, chrome_rows: int = 0) -> None:
        super().__init__("", id=pane.value.replace("_", "-"))
        self.pane = pane
        self._chrome_rows = chrome_rows
        self._shown: Region | None = None

    @property
    def shown_region(self) -> Region | None:
        """Frame region last drawn; ``Widget.region`` stays the on-screen rectangle."""

        return self._shown

    def show_region(self, region: Region) -> None:
        self._shown = region
        self.border_title = region.title
        self.set_class(region.focused, "focused")
        self.update(render_region(region))

    def on_resize(self, event: events.Resize) -> None:
        rows = self.content_size.height - self._chrome_rows
        if rows > 0:
            self.post_message(PaneResized(self.pane, rows))


class PaneResized(Message):
    """Message emitted when a pane's drawable height changes."""

    def __init__(self, pane: Pane, rows: int) -> None:
        super().__init__()
        self.pane = pane
        self.rows = rows


def render_region(region: Region) -> RenderableType:
    parts: list[RenderableType] = []
    if region.notice is not None:
        parts.append(_render_notice(region.notice))
    body = region.body
    if isinstance(body, ListBody):
        parts.append(_render_list(body, region.focused))
    elif isinstance(body, EditorBody):
        parts.append(_render_editor(body, region.focused))
    elif isinstance(body, GridBody):
        parts.append(_render_grid(body, region.focused))
    return Group(*parts)


def _render_notice(notice: Notice) -> Text:
    return Text(notice.text, style=NOTICE_STYLES.get(notice.severity, ""), no_wrap=True, overflow="ellipsis")


def _render_list(body: ListBody, focused: bool) -> Text:
    text = Text(no_wrap=True, overflow="ellipsis")
    for idx, label in enumerate(body.items):
        marker = "> " if idx == body.selected else "  "
        style = ""
        if idx == body.cursor:
            style = "reverse" if focused else "bold"
        if idx:
            text.append("\n")
        text.append(f"{marker}{label}", style=style)
    return text


def _render_editor(body: EditorBody, focused: bool) -> Text:
    text = Text(body.text)
    if not focused:
        return text
    if body.cursor >= len(body.text):
        text.append(" ", style="reverse")
    else:
        text.stylize("reverse", body.cursor, body.cursor + 1)
    return text


def _render_grid(body: GridBody, focused: bool) -> Table:
    table = Table(box=None, header_style="bold", pad_edge=False, expand=False)
    for column in body.columns:
        table.add_column(column, no_wrap=True, overflow="ellipsis", max_width=40)
    for idx, row in enumerate(body.rows):
        style = "reverse" if focused and idx == body.cursor else None
        table.add_row(*row, style=style)
    if body.truncated:
        table.caption = f"Showing the first {body.total_rows:,} rows"
    return table


__all__ = ["PaneResized", "PaneView", "render_region"]
