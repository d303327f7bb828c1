"""Full-screen notice for a connection failure at startup."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Static


class ConnectionErrorScreen(ModalScreen[bool]):
    """Blocks the UI until the operator acknowledges the failure."""

    DEFAULT_CSS = """
    ConnectionErrorScreen {
        align: center middle;
    }

    ConnectionErrorScreen > Vertical {
        width: 80%;
        height: auto;
        border: heavy $error;
        padding: 1 2;
        background: $surface;
    }

    ConnectionErrorScreen .error-title {
        text-style: bold;
        color: $error;
        margin-bottom: 1;
    }

    ConnectionErrorScreen Button {
        margin-top: 1;
    }
    """

    BINDINGS = [
        Binding("enter", "acknowledge", "Exit", show=True),
        Binding("escape", "acknowledge", "Exit", show=False),
        Binding("q", "acknowledge", "Exit", show=False),
    ]

    def __init__(self, message: str) -> None:
        super().__init__(id="connection-error")
        self.message = message

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Static("Unable to connect", classes="error-title")
            yield Static(self.message, id="connection-error-message", markup=False)
            yield Button("Exit", id="acknowledge", variant="error")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "acknowledge":
            event.stop()
            self.action_acknowledge()

    def action_acknowledge(self) -> None:
        self.dismiss(True)


__all__ = ["ConnectionErrorScreen"]
