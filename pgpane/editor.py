"""Text buffer behind the query editor pane."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class QueryBuffer:
    """Pending SQL text plus a zero-width insertion point."""

    text: str = ""
    cursor: int = 0

    @classmethod
    def from_text(cls, text: str) -> QueryBuffer:
        return cls(text=text, cursor=len(text))

    def insert(self, chars: str) -> QueryBuffer:
        text = self.text[: self.cursor] + chars + self.text[self.cursor :]
        return QueryBuffer(text=text, cursor=self.cursor + len(chars))

    def backspace(self) -> QueryBuffer:
        if self.cursor == 0:
            return self
        text = self.text[: self.cursor - 1] + self.text[self.cursor :]
        return QueryBuffer(text=text, cursor=self.cursor - 1)

    def delete(self) -> QueryBuffer:
        if self.cursor >= len(self.text):
            return self
        return QueryBuffer(text=self.text[: self.cursor] + self.text[self.cursor + 1 :], cursor=self.cursor)

    def move(self, delta: int) -> QueryBuffer:
        return self.move_to(self.cursor + delta)

    def move_to(self, position: int) -> QueryBuffer:
        return QueryBuffer(text=self.text, cursor=max(0, min(len(self.text), position)))

    def home(self) -> QueryBuffer:
        return self.move_to(0)

    def end(self) -> QueryBuffer:
        return self.move_to(len(self.text))

    def clear(self) -> QueryBuffer:
        return QueryBuffer()


__all__ = ["QueryBuffer"]
