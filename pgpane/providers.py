"""Command palette providers for core app features."""

from __future__ import annotations

from textual.command import DiscoveryHit, Hit, Hits, Provider
from textual.types import IgnoreReturnCallbackType

from .session import Session


class SessionActionsProvider(Provider):
    """Expose reconnect and query cancellation to the command palette."""

    _ACTIONS: tuple[tuple[str, str, str], ...] = (
        ("Reconnect and reload databases", "reconnect", "Trigger Ctrl+R equivalent reload."),
        ("Cancel running query", "cancel_query", "Same as Escape while a query runs."),
    )

    async def search(self, query: str) -> Hits:
        session = self._session
        if session is None:
            return
        matcher = self.matcher(query)
        for label, action, help_text in self._ACTIONS:
            score = matcher.match(label)
            if score > 0:
                yield Hit(
                    score=score,
                    match_display=matcher.highlight(label),
                    command=self._build_callback(action),
                    help=help_text,
                )

    async def discover(self) -> Hits:
        if self._session is None:
            return
        for label, action, help_text in self._ACTIONS:
            yield DiscoveryHit(
                display=label,
                command=self._build_callback(action),
                help=help_text,
            )

    @property
    def _session(self) -> Session | None:
        session = getattr(self.app, "session", None)
        if isinstance(session, Session):
            return session
        return None

    def _build_callback(self, action: str) -> IgnoreReturnCallbackType:
        async def _run() -> None:
            await self.app.run_action(action)

        return _run


__all__ = ["SessionActionsProvider"]
