"""Shared dataclasses used across the gateway, navigation and render modules."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ConnectionProfile:
    """Runtime representation of a connection profile."""

    name: str
    dsn: str | None = None
    host: str | None = None
    port: int | None = None
    database: str | None = None
    user: str | None = None
    password: str | None = None


@dataclass(frozen=True, slots=True)
class DatabaseEntry:
    """Database advertised by the server."""

    name: str


@dataclass(frozen=True, slots=True)
class TableEntry:
    """Table within the selected database."""

    name: str
    schema: str = "public"

    @property
    def qualified_name(self) -> str:
        return f"{self.schema}.{self.name}"


__all__ = ["ConnectionProfile", "DatabaseEntry", "TableEntry"]
