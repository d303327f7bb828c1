"""Terminal explorer for PostgreSQL databases, tables and ad-hoc queries."""

__version__ = "0.1.0"
