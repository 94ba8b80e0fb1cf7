"""
Database Adapters

Implements the DatabaseAdapter interface for SQLite (default) and PostgreSQL.
All backend-specific configuration is encapsulated here.

SQLite is a file-based database that's perfect for:
- Local development
- Testing
- Single-instance deployments

PostgreSQL is selected automatically for postgresql:// URLs.
"""

from typing import Any

from sqlalchemy.pool import NullPool

from qrlinks.db.interface import DatabaseAdapter


class SQLiteAdapter(DatabaseAdapter):
    """
    SQLite database adapter implementation.

    SQLite uses file-based storage and serializes writers, which also makes
    the single-transaction scan update naturally exclusive.
    """

    def get_pool_class(self) -> type[NullPool]:
        """
        SQLite uses NullPool because the file-based database doesn't benefit
        from connection pooling.
        """
        return NullPool

    def get_connect_args(self) -> dict[str, Any]:
        return {
            "check_same_thread": False
        }

    def get_engine_kwargs(self) -> dict[str, Any]:
        return {
            "echo": False  # Set to True only for SQL debugging in development
        }

    def get_dialect_name(self) -> str:
        return "sqlite"


class PostgreSQLAdapter(DatabaseAdapter):
    """PostgreSQL adapter using the asyncpg driver and a queue pool."""

    def get_pool_class(self) -> None:
        return None

    def get_connect_args(self) -> dict[str, Any]:
        return {}

    def get_engine_kwargs(self) -> dict[str, Any]:
        return {
            "echo": False,
            "pool_size": 10,
            "max_overflow": 20,
            "pool_pre_ping": True,
        }

    def get_dialect_name(self) -> str:
        return "postgresql"


def get_database_adapter(database_url: str = "") -> DatabaseAdapter:
    """
    Factory function to get the database adapter for a connection string.

    Returns:
        PostgreSQLAdapter for postgresql URLs, SQLiteAdapter otherwise
    """
    if database_url.startswith("postgresql"):
        return PostgreSQLAdapter()
    return SQLiteAdapter()
