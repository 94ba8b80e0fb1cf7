"""
Database module with abstraction layer.

This module provides:
- DatabaseAdapter interface: Builds the async engine per backend
- LinkStore / AccountStore: Persistence contracts used by the services
- SQL and in-memory store implementations
- Session management: Database session creation and management
"""

from qrlinks.db.interface import DatabaseAdapter
from qrlinks.db.memory_store import InMemoryAccountStore, InMemoryLinkStore
from qrlinks.db.sql_store import SQLAccountStore, SQLLinkStore
from qrlinks.db.stores import AccountStore, LinkStore

__all__ = [
    "DatabaseAdapter",
    "LinkStore",
    "AccountStore",
    "SQLLinkStore",
    "SQLAccountStore",
    "InMemoryLinkStore",
    "InMemoryAccountStore",
]
