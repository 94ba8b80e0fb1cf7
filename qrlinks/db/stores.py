"""
Store Interfaces

This module defines the persistence contracts the services depend on.
Services never touch sessions or SQL directly, which keeps the redirect and
analytics logic independent of the storage engine.

Implementations:
- SQLLinkStore / SQLAccountStore: SQLModel over an async SQLAlchemy session
- InMemoryLinkStore / InMemoryAccountStore: process-local, used in tests
  and for running the service without a database

To add a new backend:
1. Create classes inheriting from LinkStore and AccountStore
2. Implement all abstract methods
3. Return them from the dependency providers in qrlinks.api.deps
"""

from abc import ABC, abstractmethod
from typing import Iterable, Optional

from qrlinks.db.models import Account, Link, ScanEvent


class LinkStore(ABC):
    """
    Persistence contract for links and their scan history.

    Every method is a single store operation; none of them holds state
    between calls.
    """

    @abstractmethod
    async def insert(self, link: Link) -> Link:
        """
        Insert a new link and retire its identifier.

        Returns:
            The stored link with its id populated

        Raises:
            DuplicateIdentifierError: If the identifier was ever issued before
            StoreUnavailableError: If the store cannot be reached
        """
        pass

    @abstractmethod
    async def get(self, link_id: int) -> Optional[Link]:
        """Fetch a link by primary key."""
        pass

    @abstractmethod
    async def find_by_identifier(self, identifier: str, active_only: bool = False) -> Optional[Link]:
        """
        Fetch a link by identifier.

        Args:
            identifier: The short identifier
            active_only: Ignore links whose is_active flag is off
        """
        pass

    @abstractmethod
    async def find_by_owner(
        self,
        owner_id: int,
        skip: int = 0,
        limit: Optional[int] = None
    ) -> list[Link]:
        """Links of an owner, newest first."""
        pass

    @abstractmethod
    async def count_by_owner(self, owner_id: int) -> int:
        pass

    @abstractmethod
    async def update(self, link_id: int, **fields) -> Optional[Link]:
        """
        Apply field changes and bump updated_at.

        Returns:
            The updated link, or None if it does not exist
        """
        pass

    @abstractmethod
    async def delete(self, link_id: int) -> bool:
        """Hard delete a link and its history. The identifier stays retired."""
        pass

    @abstractmethod
    async def record_scan(self, link_id: int, event: ScanEvent, history_limit: int) -> Optional[Link]:
        """
        Atomically record one scan.

        Increments total_scans, sets last_scanned_at to the event timestamp,
        appends the event and drops the oldest events beyond history_limit.
        Concurrent calls must never lose an increment.

        Returns:
            The updated link, or None if it does not exist
        """
        pass

    @abstractmethod
    async def scan_history(self, link_id: int) -> list[ScanEvent]:
        """Retained events of a link in chronological order."""
        pass

    @abstractmethod
    async def scan_histories(self, link_ids: Iterable[int]) -> dict[int, list[ScanEvent]]:
        """Retained events of several links, keyed by link id."""
        pass


class AccountStore(ABC):
    """Persistence contract for accounts."""

    @abstractmethod
    async def insert(self, account: Account) -> Account:
        """
        Raises:
            DuplicateEmailError: If the email already has an account
        """
        pass

    @abstractmethod
    async def get(self, account_id: int) -> Optional[Account]:
        pass

    @abstractmethod
    async def find_by_email(self, email: str) -> Optional[Account]:
        pass

    @abstractmethod
    async def save(self, account: Account) -> Account:
        """Persist every column of an already stored account."""
        pass

    @abstractmethod
    async def increment_usage(
        self,
        account_id: int,
        links_created: int = 0,
        monthly_scans: int = 0
    ) -> None:
        """Atomically adjust usage counters; links_created never drops below 0."""
        pass
