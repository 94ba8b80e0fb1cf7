"""
In-Memory Stores

Process-local implementations of LinkStore and AccountStore. Each store
instance owns its own maps, nothing is shared at module level. Mutations
run under an asyncio.Lock so record_scan has the same all-or-nothing
behavior as the SQL implementation.
"""

import asyncio
import itertools
from typing import Iterable, Optional

from qrlinks.core.exceptions import DuplicateEmailError, DuplicateIdentifierError
from qrlinks.db.models import Account, Link, ScanEvent, utc_now
from qrlinks.db.stores import AccountStore, LinkStore


class InMemoryLinkStore(LinkStore):

    def __init__(self):
        self._links: dict[int, Link] = {}
        self._history: dict[int, list[ScanEvent]] = {}
        self._issued: set[str] = set()
        self._ids = itertools.count(1)
        self._event_ids = itertools.count(1)
        self._lock = asyncio.Lock()

    async def insert(self, link: Link) -> Link:
        async with self._lock:
            if link.identifier in self._issued:
                raise DuplicateIdentifierError(link.identifier)
            self._issued.add(link.identifier)
            link.id = next(self._ids)
            self._links[link.id] = link
            self._history[link.id] = []
            return link

    async def get(self, link_id: int) -> Optional[Link]:
        return self._links.get(link_id)

    async def find_by_identifier(self, identifier: str, active_only: bool = False) -> Optional[Link]:
        for link in self._links.values():
            if link.identifier == identifier:
                if active_only and not link.is_active:
                    return None
                return link
        return None

    async def find_by_owner(
        self,
        owner_id: int,
        skip: int = 0,
        limit: Optional[int] = None
    ) -> list[Link]:
        owned = [link for link in self._links.values() if link.owner_id == owner_id]
        owned.sort(key=lambda link: (link.created_at, link.id), reverse=True)
        end = None if limit is None else skip + limit
        return owned[skip:end]

    async def count_by_owner(self, owner_id: int) -> int:
        return sum(1 for link in self._links.values() if link.owner_id == owner_id)

    async def update(self, link_id: int, **fields) -> Optional[Link]:
        async with self._lock:
            link = self._links.get(link_id)
            if link is None:
                return None
            for name, value in fields.items():
                setattr(link, name, value)
            link.updated_at = utc_now()
            return link

    async def delete(self, link_id: int) -> bool:
        async with self._lock:
            if self._links.pop(link_id, None) is None:
                return False
            self._history.pop(link_id, None)
            return True

    async def record_scan(self, link_id: int, event: ScanEvent, history_limit: int) -> Optional[Link]:
        async with self._lock:
            link = self._links.get(link_id)
            if link is None:
                return None
            event.id = next(self._event_ids)
            event.link_id = link_id
            history = self._history[link_id]
            history.append(event)
            if len(history) > history_limit:
                del history[:len(history) - history_limit]
            link.total_scans += 1
            link.last_scanned_at = event.timestamp
            link.updated_at = utc_now()
            return link

    async def scan_history(self, link_id: int) -> list[ScanEvent]:
        return list(self._history.get(link_id, []))

    async def scan_histories(self, link_ids: Iterable[int]) -> dict[int, list[ScanEvent]]:
        return {link_id: list(self._history.get(link_id, [])) for link_id in link_ids}


class InMemoryAccountStore(AccountStore):

    def __init__(self):
        self._accounts: dict[int, Account] = {}
        self._ids = itertools.count(1)
        self._lock = asyncio.Lock()

    async def insert(self, account: Account) -> Account:
        async with self._lock:
            if any(existing.email == account.email for existing in self._accounts.values()):
                raise DuplicateEmailError(account.email)
            account.id = next(self._ids)
            self._accounts[account.id] = account
            return account

    async def get(self, account_id: int) -> Optional[Account]:
        return self._accounts.get(account_id)

    async def find_by_email(self, email: str) -> Optional[Account]:
        for account in self._accounts.values():
            if account.email == email:
                return account
        return None

    async def save(self, account: Account) -> Account:
        async with self._lock:
            account.updated_at = utc_now()
            self._accounts[account.id] = account
            return account

    async def increment_usage(
        self,
        account_id: int,
        links_created: int = 0,
        monthly_scans: int = 0
    ) -> None:
        async with self._lock:
            account = self._accounts.get(account_id)
            if account is None:
                return
            account.links_created = max(0, account.links_created + links_created)
            account.monthly_scans += monthly_scans
