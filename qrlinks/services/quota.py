"""
Quota Enforcement

Checks an owner's current link count against the plan limit before a link
is created. Counting uses live links, so deleting a link frees its slot.

Concurrency:
- reserve() holds a per-owner asyncio.Lock across the check and the insert,
  so concurrent creations by one owner inside this process are serialized
  and cannot overshoot the limit
- Across several processes the bound is best effort (see DESIGN.md)
"""

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

from qrlinks.core.exceptions import QuotaExceededError
from qrlinks.core.plans import OwnerContext
from qrlinks.db.stores import LinkStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuotaDecision:
    allowed: bool
    reason: Optional[str] = None


class OwnerLocks:
    """
    Lazily created lock per owner id.

    Locks are held weakly: once no request holds or waits on an owner's lock
    it is dropped, so the map only contains owners with creations in flight.
    """

    def __init__(self):
        self._locks: weakref.WeakValueDictionary[int, asyncio.Lock] = weakref.WeakValueDictionary()

    def for_owner(self, owner_id: int) -> asyncio.Lock:
        lock = self._locks.get(owner_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[owner_id] = lock
        return lock

    def tracked_owners(self) -> set[int]:
        return set(self._locks.keys())


# Shared by every request handled by this process
owner_locks = OwnerLocks()


class QuotaEnforcer:

    def __init__(self, link_store: LinkStore, locks: Optional[OwnerLocks] = None):
        self.link_store = link_store
        self.locks = locks if locks is not None else owner_locks

    async def check_quota(self, owner: Optional[OwnerContext]) -> QuotaDecision:
        """
        Decide whether the owner may create one more link.

        Anonymous requests are always allowed; a limit of -1 is unlimited.
        """
        if owner is None:
            return QuotaDecision(allowed=True)

        current = await self.link_store.count_by_owner(owner.owner_id)
        if owner.limits.allows_links(current):
            return QuotaDecision(allowed=True)

        error = QuotaExceededError(owner.limits.max_links, owner.plan.value)
        return QuotaDecision(allowed=False, reason=str(error))

    async def ensure_quota(self, owner: Optional[OwnerContext]) -> None:
        """
        Raises:
            QuotaExceededError: If the owner is at their plan limit
        """
        decision = await self.check_quota(owner)
        if not decision.allowed:
            logger.warning(f"Quota denied for owner {owner.owner_id}: {decision.reason}")
            raise QuotaExceededError(owner.limits.max_links, owner.plan.value)

    @asynccontextmanager
    async def reserve(self, owner: Optional[OwnerContext]):
        """
        Check the quota and keep the owner's slot locked until the block exits.

        Usage:
            async with quota.reserve(owner):
                await store.insert(link)
        """
        if owner is None:
            yield
            return

        async with self.locks.for_owner(owner.owner_id):
            await self.ensure_quota(owner)
            yield
