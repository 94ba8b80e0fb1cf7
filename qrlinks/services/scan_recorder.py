"""
Scan Recorder

Appends a scan event to a link's history and updates its counters.

Design Decisions:
- Delegates to LinkStore.record_scan, a single atomic store operation
  (increment + bounded push) rather than load-mutate-save, so concurrent
  scans of one link are lossless
- History is a sliding window of the newest SCAN_HISTORY_LIMIT events;
  total_scans keeps counting past it
- Owned links also bump the owner's monthly_scans usage counter
"""

import logging
from typing import Optional

from qrlinks.core.setting import settings
from qrlinks.db.models import Link, ScanEvent
from qrlinks.db.stores import AccountStore, LinkStore

logger = logging.getLogger(__name__)


class ScanRecorder:

    def __init__(
        self,
        link_store: LinkStore,
        account_store: Optional[AccountStore] = None,
        history_limit: Optional[int] = None
    ):
        """
        Args:
            link_store: Store holding links and their scan history
            account_store: When given, owners' monthly_scans are counted
            history_limit: Retained events per link (SCAN_HISTORY_LIMIT by default, 0 keeps none)
        """
        self.link_store = link_store
        self.account_store = account_store
        self.history_limit = settings.SCAN_HISTORY_LIMIT if history_limit is None else history_limit
        if self.history_limit < 0:
            raise ValueError("history_limit must not be negative")

    async def record_scan(self, link: Link, event: ScanEvent) -> Optional[Link]:
        """
        Record one scan of a link.

        Returns:
            The updated link, or None if it was deleted in the meantime
        """
        updated = await self.link_store.record_scan(link.id, event, self.history_limit)
        if updated is None:
            logger.debug(f"Link {link.id} vanished before its scan was recorded")
            return None

        if updated.owner_id is not None and self.account_store is not None:
            await self.account_store.increment_usage(updated.owner_id, monthly_scans=1)

        return updated
