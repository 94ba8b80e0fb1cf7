"""
Redirect Service

This service handles URL redirection logic: look up an active link by
identifier, record the scan and hand back the destination.

Design Decisions:
- The only code path that mutates analytics
- Inactive and unknown identifiers are indistinguishable (both None)
- The scan is recorded before returning, inside the request
"""

import logging
from typing import Optional

from qrlinks.db.models import ScanEvent, utc_now
from qrlinks.db.stores import LinkStore
from qrlinks.services.geolocation import GeoLocator, NullGeoLocator
from qrlinks.services.scan_recorder import ScanRecorder

logger = logging.getLogger(__name__)


class RedirectService:
    """
    Service for handling redirections of short identifiers.
    """

    def __init__(
        self,
        link_store: LinkStore,
        scan_recorder: ScanRecorder,
        geolocator: Optional[GeoLocator] = None
    ):
        self.link_store = link_store
        self.scan_recorder = scan_recorder
        self.geolocator = geolocator or NullGeoLocator()

    async def resolve(
        self,
        identifier: str,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None
    ) -> Optional[str]:
        """
        Resolve an identifier to its destination and record the scan.

        Args:
            identifier: The short identifier from the redirect URL
            user_agent: Requester's User-Agent header, if any
            ip_address: Requester's address, if known

        Returns:
            Destination URL, or None if the link is unknown or inactive
        """
        link = await self.link_store.find_by_identifier(identifier, active_only=True)
        if link is None:
            logger.debug(f"Identifier not resolvable: {identifier}")
            return None

        location = await self.geolocator.locate(ip_address)
        event = ScanEvent(
            timestamp=utc_now(),
            user_agent=user_agent[:500] if user_agent else None,
            ip_address=ip_address[:45] if ip_address else None,
            country=location.country if location else None,
            city=location.city if location else None,
        )

        updated = await self.scan_recorder.record_scan(link, event)
        if updated is None:
            return None
        return updated.destination_url
