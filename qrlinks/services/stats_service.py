"""
Statistics Service

This service handles analytics for links:
- Per-link analytics (owner only, requires analytics entitlement)
- Owner dashboard across every owned link
- Raw export of a link's retained scan history (requires export entitlement)

Design Decisions:
- Read-only: loads links and histories, then hands them to the pure
  functions in qrlinks.services.analytics
- Recomputed on every request, no materialized view to invalidate
"""

from datetime import datetime
from typing import Optional

from qrlinks.core.exceptions import FeatureGatedError
from qrlinks.core.plans import OwnerContext
from qrlinks.core.setting import settings
from qrlinks.db.models import Link, as_utc
from qrlinks.db.stores import LinkStore
from qrlinks.services import analytics
from qrlinks.services.link_service import LinkService


class StatsService:
    """
    Service for retrieving link statistics.

    Ownership is checked before entitlement, so a non-owner always sees
    "not found" regardless of their plan.
    """

    def __init__(
        self,
        link_store: LinkStore,
        link_service: Optional[LinkService] = None,
        window_days: Optional[int] = None
    ):
        self.link_store = link_store
        self.link_service = link_service or LinkService(link_store)
        self.window_days = settings.ANALYTICS_WINDOW_DAYS if window_days is None else window_days
        if self.window_days < 1:
            raise ValueError("window_days must be at least 1")

    @staticmethod
    def _require(entitled: bool, feature: str, owner: OwnerContext) -> None:
        if not entitled:
            raise FeatureGatedError(feature, owner.plan.value)

    @staticmethod
    def link_summary(link: Link, owner: Optional[OwnerContext]) -> Optional[dict]:
        """Counters shown on a link's detail view, for the owner of a premium link only."""
        if owner is None or link.owner_id != owner.owner_id or not link.is_premium:
            return None
        return {
            "total_scans": link.total_scans,
            "last_scanned_at": as_utc(link.last_scanned_at),
        }

    async def link_analytics(
        self,
        link_id: int,
        owner: OwnerContext,
        now: Optional[datetime] = None
    ) -> dict:
        """
        Analytics for one owned link.

        Raises:
            LinkNotFoundError: If the link is missing or not owned
            FeatureGatedError: If the plan does not include analytics
        """
        link = await self.link_service.get_owned_link(link_id, owner)
        self._require(owner.limits.can_track_analytics, "Analytics access", owner)

        history = await self.link_store.scan_history(link.id)
        recent = analytics.recent_scans(history, self.window_days, now)
        return {
            "link_id": link.id,
            "identifier": link.identifier,
            "total_scans": link.total_scans,
            "last_scanned_at": as_utc(link.last_scanned_at),
            "created_at": as_utc(link.created_at),
            "scans_in_window": len(recent),
            "recent_scans": [
                {
                    "timestamp": as_utc(event.timestamp),
                    "user_agent": event.user_agent,
                    "location": event.location,
                }
                for event in recent
            ],
            "daily_scans": analytics.daily_series(history, self.window_days, now),
            "device_stats": analytics.device_breakdown(history),
            "location_stats": analytics.location_breakdown(history),
        }

    async def dashboard(self, owner: OwnerContext, now: Optional[datetime] = None) -> dict:
        """
        Aggregate analytics over every link of the owner.

        Raises:
            FeatureGatedError: If the plan does not include analytics
        """
        self._require(owner.limits.can_track_analytics, "Analytics access", owner)

        links = await self.link_store.find_by_owner(owner.owner_id)
        histories = await self.link_store.scan_histories(link.id for link in links)
        return analytics.build_dashboard(links, histories, self.window_days, now)

    async def export_link(self, link_id: int, owner: OwnerContext) -> dict:
        """
        Full retained history of one owned link, including scanner addresses.

        Raises:
            LinkNotFoundError: If the link is missing or not owned
            FeatureGatedError: If the plan does not include data export
        """
        link = await self.link_service.get_owned_link(link_id, owner)
        self._require(owner.limits.can_export_data, "Data export", owner)

        history = await self.link_store.scan_history(link.id)
        return {
            "link": {
                "id": link.id,
                "identifier": link.identifier,
                "title": link.title,
                "description": link.description,
                "destination_url": link.destination_url,
                "created_at": as_utc(link.created_at),
            },
            "analytics": {
                "total_scans": link.total_scans,
                "last_scanned_at": as_utc(link.last_scanned_at),
                "scan_history": [
                    {
                        "timestamp": as_utc(event.timestamp),
                        "user_agent": event.user_agent,
                        "ip_address": event.ip_address,
                        "location": event.location.model_dump() if event.location else None,
                    }
                    for event in history
                ],
            },
        }
