"""
API Request and Response Schemas

This module defines all Pydantic models for API requests and responses.
Separated from endpoints to keep concerns separated and enable reuse.

Design Principles:
- Request models: Define input shape; value rules (URL format, color
  format, size range) are enforced by the services so every caller gets
  the same validation
- Response models: Define output structure
- Builders: Response models construct themselves from store records
"""

from datetime import date as Date, datetime
from typing import Optional

from pydantic import BaseModel, Field

from qrlinks.core.plans import Plan
from qrlinks.db.models import Account, Link, Location, as_utc


class CreateLinkRequest(BaseModel):
    """Request model for link creation."""
    url: str = Field(..., description="Destination URL; https:// is assumed when no scheme is given")
    title: Optional[str] = Field(None, description="Display title (max 100 characters)")
    description: Optional[str] = Field(None, description="Description (max 500 characters)")
    size: int = Field(256, description="QR image size in pixels (128-1024)")
    error_correction_level: str = Field("M", description="QR error correction level: L, M, Q or H")
    foreground_color: str = Field("#000000", description="Dark module color as #RRGGBB")
    background_color: str = Field("#FFFFFF", description="Light module color as #RRGGBB")


class UpdateLinkRequest(BaseModel):
    """Only fields present in the body are changed."""
    title: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None


class Customization(BaseModel):
    size: int
    error_correction_level: str
    foreground_color: str
    background_color: str


class LinkAnalyticsSummary(BaseModel):
    total_scans: int
    last_scanned_at: Optional[datetime] = None


class CreateLinkResponse(BaseModel):
    """Response model for link creation."""
    id: int
    identifier: str = Field(..., description="The generated short identifier")
    destination_url: str = Field(..., description="The normalized destination URL")
    short_url: str = Field(..., description="Redirect URL encoded in the QR image")
    image_payload: str = Field(..., description="QR image as a PNG data URL")
    title: Optional[str] = None
    description: Optional[str] = None
    customization: Customization
    is_premium: bool
    created_at: datetime

    @classmethod
    def from_link(cls, link: Link, short_url: str) -> "CreateLinkResponse":
        return cls(
            id=link.id,
            identifier=link.identifier,
            destination_url=link.destination_url,
            short_url=short_url,
            image_payload=link.image_payload,
            title=link.title,
            description=link.description,
            customization=Customization(**link.customization),
            is_premium=link.is_premium,
            created_at=as_utc(link.created_at),
        )


class LinkDetailResponse(BaseModel):
    """Public view of a link; analytics only for the owner of a premium link."""
    id: int
    identifier: str
    destination_url: str
    short_url: str
    image_payload: str
    title: Optional[str] = None
    description: Optional[str] = None
    customization: Customization
    created_at: datetime
    analytics: Optional[LinkAnalyticsSummary] = None

    @classmethod
    def from_link(
        cls,
        link: Link,
        short_url: str,
        analytics: Optional[dict] = None
    ) -> "LinkDetailResponse":
        return cls(
            id=link.id,
            identifier=link.identifier,
            destination_url=link.destination_url,
            short_url=short_url,
            image_payload=link.image_payload,
            title=link.title,
            description=link.description,
            customization=Customization(**link.customization),
            created_at=as_utc(link.created_at),
            analytics=LinkAnalyticsSummary(**analytics) if analytics else None,
        )


class LinkSummary(BaseModel):
    """Owner's view of a link in listings and after updates (no image)."""
    id: int
    identifier: str
    destination_url: str
    short_url: str
    title: Optional[str] = None
    description: Optional[str] = None
    is_active: bool
    total_scans: int
    last_scanned_at: Optional[datetime] = None
    created_at: datetime

    @classmethod
    def from_link(cls, link: Link, short_url: str) -> "LinkSummary":
        return cls(
            id=link.id,
            identifier=link.identifier,
            destination_url=link.destination_url,
            short_url=short_url,
            title=link.title,
            description=link.description,
            is_active=link.is_active,
            total_scans=link.total_scans,
            last_scanned_at=as_utc(link.last_scanned_at),
            created_at=as_utc(link.created_at),
        )


class Pagination(BaseModel):
    current: int
    total_pages: int
    count: int
    total_items: int


class LinkListResponse(BaseModel):
    links: list[LinkSummary]
    pagination: Pagination


class MessageResponse(BaseModel):
    message: str


# Analytics

class DailyScans(BaseModel):
    date: Date
    scans: int


class DeviceStats(BaseModel):
    device: str
    count: int
    percentage: int


class LocationStats(BaseModel):
    country: str
    count: int


def _rows(model, items) -> list:
    return [model(**item._asdict()) for item in items]


class ScanItem(BaseModel):
    timestamp: datetime
    user_agent: Optional[str] = None
    location: Optional[Location] = None


class LinkAnalyticsResponse(BaseModel):
    link_id: int
    identifier: str
    total_scans: int
    last_scanned_at: Optional[datetime] = None
    created_at: datetime
    scans_in_window: int = Field(..., description="Scans inside the trailing analytics window")
    recent_scans: list[ScanItem] = Field(..., description="In-window scans, oldest first")
    daily_scans: list[DailyScans]
    device_stats: list[DeviceStats]
    location_stats: list[LocationStats]

    @classmethod
    def build(cls, data: dict) -> "LinkAnalyticsResponse":
        return cls(
            **{
                **data,
                "recent_scans": [ScanItem(**item) for item in data["recent_scans"]],
                "daily_scans": _rows(DailyScans, data["daily_scans"]),
                "device_stats": _rows(DeviceStats, data["device_stats"]),
                "location_stats": _rows(LocationStats, data["location_stats"]),
            }
        )


class DashboardOverview(BaseModel):
    total_links: int
    active_links: int
    total_scans: int
    scans_in_window: int


class ActivityItem(BaseModel):
    link_id: int
    title: str
    identifier: str
    timestamp: datetime


class TopLink(BaseModel):
    id: int
    identifier: str
    title: str
    total_scans: int
    is_active: bool
    last_scanned_at: Optional[datetime] = None
    created_at: datetime


class DashboardResponse(BaseModel):
    overview: DashboardOverview
    recent_activity: list[ActivityItem]
    top_performing: list[TopLink]
    daily_scans: list[DailyScans]
    device_stats: list[DeviceStats]
    location_stats: list[LocationStats]

    @classmethod
    def build(cls, data: dict) -> "DashboardResponse":
        return cls(
            overview=DashboardOverview(**data["overview"]),
            recent_activity=[ActivityItem(**item) for item in data["recent_activity"]],
            top_performing=[TopLink(**item) for item in data["top_performing"]],
            daily_scans=_rows(DailyScans, data["daily_scans"]),
            device_stats=_rows(DeviceStats, data["device_stats"]),
            location_stats=_rows(LocationStats, data["location_stats"]),
        )


# Accounts

class RegisterRequest(BaseModel):
    email: str
    password: str
    display_name: str


class LoginRequest(BaseModel):
    email: str
    password: str


class AccountLimits(BaseModel):
    max_links: int
    max_scans_per_month: int
    can_customize: bool
    can_track_analytics: bool
    can_export_data: bool


class AccountUsage(BaseModel):
    links_created: int
    monthly_scans: int
    last_reset_date: datetime


class AccountResponse(BaseModel):
    id: int
    email: str
    display_name: str
    plan: Plan
    limits: AccountLimits
    usage: AccountUsage

    @classmethod
    def from_account(cls, account: Account) -> "AccountResponse":
        return cls(
            id=account.id,
            email=account.email,
            display_name=account.display_name,
            plan=account.plan_tier,
            limits=AccountLimits(**account.limits.model_dump()),
            usage=AccountUsage(
                links_created=account.links_created,
                monthly_scans=account.monthly_scans,
                last_reset_date=as_utc(account.last_reset_date),
            ),
        )


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    account: AccountResponse


class PlanChangedRequest(BaseModel):
    """Billing notification: the account now holds this plan."""
    account_id: int
    plan: str = Field(..., description="free, pro or enterprise (business is accepted as enterprise)")
