"""
Database Models for the QR Links Service

This module defines the SQLModel database schemas for:
- Account: Registered owner holding plan-gating state
- Link: Mapping from a short identifier to a destination URL
- ScanEvent: Retained scan history of a link (newest SCAN_HISTORY_LIMIT rows)
- IssuedIdentifier: Every identifier ever handed out, never deleted

Design Decisions:
- Scan history lives in its own table so a scan is an insert, not a rewrite
  of the link row
- total_scans is denormalized on Link and incremented in place; it is not
  derived from the retained history
- IssuedIdentifier keeps identifiers retired after a link is deleted so a
  printed QR code can never start pointing somewhere new
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlmodel import Field, SQLModel

from qrlinks.core.plans import Limits, Plan, limits_for_plan

_FREE_LIMITS = limits_for_plan(Plan.FREE)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite returns them without tzinfo)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Location(BaseModel):
    country: Optional[str] = None
    city: Optional[str] = None


class Account(SQLModel, table=True):
    """
    Registered owner of links.

    The limit columns are written only by apply_plan(); they mirror the
    plan catalogue and are stored so reads need no lookup.
    """
    __tablename__ = "accounts"

    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(sa_column=Column(String(254), nullable=False, unique=True, index=True))
    password_hash: str = Field(sa_column=Column(String(128), nullable=False))
    display_name: str = Field(sa_column=Column(String(50), nullable=False))
    plan: str = Field(
        default=Plan.FREE.value,
        sa_column=Column(String(20), nullable=False, default=Plan.FREE.value)
    )

    max_links: int = Field(default=_FREE_LIMITS.max_links, sa_column=Column(Integer, nullable=False))
    max_scans_per_month: int = Field(
        default=_FREE_LIMITS.max_scans_per_month,
        sa_column=Column(Integer, nullable=False)
    )
    can_customize: bool = Field(default=False, sa_column=Column(Boolean, nullable=False))
    can_track_analytics: bool = Field(default=False, sa_column=Column(Boolean, nullable=False))
    can_export_data: bool = Field(default=False, sa_column=Column(Boolean, nullable=False))

    links_created: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    monthly_scans: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    last_reset_date: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )

    @property
    def plan_tier(self) -> Plan:
        return Plan.parse(self.plan)

    @property
    def limits(self) -> Limits:
        return Limits(
            max_links=self.max_links,
            max_scans_per_month=self.max_scans_per_month,
            can_customize=self.can_customize,
            can_track_analytics=self.can_track_analytics,
            can_export_data=self.can_export_data,
        )

    def apply_plan(self, plan) -> None:
        """Switch plan and overwrite every limit column from the catalogue."""
        tier = Plan.parse(plan)
        limits = limits_for_plan(tier)
        self.plan = tier.value
        self.max_links = limits.max_links
        self.max_scans_per_month = limits.max_scans_per_month
        self.can_customize = limits.can_customize
        self.can_track_analytics = limits.can_track_analytics
        self.can_export_data = limits.can_export_data
        self.updated_at = utc_now()


class Link(SQLModel, table=True):
    """
    A short identifier, its destination and its analytics counters.

    Indexes:
    - identifier: Unique index for the redirect lookup (most critical path)
    - owner_id: Dashboard listing and quota counting
    - created_at: Listing order
    """
    __tablename__ = "links"

    id: Optional[int] = Field(default=None, primary_key=True)
    identifier: str = Field(sa_column=Column(String(20), nullable=False, unique=True, index=True))
    destination_url: str = Field(sa_column=Column(Text, nullable=False))
    owner_id: Optional[int] = Field(
        default=None,
        sa_column=Column(
            Integer, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True, index=True
        )
    )
    title: Optional[str] = Field(default=None, sa_column=Column(String(100), nullable=True))
    description: Optional[str] = Field(default=None, sa_column=Column(String(500), nullable=True))

    size: int = Field(default=256, sa_column=Column(Integer, nullable=False, default=256))
    error_correction_level: str = Field(
        default="M",
        sa_column=Column(String(1), nullable=False, default="M")
    )
    foreground_color: str = Field(
        default="#000000",
        sa_column=Column(String(7), nullable=False, default="#000000")
    )
    background_color: str = Field(
        default="#FFFFFF",
        sa_column=Column(String(7), nullable=False, default="#FFFFFF")
    )
    image_payload: str = Field(default="", sa_column=Column(Text, nullable=False, default=""))

    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    is_premium: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))

    total_scans: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    last_scanned_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True)
    )

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )

    @property
    def customization(self) -> dict:
        return {
            "size": self.size,
            "error_correction_level": self.error_correction_level,
            "foreground_color": self.foreground_color,
            "background_color": self.background_color,
        }


class ScanEvent(SQLModel, table=True):
    """
    One retained resolution of a link.

    Rows are ordered by id, which is also chronological order; the store
    trims the oldest rows once a link holds more than SCAN_HISTORY_LIMIT.
    """
    __tablename__ = "scan_events"

    id: Optional[int] = Field(default=None, primary_key=True)
    link_id: Optional[int] = Field(
        default=None,
        sa_column=Column(
            Integer, ForeignKey("links.id", ondelete="CASCADE"), nullable=False, index=True
        )
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )
    user_agent: Optional[str] = Field(default=None, sa_column=Column(String(500), nullable=True))
    ip_address: Optional[str] = Field(default=None, sa_column=Column(String(45), nullable=True))
    country: Optional[str] = Field(default=None, sa_column=Column(String(100), nullable=True))
    city: Optional[str] = Field(default=None, sa_column=Column(String(100), nullable=True))

    @property
    def location(self) -> Optional[Location]:
        if not self.country and not self.city:
            return None
        return Location(country=self.country, city=self.city)


class IssuedIdentifier(SQLModel, table=True):
    """Identifiers ever issued; rows are never deleted."""
    __tablename__ = "issued_identifiers"

    identifier: str = Field(sa_column=Column(String(20), primary_key=True))
    issued_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
