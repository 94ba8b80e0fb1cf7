"""
Analytics Aggregation

Pure functions over scan histories. Nothing here touches a store; callers
load links and histories and pass them in, and results are recomputed on
every request.

Windows:
A window of N days covers N whole UTC calendar days ending today. The
daily series, recent scans and dashboard totals all use the same window,
so the daily buckets always sum to the number of recent scans.
"""

from datetime import date as Date, datetime, time, timedelta, timezone
from typing import Iterable, Mapping, NamedTuple, Optional, Sequence

from qrlinks.db.models import Link, ScanEvent, as_utc, utc_now

DEFAULT_WINDOW_DAYS = 30
TOP_LOCATIONS = 10
TOP_PERFORMING = 10
RECENT_ACTIVITY = 20
UNTITLED = "Untitled"

MOBILE = "Mobile"
TABLET = "Tablet"
BOT = "Bot"
DESKTOP = "Desktop"

# Checked in order; the first matching class wins
DEVICE_RULES = (
    (MOBILE, ("mobile", "android", "iphone")),
    (TABLET, ("tablet", "ipad")),
    (BOT, ("bot", "crawler")),
)


class DailyCount(NamedTuple):
    date: Date
    scans: int


class DeviceStat(NamedTuple):
    device: str
    count: int
    percentage: int


class LocationStat(NamedTuple):
    country: str
    count: int


def window_start(window_days: int = DEFAULT_WINDOW_DAYS, now: Optional[datetime] = None) -> datetime:
    """Midnight UTC of the first day of the trailing window."""
    today = as_utc(now or utc_now()).date()
    first_day = today - timedelta(days=window_days - 1)
    return datetime.combine(first_day, time.min, tzinfo=timezone.utc)


def recent_scans(
    history: Iterable[ScanEvent],
    window_days: int = DEFAULT_WINDOW_DAYS,
    now: Optional[datetime] = None
) -> list[ScanEvent]:
    """Events inside the window, in their original order."""
    start = window_start(window_days, now)
    end = start + timedelta(days=window_days)
    return [event for event in history if start <= as_utc(event.timestamp) < end]


def daily_series(
    history: Iterable[ScanEvent],
    window_days: int = DEFAULT_WINDOW_DAYS,
    now: Optional[datetime] = None
) -> list[DailyCount]:
    """
    Scan counts per UTC day for the trailing window.

    Every day of the window is present, including days without scans, in
    ascending order.
    """
    first_day = window_start(window_days, now).date()
    buckets = {first_day + timedelta(days=offset): 0 for offset in range(window_days)}

    for event in history:
        day = as_utc(event.timestamp).date()
        if day in buckets:
            buckets[day] += 1

    return [DailyCount(day, count) for day, count in sorted(buckets.items())]


def classify_device(user_agent: Optional[str]) -> Optional[str]:
    """
    Classify a user agent as Mobile, Tablet, Bot or Desktop.

    Returns:
        None when there is no user agent to classify
    """
    if not user_agent:
        return None
    ua = user_agent.lower()
    for device, needles in DEVICE_RULES:
        if any(needle in ua for needle in needles):
            return device
    return DESKTOP


def _percentage(count: int, total: int) -> int:
    # round half up, in integers
    return (count * 200 + total) // (2 * total)


def device_breakdown(history: Iterable[ScanEvent]) -> list[DeviceStat]:
    """
    Device classes by scan count, most common first.

    Events without a user agent are left out of both counts and the
    percentage denominator.
    """
    counts: dict[str, int] = {}
    for event in history:
        device = classify_device(event.user_agent)
        if device is not None:
            counts[device] = counts.get(device, 0) + 1

    total = sum(counts.values())
    stats = [
        DeviceStat(device, count, _percentage(count, total))
        for device, count in counts.items()
    ]
    return sorted(stats, key=lambda stat: stat.count, reverse=True)


def location_breakdown(history: Iterable[ScanEvent], limit: int = TOP_LOCATIONS) -> list[LocationStat]:
    """Top countries by scan count; events without a country are skipped."""
    counts: dict[str, int] = {}
    for event in history:
        if event.country:
            counts[event.country] = counts.get(event.country, 0) + 1

    stats = [LocationStat(country, count) for country, count in counts.items()]
    return sorted(stats, key=lambda stat: stat.count, reverse=True)[:limit]


def top_performing(links: Iterable[Link], limit: int = TOP_PERFORMING) -> list[dict]:
    """Most scanned links first."""
    ranked = sorted(links, key=lambda link: link.total_scans, reverse=True)[:limit]
    return [
        {
            "id": link.id,
            "identifier": link.identifier,
            "title": link.title or UNTITLED,
            "total_scans": link.total_scans,
            "is_active": link.is_active,
            "last_scanned_at": as_utc(link.last_scanned_at),
            "created_at": as_utc(link.created_at),
        }
        for link in ranked
    ]


def recent_activity(
    links: Sequence[Link],
    histories: Mapping[int, Sequence[ScanEvent]],
    window_days: int = DEFAULT_WINDOW_DAYS,
    now: Optional[datetime] = None,
    limit: int = RECENT_ACTIVITY
) -> list[dict]:
    """In-window scans across links, newest first, tagged with their link."""
    activity = []
    for link in links:
        for event in recent_scans(histories.get(link.id, ()), window_days, now):
            activity.append({
                "link_id": link.id,
                "title": link.title or UNTITLED,
                "identifier": link.identifier,
                "timestamp": as_utc(event.timestamp),
            })

    activity.sort(key=lambda item: item["timestamp"], reverse=True)
    return activity[:limit]


def build_dashboard(
    links: Sequence[Link],
    histories: Mapping[int, Sequence[ScanEvent]],
    window_days: int = DEFAULT_WINDOW_DAYS,
    now: Optional[datetime] = None
) -> dict:
    """
    Aggregate every link of one owner.

    Returns:
        Dictionary with overview, recent_activity, top_performing,
        daily_scans, device_stats and location_stats
    """
    merged = [event for link in links for event in histories.get(link.id, ())]

    return {
        "overview": {
            "total_links": len(links),
            "active_links": sum(1 for link in links if link.is_active),
            "total_scans": sum(link.total_scans for link in links),
            "scans_in_window": len(recent_scans(merged, window_days, now)),
        },
        "recent_activity": recent_activity(links, histories, window_days, now),
        "top_performing": top_performing(links),
        "daily_scans": daily_series(merged, window_days, now),
        "device_stats": device_breakdown(merged),
        "location_stats": location_breakdown(merged),
    }
