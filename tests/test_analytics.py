"""
Tests for analytics aggregation.
"""

from datetime import date, datetime, timedelta, timezone

from qrlinks.db.models import Link, ScanEvent
from qrlinks.services import analytics

NOW = datetime(2026, 3, 31, 15, 0, tzinfo=timezone.utc)


def scan(days_ago: float = 0, user_agent: str = None, country: str = None) -> ScanEvent:
    return ScanEvent(timestamp=NOW - timedelta(days=days_ago), user_agent=user_agent, country=country)


class TestDailySeries:

    def test_thirty_zero_filled_buckets(self):
        series = analytics.daily_series([], 30, NOW)

        assert len(series) == 30
        assert series[0].date == date(2026, 3, 2)
        assert series[-1].date == date(2026, 3, 31)
        assert all(bucket.scans == 0 for bucket in series)

    def test_buckets_sum_to_recent_scans(self):
        history = [scan(0), scan(0.5), scan(3), scan(29), scan(30), scan(45)]

        series = analytics.daily_series(history, 30, NOW)
        recent = analytics.recent_scans(history, 30, NOW)

        assert sum(bucket.scans for bucket in series) == len(recent) == 4

    def test_events_land_in_their_utc_day(self):
        history = [scan(0), scan(0), scan(1)]

        series = analytics.daily_series(history, 30, NOW)

        assert series[-1].scans == 2
        assert series[-2].scans == 1

    def test_naive_timestamps_are_utc(self):
        naive = ScanEvent(timestamp=datetime(2026, 3, 31, 1, 0))
        series = analytics.daily_series([naive], 30, NOW)
        assert series[-1].scans == 1


class TestDeviceBreakdown:

    def test_classification(self):
        assert analytics.classify_device("Mozilla/5.0 (iPhone; CPU iPhone OS 17_0)") == "Mobile"
        assert analytics.classify_device("Mozilla/5.0 (compatible; Googlebot/2.1)") == "Bot"
        assert analytics.classify_device("Mozilla/5.0 (iPad; CPU OS 17_0)") == "Tablet"
        assert analytics.classify_device("Mozilla/5.0 (Windows NT 10.0; Win64; x64)") == "Desktop"
        assert analytics.classify_device(None) is None

    def test_mobile_wins_over_later_rules(self):
        # Android tablets report "Android" and match Mobile first
        assert analytics.classify_device("Android Tablet") == "Mobile"

    def test_missing_user_agent_excluded_from_percentages(self):
        history = [scan(user_agent="iPhone"), scan(user_agent="Googlebot"), scan()]

        stats = analytics.device_breakdown(history)

        assert {stat.device: stat.percentage for stat in stats} == {"Mobile": 50, "Bot": 50}
        assert sum(stat.count for stat in stats) == 2

    def test_percentages_round_half_up(self):
        history = [scan(user_agent="iPhone")] + [scan(user_agent="Windows")] * 7

        stats = analytics.device_breakdown(history)

        # 1/8 = 12.5% -> 13, 7/8 = 87.5% -> 88
        assert stats[0] == analytics.DeviceStat("Desktop", 7, 88)
        assert stats[1] == analytics.DeviceStat("Mobile", 1, 13)


class TestLocationBreakdown:

    def test_top_countries(self):
        history = [scan(country="DE")] * 3 + [scan(country="FR")] + [scan()]

        stats = analytics.location_breakdown(history)

        assert stats == [analytics.LocationStat("DE", 3), analytics.LocationStat("FR", 1)]

    def test_limit(self):
        history = [scan(country=f"C{i}") for i in range(15)]
        assert len(analytics.location_breakdown(history, limit=10)) == 10


class TestDashboard:

    def make_links(self):
        first = Link(id=1, identifier="aaaa1111", destination_url="https://a.example",
                     title="Menu", total_scans=3, is_active=True)
        second = Link(id=2, identifier="bbbb2222", destination_url="https://b.example",
                      total_scans=10, is_active=False)
        histories = {
            1: [scan(2, "iPhone", "DE"), scan(1, "iPhone", "DE"), scan(40, "Windows")],
            2: [scan(0.1, "Googlebot", "FR")],
        }
        return [first, second], histories

    def test_overview(self):
        links, histories = self.make_links()

        dashboard = analytics.build_dashboard(links, histories, 30, NOW)

        assert dashboard["overview"] == {
            "total_links": 2,
            "active_links": 1,
            "total_scans": 13,
            "scans_in_window": 3,
        }
        assert len(dashboard["daily_scans"]) == 30
        assert sum(bucket.scans for bucket in dashboard["daily_scans"]) == 3

    def test_top_performing_and_activity(self):
        links, histories = self.make_links()

        dashboard = analytics.build_dashboard(links, histories, 30, NOW)

        top = dashboard["top_performing"]
        assert [item["id"] for item in top] == [2, 1]
        assert top[0]["title"] == "Untitled"
        assert top[1]["title"] == "Menu"
        assert top[0]["last_scanned_at"] is None
        assert top[0]["created_at"] is not None
        activity = dashboard["recent_activity"]
        assert [item["link_id"] for item in activity] == [2, 1, 1]
        assert activity[0]["title"] == "Untitled"
        assert activity[1]["title"] == "Menu"

    def test_empty_dashboard(self):
        dashboard = analytics.build_dashboard([], {}, 30, NOW)

        assert dashboard["overview"]["total_links"] == 0
        assert dashboard["device_stats"] == []
        assert dashboard["recent_activity"] == []
