"""
Tests for scan recording and redirect resolution.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from qrlinks.db.models import Account, Link, Location, ScanEvent
from qrlinks.services.geolocation import GeoLocator
from qrlinks.services.redirect_service import RedirectService
from qrlinks.services.scan_recorder import ScanRecorder

START = datetime(2026, 1, 1, tzinfo=timezone.utc)


class FixedGeoLocator(GeoLocator):

    async def locate(self, ip_address):
        return Location(country="Germany", city="Berlin") if ip_address else None


async def create_link(store, identifier="abcd1234", owner_id=None, is_active=True) -> Link:
    return await store.insert(
        Link(
            identifier=identifier,
            destination_url="https://example.com",
            owner_id=owner_id,
            is_active=is_active,
        )
    )


class TestScanRecorder:

    @pytest.mark.asyncio
    async def test_counts_and_history(self, link_store):
        link = await create_link(link_store)
        recorder = ScanRecorder(link_store)

        for i in range(5):
            event = ScanEvent(timestamp=START + timedelta(minutes=i), user_agent=f"agent-{i}")
            updated = await recorder.record_scan(link, event)

        assert updated.total_scans == 5
        assert updated.last_scanned_at == START + timedelta(minutes=4)
        history = await link_store.scan_history(link.id)
        assert [event.user_agent for event in history] == [f"agent-{i}" for i in range(5)]

    @pytest.mark.asyncio
    async def test_history_keeps_most_recent_events(self, link_store):
        link = await create_link(link_store)
        recorder = ScanRecorder(link_store, history_limit=1000)

        for i in range(1005):
            await recorder.record_scan(link, ScanEvent(timestamp=START, user_agent=str(i)))

        stored = await link_store.get(link.id)
        history = await link_store.scan_history(link.id)
        assert stored.total_scans == 1005
        assert len(history) == 1000
        assert history[0].user_agent == "5"
        assert history[-1].user_agent == "1004"

    @pytest.mark.asyncio
    async def test_concurrent_scans_are_lossless(self, link_store):
        link = await create_link(link_store)
        recorder = ScanRecorder(link_store)

        await asyncio.gather(*(
            recorder.record_scan(link, ScanEvent(timestamp=START)) for _ in range(50)
        ))

        stored = await link_store.get(link.id)
        assert stored.total_scans == 50
        assert len(await link_store.scan_history(link.id)) == 50

    @pytest.mark.asyncio
    async def test_zero_history_limit_keeps_no_events(self, link_store):
        link = await create_link(link_store)
        recorder = ScanRecorder(link_store, history_limit=0)

        updated = await recorder.record_scan(link, ScanEvent(timestamp=START))

        assert recorder.history_limit == 0
        assert updated.total_scans == 1
        assert await link_store.scan_history(link.id) == []

    def test_negative_history_limit(self, link_store):
        with pytest.raises(ValueError):
            ScanRecorder(link_store, history_limit=-1)

    @pytest.mark.asyncio
    async def test_owner_monthly_scans_counted(self, link_store, account_store):
        account = await account_store.insert(
            Account(email="owner@example.com", password_hash="x", display_name="Owner")
        )
        link = await create_link(link_store, owner_id=account.id)
        recorder = ScanRecorder(link_store, account_store)

        await recorder.record_scan(link, ScanEvent(timestamp=START))
        await recorder.record_scan(link, ScanEvent(timestamp=START))

        assert (await account_store.get(account.id)).monthly_scans == 2

    @pytest.mark.asyncio
    async def test_deleted_link_is_not_recorded(self, link_store):
        link = await create_link(link_store)
        await link_store.delete(link.id)

        assert await ScanRecorder(link_store).record_scan(link, ScanEvent(timestamp=START)) is None


class TestRedirectService:

    def make_service(self, link_store):
        return RedirectService(link_store, ScanRecorder(link_store))

    @pytest.mark.asyncio
    async def test_resolve_records_scan(self, link_store):
        link = await create_link(link_store)
        service = self.make_service(link_store)

        destination = await service.resolve(link.identifier, user_agent="iPhone", ip_address="10.0.0.1")

        assert destination == "https://example.com"
        history = await link_store.scan_history(link.id)
        assert len(history) == 1
        assert history[0].user_agent == "iPhone"
        assert history[0].ip_address == "10.0.0.1"
        assert history[0].location is None

    @pytest.mark.asyncio
    async def test_unknown_identifier(self, link_store):
        assert await self.make_service(link_store).resolve("missing1") is None

    @pytest.mark.asyncio
    async def test_inactive_link_is_not_resolved(self, link_store):
        link = await create_link(link_store, is_active=False)

        assert await self.make_service(link_store).resolve(link.identifier) is None
        assert (await link_store.get(link.id)).total_scans == 0

    @pytest.mark.asyncio
    async def test_deleted_link_is_not_resolved(self, link_store):
        link = await create_link(link_store)
        await link_store.delete(link.id)

        assert await self.make_service(link_store).resolve(link.identifier) is None

    @pytest.mark.asyncio
    async def test_scan_location_is_stored(self, link_store):
        link = await create_link(link_store)
        service = RedirectService(link_store, ScanRecorder(link_store), geolocator=FixedGeoLocator())

        await service.resolve(link.identifier, user_agent="iPhone", ip_address="203.0.113.7")

        event = (await link_store.scan_history(link.id))[0]
        assert event.country == "Germany"
        assert event.city == "Berlin"
        assert event.location == Location(country="Germany", city="Berlin")
