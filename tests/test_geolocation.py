"""
Tests for IP geolocation over a mocked HTTP transport.
"""

import httpx
import pytest

from qrlinks.db.models import Location
from qrlinks.services.geolocation import IpWhoGeoLocator, NullGeoLocator

URL_TEMPLATE = "https://geo.test/{ip}"


def make_locator(handler) -> IpWhoGeoLocator:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return IpWhoGeoLocator(URL_TEMPLATE, timeout=1.0, client=client)


class TestIpWhoGeoLocator:

    @pytest.mark.asyncio
    async def test_successful_lookup(self):
        requested = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(str(request.url))
            return httpx.Response(200, json={"success": True, "country": "Germany", "city": "Berlin"})

        location = await make_locator(handler).locate("203.0.113.7")

        assert location == Location(country="Germany", city="Berlin")
        assert requested == ["https://geo.test/203.0.113.7"]

    @pytest.mark.asyncio
    async def test_unsuccessful_lookup(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"success": False, "message": "reserved range"})

        assert await make_locator(handler).locate("10.0.0.1") is None

    @pytest.mark.asyncio
    async def test_http_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="upstream down")

        assert await make_locator(handler).locate("203.0.113.7") is None

    @pytest.mark.asyncio
    async def test_malformed_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="not json")

        assert await make_locator(handler).locate("203.0.113.7") is None

    @pytest.mark.asyncio
    async def test_unknown_address_is_not_looked_up(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        locator = make_locator(handler)

        assert await locator.locate(None) is None
        assert await locator.locate("unknown") is None


class TestNullGeoLocator:

    @pytest.mark.asyncio
    async def test_always_empty(self):
        assert await NullGeoLocator().locate("203.0.113.7") is None
