"""
Scan Geolocation

Optional collaborator that turns a scanner's IP address into a country/city
pair. The default locator returns nothing, which leaves scan locations empty.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from qrlinks.core.setting import settings
from qrlinks.db.models import Location

logger = logging.getLogger(__name__)


class GeoLocator(ABC):

    @abstractmethod
    async def locate(self, ip_address: Optional[str]) -> Optional[Location]:
        pass


class NullGeoLocator(GeoLocator):

    async def locate(self, ip_address: Optional[str]) -> Optional[Location]:
        return None


class IpWhoGeoLocator(GeoLocator):
    """
    Looks addresses up through an ipwho.is compatible HTTP API.

    A failed lookup is logged and yields no location; it never fails the scan.
    """

    def __init__(self, url_template: str, timeout: float, client: Optional[httpx.AsyncClient] = None):
        self.url_template = url_template
        self.timeout = timeout
        self.client = client

    async def locate(self, ip_address: Optional[str]) -> Optional[Location]:
        if not ip_address or ip_address == "unknown":
            return None

        url = self.url_template.format(ip=ip_address)
        try:
            if self.client is not None:
                response = await self.client.get(url, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Geolocation lookup failed for {ip_address}: {e}")
            return None

        if not data.get("success", True):
            return None
        country = data.get("country")
        city = data.get("city")
        if not country and not city:
            return None
        return Location(country=country, city=city)


def get_geolocator() -> GeoLocator:
    if settings.GEOLOCATION_ENABLED:
        return IpWhoGeoLocator(settings.GEOLOCATION_URL, settings.GEOLOCATION_TIMEOUT)
    return NullGeoLocator()
