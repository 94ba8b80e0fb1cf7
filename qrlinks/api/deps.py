"""
FastAPI Dependencies

Wires stores and services per request. Endpoints depend on these providers
only, so tests swap the SQL stores for in-memory ones through
app.dependency_overrides[get_link_store] / [get_account_store].
"""

from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from qrlinks.core.exceptions import AuthenticationError
from qrlinks.core.plans import OwnerContext
from qrlinks.core.security import decode_token
from qrlinks.db.session import get_session
from qrlinks.db.sql_store import SQLAccountStore, SQLLinkStore
from qrlinks.db.stores import AccountStore, LinkStore
from qrlinks.services.account_service import AccountService
from qrlinks.services.geolocation import get_geolocator
from qrlinks.services.link_service import LinkService
from qrlinks.services.redirect_service import RedirectService
from qrlinks.services.scan_recorder import ScanRecorder
from qrlinks.services.stats_service import StatsService

bearer_scheme = HTTPBearer(auto_error=False)


async def get_link_store(session: AsyncSession = Depends(get_session)) -> LinkStore:
    return SQLLinkStore(session)


async def get_account_store(session: AsyncSession = Depends(get_session)) -> AccountStore:
    return SQLAccountStore(session)


def get_account_service(account_store: AccountStore = Depends(get_account_store)) -> AccountService:
    return AccountService(account_store)


def get_link_service(
    link_store: LinkStore = Depends(get_link_store),
    account_store: AccountStore = Depends(get_account_store)
) -> LinkService:
    return LinkService(link_store, account_store)


def get_redirect_service(
    link_store: LinkStore = Depends(get_link_store),
    account_store: AccountStore = Depends(get_account_store)
) -> RedirectService:
    return RedirectService(
        link_store,
        ScanRecorder(link_store, account_store),
        geolocator=get_geolocator(),
    )


def get_stats_service(link_service: LinkService = Depends(get_link_service)) -> StatsService:
    return StatsService(link_service.link_store, link_service=link_service)


async def get_optional_owner(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    account_service: AccountService = Depends(get_account_service)
) -> Optional[OwnerContext]:
    """
    Owner context from a bearer token, or None for anonymous requests.

    A token that is present but invalid is rejected rather than treated as
    anonymous.
    """
    if credentials is None:
        return None
    account_id = decode_token(credentials.credentials)
    return await account_service.owner_context(account_id)


async def get_current_owner(owner: Optional[OwnerContext] = Depends(get_optional_owner)) -> OwnerContext:
    if owner is None:
        raise AuthenticationError("Access token required")
    return owner


async def get_current_account_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> int:
    if credentials is None:
        raise AuthenticationError("Access token required")
    return decode_token(credentials.credentials)
