"""
SQL Stores

LinkStore and AccountStore implemented over an async SQLAlchemy session
with the SQLModel tables from qrlinks.db.models.

Design Decisions:
- Each store method is its own transaction (commit on success, rollback on
  failure), matching the one-operation-per-call store contract
- Scan recording uses database-level UPDATE/INSERT/DELETE in one transaction
  instead of read-modify-write, so concurrent scans never lose an increment
- Identifiers are reserved in issued_identifiers inside the same transaction
  as the link insert; a duplicate key there means "try another identifier"
- Connectivity failures surface as StoreUnavailableError and are not retried
"""

import logging
from contextlib import asynccontextmanager
from typing import Iterable, Optional

from sqlalchemy import case, delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from qrlinks.core.exceptions import (
    DuplicateEmailError,
    DuplicateIdentifierError,
    StoreUnavailableError,
)
from qrlinks.db.models import Account, IssuedIdentifier, Link, ScanEvent, utc_now
from qrlinks.db.stores import AccountStore, LinkStore

logger = logging.getLogger(__name__)

# Bulk statements below refresh rows explicitly instead of syncing the session
_NO_SYNC = {"synchronize_session": False}


@asynccontextmanager
async def _store_operation(session: AsyncSession, action: str):
    """Roll back on any failure and translate connectivity errors."""
    try:
        yield
    except (OperationalError, InterfaceError) as e:
        await session.rollback()
        logger.error(f"Store operation '{action}' failed: {e}", exc_info=True)
        raise StoreUnavailableError(f"{action} failed", original_error=e)
    except Exception:
        await session.rollback()
        raise


class SQLLinkStore(LinkStore):

    def __init__(self, session: AsyncSession):
        """
        Args:
            session: Async database session for database operations
        """
        self.session = session

    async def insert(self, link: Link) -> Link:
        async with _store_operation(self.session, "insert link"):
            try:
                await self.session.execute(
                    insert(IssuedIdentifier).values(identifier=link.identifier, issued_at=utc_now())
                )
                self.session.add(link)
                await self.session.flush()
            except IntegrityError:
                await self.session.rollback()
                raise DuplicateIdentifierError(link.identifier)
            await self.session.commit()
            await self.session.refresh(link)
            return link

    async def get(self, link_id: int) -> Optional[Link]:
        async with _store_operation(self.session, "get link"):
            return await self.session.get(Link, link_id, populate_existing=True)

    async def find_by_identifier(self, identifier: str, active_only: bool = False) -> Optional[Link]:
        statement = select(Link).where(Link.identifier == identifier)
        if active_only:
            statement = statement.where(Link.is_active == True)  # noqa: E712
        statement = statement.execution_options(populate_existing=True)

        async with _store_operation(self.session, "find link"):
            result = await self.session.execute(statement)
            return result.scalar_one_or_none()

    async def find_by_owner(
        self,
        owner_id: int,
        skip: int = 0,
        limit: Optional[int] = None
    ) -> list[Link]:
        statement = (
            select(Link)
            .where(Link.owner_id == owner_id)
            .order_by(Link.created_at.desc(), Link.id.desc())
            .offset(skip)
        )
        if limit is not None:
            statement = statement.limit(limit)

        async with _store_operation(self.session, "list links"):
            result = await self.session.execute(statement)
            return list(result.scalars().all())

    async def count_by_owner(self, owner_id: int) -> int:
        statement = select(func.count(Link.id)).where(Link.owner_id == owner_id)
        async with _store_operation(self.session, "count links"):
            result = await self.session.execute(statement)
            return result.scalar_one()

    async def update(self, link_id: int, **fields) -> Optional[Link]:
        statement = (
            update(Link)
            .where(Link.id == link_id)
            .values(**fields, updated_at=utc_now())
            .execution_options(**_NO_SYNC)
        )
        async with _store_operation(self.session, "update link"):
            result = await self.session.execute(statement)
            if result.rowcount == 0:
                await self.session.rollback()
                return None
            await self.session.commit()
        return await self.get(link_id)

    async def delete(self, link_id: int) -> bool:
        async with _store_operation(self.session, "delete link"):
            # SQLite does not enforce ON DELETE CASCADE unless asked to
            await self.session.execute(
                delete(ScanEvent).where(ScanEvent.link_id == link_id).execution_options(**_NO_SYNC)
            )
            result = await self.session.execute(
                delete(Link).where(Link.id == link_id).execution_options(**_NO_SYNC)
            )
            if result.rowcount == 0:
                await self.session.rollback()
                return False
            await self.session.commit()

        stale = await self.session.get(Link, link_id)
        if stale is not None:
            self.session.expunge(stale)
        return True

    async def record_scan(self, link_id: int, event: ScanEvent, history_limit: int) -> Optional[Link]:
        increment = (
            update(Link)
            .where(Link.id == link_id)
            .values(
                total_scans=Link.total_scans + 1,
                last_scanned_at=event.timestamp,
                updated_at=utc_now(),
            )
            .execution_options(**_NO_SYNC)
        )
        retained = (
            select(ScanEvent.id)
            .where(ScanEvent.link_id == link_id)
            .order_by(ScanEvent.id.desc())
            .limit(history_limit)
        )
        trim = (
            delete(ScanEvent)
            .where(ScanEvent.link_id == link_id, ScanEvent.id.not_in(retained))
            .execution_options(**_NO_SYNC)
        )

        async with _store_operation(self.session, "record scan"):
            result = await self.session.execute(increment)
            if result.rowcount == 0:
                await self.session.rollback()
                return None
            event.link_id = link_id
            self.session.add(event)
            await self.session.flush()
            await self.session.execute(trim)
            await self.session.commit()

        return await self.get(link_id)

    async def scan_history(self, link_id: int) -> list[ScanEvent]:
        statement = select(ScanEvent).where(ScanEvent.link_id == link_id).order_by(ScanEvent.id)
        async with _store_operation(self.session, "load scan history"):
            result = await self.session.execute(statement)
            return list(result.scalars().all())

    async def scan_histories(self, link_ids: Iterable[int]) -> dict[int, list[ScanEvent]]:
        link_ids = list(link_ids)
        histories: dict[int, list[ScanEvent]] = {link_id: [] for link_id in link_ids}
        if not link_ids:
            return histories

        statement = (
            select(ScanEvent)
            .where(ScanEvent.link_id.in_(link_ids))
            .order_by(ScanEvent.id)
        )
        async with _store_operation(self.session, "load scan histories"):
            result = await self.session.execute(statement)
            for event in result.scalars().all():
                histories[event.link_id].append(event)
        return histories


class SQLAccountStore(AccountStore):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def insert(self, account: Account) -> Account:
        async with _store_operation(self.session, "insert account"):
            try:
                self.session.add(account)
                await self.session.flush()
            except IntegrityError:
                await self.session.rollback()
                raise DuplicateEmailError(account.email)
            await self.session.commit()
            await self.session.refresh(account)
            return account

    async def get(self, account_id: int) -> Optional[Account]:
        async with _store_operation(self.session, "get account"):
            return await self.session.get(Account, account_id, populate_existing=True)

    async def find_by_email(self, email: str) -> Optional[Account]:
        statement = (
            select(Account)
            .where(Account.email == email)
            .execution_options(populate_existing=True)
        )
        async with _store_operation(self.session, "find account"):
            result = await self.session.execute(statement)
            return result.scalar_one_or_none()

    async def save(self, account: Account) -> Account:
        async with _store_operation(self.session, "save account"):
            account.updated_at = utc_now()
            self.session.add(account)
            await self.session.commit()
            await self.session.refresh(account)
            return account

    async def increment_usage(
        self,
        account_id: int,
        links_created: int = 0,
        monthly_scans: int = 0
    ) -> None:
        links_value = Account.links_created + links_created
        statement = (
            update(Account)
            .where(Account.id == account_id)
            .values(
                links_created=case((links_value < 0, 0), else_=links_value),
                monthly_scans=Account.monthly_scans + monthly_scans,
            )
            .execution_options(**_NO_SYNC)
        )
        async with _store_operation(self.session, "update usage"):
            await self.session.execute(statement)
            await self.session.commit()
