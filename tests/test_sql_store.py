"""
Tests for the SQL stores.

Most tests use an in-memory aiosqlite database; concurrency and API flows
use a file-backed database so every session gets its own connection.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from qrlinks.core.exceptions import DuplicateEmailError, DuplicateIdentifierError, StoreUnavailableError
from qrlinks.core.plans import Plan
from qrlinks.db.models import Account, Link, ScanEvent
from qrlinks.db.session import get_session
from qrlinks.db.sql_store import SQLAccountStore, SQLLinkStore
from qrlinks.db.sqlite_adapter import PostgreSQLAdapter, SQLiteAdapter, get_database_adapter
from qrlinks.main import app

START = datetime(2026, 1, 1, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def session():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as connection:
        await connection.run_sync(SQLModel.metadata.create_all)

    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as db_session:
        yield db_session

    await engine.dispose()


def new_link(identifier="abcd1234", owner_id=None) -> Link:
    return Link(identifier=identifier, destination_url="https://example.com", owner_id=owner_id)


class TestSQLLinkStore:

    @pytest.mark.asyncio
    async def test_insert_and_lookup(self, session):
        store = SQLLinkStore(session)

        link = await store.insert(new_link())

        assert link.id is not None
        found = await store.find_by_identifier("abcd1234")
        assert found.destination_url == "https://example.com"
        assert found.total_scans == 0

    @pytest.mark.asyncio
    async def test_duplicate_identifier(self, session):
        store = SQLLinkStore(session)
        await store.insert(new_link())

        with pytest.raises(DuplicateIdentifierError):
            await store.insert(new_link())

        assert await store.find_by_identifier("abcd1234") is not None

    @pytest.mark.asyncio
    async def test_identifier_stays_retired_after_delete(self, session):
        store = SQLLinkStore(session)
        link = await store.insert(new_link())

        assert await store.delete(link.id) is True
        assert await store.get(link.id) is None

        with pytest.raises(DuplicateIdentifierError):
            await store.insert(new_link())

    @pytest.mark.asyncio
    async def test_active_only_lookup(self, session):
        store = SQLLinkStore(session)
        link = await store.insert(new_link())

        await store.update(link.id, is_active=False)

        assert await store.find_by_identifier("abcd1234", active_only=True) is None
        assert (await store.find_by_identifier("abcd1234")).is_active is False

    @pytest.mark.asyncio
    async def test_update_missing_link(self, session):
        assert await SQLLinkStore(session).update(404, title="x") is None
        assert await SQLLinkStore(session).delete(404) is False

    @pytest.mark.asyncio
    async def test_record_scan_caps_history(self, session):
        store = SQLLinkStore(session)
        link = await store.insert(new_link())

        for i in range(12):
            updated = await store.record_scan(
                link.id,
                ScanEvent(timestamp=START + timedelta(seconds=i), user_agent=str(i)),
                history_limit=10,
            )

        assert updated.total_scans == 12
        history = await store.scan_history(link.id)
        assert [event.user_agent for event in history] == [str(i) for i in range(2, 12)]

    @pytest.mark.asyncio
    async def test_record_scan_missing_link(self, session):
        assert await SQLLinkStore(session).record_scan(404, ScanEvent(timestamp=START), 10) is None

    @pytest.mark.asyncio
    async def test_owner_queries(self, session):
        accounts = SQLAccountStore(session)
        owner = await accounts.insert(Account(email="owner@example.com", password_hash="x", display_name="O"))
        store = SQLLinkStore(session)
        for i in range(3):
            await store.insert(new_link(f"owned00{i}", owner_id=owner.id))
        await store.insert(new_link("anon0001"))

        assert await store.count_by_owner(owner.id) == 3
        page = await store.find_by_owner(owner.id, skip=1, limit=1)
        assert [link.identifier for link in page] == ["owned001"]

    @pytest.mark.asyncio
    async def test_scan_histories(self, session):
        store = SQLLinkStore(session)
        first = await store.insert(new_link("first001"))
        second = await store.insert(new_link("second01"))
        await store.record_scan(first.id, ScanEvent(timestamp=START), 10)

        histories = await store.scan_histories([first.id, second.id])

        assert len(histories[first.id]) == 1
        assert histories[second.id] == []


class TestSQLAccountStore:

    @pytest.mark.asyncio
    async def test_duplicate_email(self, session):
        store = SQLAccountStore(session)
        await store.insert(Account(email="owner@example.com", password_hash="x", display_name="O"))

        with pytest.raises(DuplicateEmailError):
            await store.insert(Account(email="owner@example.com", password_hash="y", display_name="P"))

    @pytest.mark.asyncio
    async def test_save_plan_change(self, session):
        store = SQLAccountStore(session)
        account = await store.insert(Account(email="owner@example.com", password_hash="x", display_name="O"))

        account.apply_plan(Plan.PRO)
        await store.save(account)

        reloaded = await store.find_by_email("owner@example.com")
        assert reloaded.plan == "pro"
        assert reloaded.max_links == 100

    @pytest.mark.asyncio
    async def test_usage_counters(self, session):
        store = SQLAccountStore(session)
        account = await store.insert(Account(email="owner@example.com", password_hash="x", display_name="O"))

        await store.increment_usage(account.id, links_created=1, monthly_scans=3)
        await store.increment_usage(account.id, links_created=-5)

        reloaded = await store.get(account.id)
        assert reloaded.links_created == 0
        assert reloaded.monthly_scans == 3


def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def file_engine(tmp_path):
    engine = SQLiteAdapter().create_engine(f"sqlite+aiosqlite:///{tmp_path / 'qrlinks.db'}")
    async with engine.begin() as connection:
        await connection.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def broken_engine(tmp_path):
    # Parent directory does not exist, so every connection attempt fails
    engine = SQLiteAdapter().create_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'qrlinks.db'}")
    yield engine
    await engine.dispose()


def override_session(engine):
    make_session = session_factory(engine)

    async def _get_session():
        async with make_session() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    return _get_session


@pytest_asyncio.fixture
async def sql_client(file_engine):
    app.dependency_overrides[get_session] = override_session(file_engine)

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://qr.test") as client:
        yield client

    app.dependency_overrides.clear()


class TestConcurrentScans:

    @pytest.mark.asyncio
    async def test_scans_in_separate_sessions_are_lossless(self, file_engine):
        make_session = session_factory(file_engine)
        async with make_session() as session:
            link = await SQLLinkStore(session).insert(new_link())

        async def scan(i):
            async with make_session() as session:
                await SQLLinkStore(session).record_scan(
                    link.id,
                    ScanEvent(timestamp=START + timedelta(seconds=i), user_agent=str(i)),
                    history_limit=5,
                )

        await asyncio.gather(*(scan(i) for i in range(30)))

        async with make_session() as session:
            store = SQLLinkStore(session)
            stored = await store.get(link.id)
            history = await store.scan_history(link.id)

        assert stored.total_scans == 30
        assert len(history) == 5


class TestStoreUnavailable:

    @pytest.mark.asyncio
    async def test_connection_failure_is_translated(self, broken_engine):
        async with session_factory(broken_engine)() as session:
            with pytest.raises(StoreUnavailableError) as exc_info:
                await SQLLinkStore(session).find_by_identifier("abcd1234")

        assert isinstance(exc_info.value.original_error, OperationalError)

    @pytest.mark.asyncio
    async def test_api_answers_503(self, broken_engine):
        app.dependency_overrides[get_session] = override_session(broken_engine)
        try:
            transport = httpx.ASGITransport(app=app)
            async with httpx.AsyncClient(transport=transport, base_url="http://qr.test") as client:
                response = await client.get("/r/abcd1234")
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 503
        assert response.json()["detail"].startswith("Store unavailable")


class TestSQLApiFlow:

    async def register(self, client, email="owner@example.com") -> dict:
        response = await client.post(
            "/auth/register",
            json={"email": email, "password": "secret123", "display_name": "Owner"},
        )
        assert response.status_code == 201, response.text
        body = response.json()
        return {
            "id": body["account"]["id"],
            "headers": {"Authorization": f"Bearer {body['access_token']}"},
        }

    @pytest.mark.asyncio
    async def test_link_lifecycle(self, sql_client):
        owner = await self.register(sql_client)
        changed = await sql_client.post(
            "/billing/plan-changed",
            json={"account_id": owner["id"], "plan": "pro"},
            headers={"X-Webhook-Secret": "test-webhook-secret"},
        )
        assert changed.status_code == 200, changed.text

        created = await sql_client.post("/links", json={"url": "example.com"}, headers=owner["headers"])
        assert created.status_code == 201, created.text
        link = created.json()

        redirect = await sql_client.get(f"/r/{link['identifier']}", headers={"User-Agent": "iPhone"})
        assert redirect.status_code == 302
        assert redirect.headers["location"] == "https://example.com"

        analytics = await sql_client.get(f"/analytics/links/{link['id']}", headers=owner["headers"])
        assert analytics.status_code == 200, analytics.text
        assert analytics.json()["total_scans"] == 1
        assert analytics.json()["recent_scans"][0]["user_agent"] == "iPhone"

        me = await sql_client.get("/auth/me", headers=owner["headers"])
        assert me.json()["usage"]["monthly_scans"] == 1

        deactivated = await sql_client.put(
            f"/links/{link['id']}", json={"is_active": False}, headers=owner["headers"]
        )
        assert deactivated.json()["is_active"] is False
        assert (await sql_client.get(f"/r/{link['identifier']}")).status_code == 404

        deleted = await sql_client.delete(f"/links/{link['id']}", headers=owner["headers"])
        assert deleted.status_code == 200
        assert (await sql_client.get(f"/links/{link['id']}")).status_code == 404

    @pytest.mark.asyncio
    async def test_concurrent_creations_respect_quota(self, sql_client):
        owner = await self.register(sql_client)

        responses = await asyncio.gather(*(
            sql_client.post("/links", json={"url": "example.com"}, headers=owner["headers"])
            for _ in range(8)
        ))

        codes = sorted(response.status_code for response in responses)
        assert codes == [201] * 5 + [403] * 3
        listing = await sql_client.get("/links?page_size=20", headers=owner["headers"])
        assert listing.json()["pagination"]["total_items"] == 5


class TestDatabaseAdapters:

    def test_adapter_selection(self):
        assert isinstance(get_database_adapter("sqlite+aiosqlite:///./qrlinks.db"), SQLiteAdapter)
        assert isinstance(get_database_adapter("postgresql+asyncpg://u:p@db/qr"), PostgreSQLAdapter)
        assert get_database_adapter("postgresql+asyncpg://u:p@db/qr").get_dialect_name() == "postgresql"
