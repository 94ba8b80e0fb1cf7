"""
Shared fixtures.

API tests run the real FastAPI app over httpx's ASGITransport with the
in-memory stores injected through dependency overrides; no database file
or server process is involved.
"""

import os

# Must be set before qrlinks.core.setting is imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["AUTO_CREATE_TABLES"] = "false"
os.environ["BASE_URL"] = "http://qr.test"
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["BILLING_WEBHOOK_SECRET"] = "test-webhook-secret"
os.environ["GEOLOCATION_ENABLED"] = "false"

import httpx
import pytest
import pytest_asyncio

from qrlinks.api.deps import get_account_store, get_link_store
from qrlinks.core.plans import OwnerContext, Plan, limits_for_plan
from qrlinks.db.memory_store import InMemoryAccountStore, InMemoryLinkStore
from qrlinks.main import app

WEBHOOK_SECRET = "test-webhook-secret"
BASE_URL = "http://qr.test"


def make_owner(owner_id: int = 1, plan: Plan = Plan.FREE) -> OwnerContext:
    return OwnerContext(owner_id=owner_id, plan=plan, limits=limits_for_plan(plan))


@pytest.fixture
def link_store():
    return InMemoryLinkStore()


@pytest.fixture
def account_store():
    return InMemoryAccountStore()


@pytest.fixture
def free_owner():
    return make_owner(1, Plan.FREE)


@pytest.fixture
def pro_owner():
    return make_owner(2, Plan.PRO)


@pytest_asyncio.fixture
async def client(link_store, account_store):
    app.dependency_overrides[get_link_store] = lambda: link_store
    app.dependency_overrides[get_account_store] = lambda: account_store

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url=BASE_URL) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def register(client):
    """Register an account, optionally move it to another plan; returns its id and auth headers."""

    async def _register(email: str = "owner@example.com", plan: str = None) -> dict:
        response = await client.post(
            "/auth/register",
            json={"email": email, "password": "secret123", "display_name": "Owner"},
        )
        assert response.status_code == 201, response.text
        body = response.json()

        if plan is not None:
            changed = await client.post(
                "/billing/plan-changed",
                json={"account_id": body["account"]["id"], "plan": plan},
                headers={"X-Webhook-Secret": WEBHOOK_SECRET},
            )
            assert changed.status_code == 200, changed.text

        return {
            "id": body["account"]["id"],
            "headers": {"Authorization": f"Bearer {body['access_token']}"},
        }

    return _register