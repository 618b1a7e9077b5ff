"""
Pytest configuration and shared fixtures.

The app is pointed at a throw-away SQLite file and retry delays are zeroed
before ``callhub`` is imported, so every module sees the test settings.
Each test starts from an empty schema.
"""

import asyncio
import datetime as dt
import os
import shutil
import tempfile
from dataclasses import dataclass

import pytest

_TEST_DIR = tempfile.mkdtemp(prefix="callhub_test_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/test.db"
os.environ["DB_RETRY_BASE_DELAY"] = "0"
os.environ["DB_RESET_DELAY"] = "0"
os.environ["ENABLE_SCHEDULER"] = "false"

from fastapi.testclient import TestClient  # noqa: E402

from callhub.app import app  # noqa: E402
from callhub.auth import issue_token  # noqa: E402
from callhub.database import async_session, drop_db, init_db  # noqa: E402
from callhub.models import Role, User, utcnow  # noqa: E402


def pytest_unconfigure(config):
    shutil.rmtree(_TEST_DIR, ignore_errors=True)


@dataclass
class Actor:
    id: str
    email: str
    role: Role
    token: str

    @property
    def headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"}


def run(coro):
    """Run a coroutine to completion from synchronous test code."""
    return asyncio.run(coro)


def iso(delta: dt.timedelta) -> str:
    """ISO timestamp ``delta`` away from now (naive UTC)."""
    return (utcnow() + delta).isoformat()


@pytest.fixture(autouse=True)
def fresh_db():
    async def reset():
        await drop_db()
        await init_db()

    run(reset())
    yield


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_user():
    counter = {"n": 0}

    def factory(role: Role = Role.USER, disabled: bool = False) -> Actor:
        counter["n"] += 1
        email = f"{role.value.lower()}{counter['n']}@example.com"
        token, token_hash = issue_token()

        async def create():
            async with async_session() as session:
                user = User(name=email.split("@")[0], email=email, role=role,
                            api_token_hash=token_hash, is_disabled=disabled)
                session.add(user)
                await session.commit()
                return user.id

        return Actor(id=run(create()), email=email, role=role, token=token)

    return factory


@pytest.fixture
def admin(make_user):
    return make_user(Role.ADMIN)


@pytest.fixture
def entrepreneur(make_user):
    return make_user(Role.ENTREPRENEUR)


@pytest.fixture
def reviewer(make_user):
    return make_user(Role.REVIEWER)


@pytest.fixture
def sponsor(make_user):
    return make_user(Role.SPONSOR)


@pytest.fixture
def create_call(client, admin):
    def factory(**overrides) -> dict:
        payload = {
            "title": "Fintech Call",
            "description": "Program for fintech startups",
            "application_deadline": iso(dt.timedelta(days=30)),
            "industry": "Fintech",
            "location": "Remote",
            "status": "PUBLISHED",
        }
        payload.update(overrides)
        resp = client.post("/startup-calls", json=payload, headers=admin.headers)
        assert resp.status_code == 201, resp.text
        return resp.json()

    return factory


APPLICATION = {
    "startup_name": "PayLater",
    "founding_date": "2023-05-01T00:00:00",
    "team_size": "4",
    "industry": "Fintech",
    "stage": "MVP",
    "description": "Buy now pay later for small shops",
    "problem": "Small shops cannot offer credit",
    "solution": "Embedded instalment checkout",
    "business_model": "Merchant fees",
    "use_of_funds": "Hiring and licensing",
    "competitive_advantage": "Cheapest onboarding",
    "founder_bio": "Ex-bank product lead",
}


@pytest.fixture
def submit_application(client):
    def factory(call_id: str, actor: Actor, **overrides) -> dict:
        payload = dict(APPLICATION, **overrides)
        resp = client.post(f"/startup-calls/{call_id}/applications", json=payload, headers=actor.headers)
        assert resp.status_code == 201, resp.text
        return resp.json()

    return factory


@pytest.fixture
def approved_call(client, admin, entrepreneur, create_call, submit_application):
    """A published call with an approved application and its default budget."""
    call = create_call()
    application = submit_application(call["id"], entrepreneur)
    resp = client.post(f"/applications/{application['id']}/approve", headers=admin.headers)
    assert resp.status_code == 200, resp.text
    return {"call": call, "application": application, "budget_id": resp.json()["budget_id"]}
