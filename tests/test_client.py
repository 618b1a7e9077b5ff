import json

import httpx
import pytest

from callhub import client as client_module
from callhub.client import CallHubAPI

from conftest import run


class Backend:
    """MockTransport handler replaying a queue of responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def _api(backend, **kwargs):
    kwargs.setdefault("backoff", 0)
    return CallHubAPI("http://callhub.test/", token="secret", transport=httpx.MockTransport(backend), **kwargs)


@pytest.fixture
def sleeps(monkeypatch):
    recorded = []

    async def fake_sleep(delay):
        recorded.append(delay)

    monkeypatch.setattr(client_module.asyncio, "sleep", fake_sleep)
    return recorded


def test_get_sends_bearer_token_and_parses_json():
    backend = Backend(httpx.Response(200, json=[{"id": "c1"}]))

    async def go():
        async with _api(backend) as api:
            return await api.list_startup_calls()

    assert run(go()) == [{"id": "c1"}]
    request = backend.requests[0]
    assert request.headers["Authorization"] == "Bearer secret"
    assert request.url == "http://callhub.test/startup-calls"


def test_server_errors_are_retried_with_backoff(sleeps):
    backend = Backend(httpx.Response(503), httpx.Response(502), httpx.Response(200, json={"status": "ok"}))

    async def go():
        async with _api(backend, backoff=0.5) as api:
            return await api.health()

    assert run(go()) == {"status": "ok"}
    assert len(backend.requests) == 3
    assert sleeps == [0.5, 1.0]


def test_client_errors_are_not_retried():
    backend = Backend(httpx.Response(404, json={"detail": "Startup call not found"}))

    async def go():
        async with _api(backend) as api:
            return await api.get_startup_call("missing")

    assert run(go()) is None
    assert len(backend.requests) == 1


def test_gives_up_after_retries():
    backend = Backend(*[httpx.ConnectError("refused") for _ in range(3)])

    async def go():
        async with _api(backend, retries=2) as api:
            return await api.health()

    assert run(go()) == {"status": "unavailable"}
    assert len(backend.requests) == 3


def test_writes_are_not_retried():
    backend = Backend(httpx.Response(503), httpx.Response(201, json={"id": "e1"}))

    async def go():
        async with _api(backend) as api:
            return await api.submit_expense("c1", "b1", {"title": "Ads"})

    assert run(go()) is None
    assert len(backend.requests) == 1


def test_expense_status_payload_and_filters():
    backend = Backend(httpx.Response(200, json={"status": "approved"}), httpx.Response(200, json=[]))

    async def go():
        async with _api(backend) as api:
            await api.set_expense_status("c1", "e1", "approved", comment="ok")
            await api.list_expenses("c1", "b1", status="pending", q=None)

    run(go())
    patch, listing = backend.requests
    assert patch.method == "PATCH"
    assert patch.url.path == "/startup-calls/c1/budgets/expenses/e1/status"
    assert json.loads(patch.content) == {"status": "approved", "comment": "ok"}
    assert dict(listing.url.params) == {"status": "pending"}


def test_non_json_body_returns_none():
    proxy_page = "<html>proxy</html>"
    backend = Backend(httpx.Response(200, text=proxy_page), httpx.Response(201, text=proxy_page))

    async def go():
        async with _api(backend) as api:
            return await api.list_startup_calls(), await api.apply_to_call("c1", {"startup_name": "PayLater"})

    assert run(go()) == (None, None)
    assert len(backend.requests) == 2
