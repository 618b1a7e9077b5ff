"""
API Client -- thin async HTTP client for the CallHub API.

GET requests are retried on transport errors and 5xx responses with
exponential backoff; writes and 4xx responses are never retried.

Configuration:
    API_URL env var or fallback to http://localhost:8000
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import httpx

from callhub.config import API_RETRIES, API_RETRY_BACKOFF, API_TIMEOUT, API_URL

logger = logging.getLogger(__name__)


class CallHubAPI:
    """Async HTTP client for the CallHub FastAPI backend."""

    def __init__(
        self,
        base_url: str = API_URL,
        token: Optional[str] = None,
        retries: int = API_RETRIES,
        backoff: float = API_RETRY_BACKOFF,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._retries = retries
        self._backoff = backoff
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            headers = {"Authorization": f"Bearer {self._token}"} if self._token else {}
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=API_TIMEOUT,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _get(self, path: str, params: Optional[dict] = None):
        """GET ``path`` and return parsed JSON, or ``None`` once retries are spent."""
        client = await self._get_client()
        params = {k: v for k, v in (params or {}).items() if v is not None}
        attempt = 0
        while True:
            try:
                resp = await client.get(path, params=params)
                resp.raise_for_status()
                return resp.json()
            except httpx.HTTPStatusError as e:
                if e.response.status_code < 500 or attempt >= self._retries:
                    logger.error("GET %s failed with %d: %s", path, e.response.status_code, e.response.text)
                    return None
            except httpx.TransportError as e:
                if attempt >= self._retries:
                    logger.error("GET %s failed: %s", path, e)
                    return None
            except ValueError as e:
                logger.error("GET %s returned a non-JSON body: %s", path, e)
                return None
            delay = self._backoff * 2 ** attempt
            attempt += 1
            logger.warning("GET %s failed, retry %d/%d in %.2fs", path, attempt, self._retries, delay)
            await asyncio.sleep(delay)

    async def _send(self, method: str, path: str, payload: Optional[dict] = None):
        client = await self._get_client()
        try:
            resp = await client.request(method, path, json=payload)
            resp.raise_for_status()
            return resp.json() if resp.content else {}
        except httpx.HTTPStatusError as e:
            logger.error("%s %s error %d: %s", method, path, e.response.status_code, e.response.text)
            return None
        except httpx.HTTPError as e:
            logger.error("%s %s call failed: %s", method, path, e)
            return None
        except ValueError as e:
            logger.error("%s %s returned a non-JSON body: %s", method, path, e)
            return None

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    async def health(self) -> dict:
        """Check if the backend is alive."""
        data = await self._get("/health")
        return data if data is not None else {"status": "unavailable"}

    # ------------------------------------------------------------------
    # Startup calls
    # ------------------------------------------------------------------

    async def list_startup_calls(self) -> Optional[list]:
        return await self._get("/startup-calls")

    async def get_startup_call(self, call_id: str) -> Optional[dict]:
        return await self._get(f"/startup-calls/{call_id}")

    async def apply_to_call(self, call_id: str, application: dict) -> Optional[dict]:
        return await self._send("POST", f"/startup-calls/{call_id}/applications", application)

    # ------------------------------------------------------------------
    # Budgets & expenses
    # ------------------------------------------------------------------

    async def list_budgets(self, call_id: str) -> Optional[list]:
        return await self._get(f"/startup-calls/{call_id}/budgets")

    async def list_expenses(self, call_id: str, budget_id: str, **filters) -> Optional[list]:
        return await self._get(f"/startup-calls/{call_id}/budgets/{budget_id}/expenses", filters)

    async def submit_expense(self, call_id: str, budget_id: str, expense: dict) -> Optional[dict]:
        return await self._send("POST", f"/startup-calls/{call_id}/budgets/{budget_id}/expenses", expense)

    async def set_expense_status(
        self, call_id: str, expense_id: str, status: str, comment: Optional[str] = None
    ) -> Optional[dict]:
        """Admin approval / rejection of an expense."""
        payload = {"status": status}
        if comment:
            payload["comment"] = comment
        return await self._send("PATCH", f"/startup-calls/{call_id}/budgets/expenses/{expense_id}/status", payload)

    # ------------------------------------------------------------------
    # Sponsorship
    # ------------------------------------------------------------------

    async def list_opportunities(self, **filters) -> Optional[list]:
        return await self._get("/sponsorship-opportunities", filters)

    async def apply_to_opportunity(self, opportunity_id: str, application: dict) -> Optional[dict]:
        return await self._send("POST", f"/sponsorship-opportunities/{opportunity_id}/apply", application)

    # ------------------------------------------------------------------
    # Inbox & dashboard
    # ------------------------------------------------------------------

    async def notifications(self, unread_only: bool = False) -> Optional[list]:
        return await self._get("/notifications", {"unread_only": str(unread_only).lower()})

    async def dashboard_stats(self) -> Optional[dict]:
        return await self._get("/dashboard/stats")
