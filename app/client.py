"""
Async HTTP client for the league API, used by scripts and other services.

Transport errors and 5xx responses are retried with exponential backoff;
4xx responses are returned to the caller as LeagueAPIError straight away.
"""

import asyncio
import logging

import httpx

from app.core.config import get_settings

logger = logging.getLogger(__name__)


class LeagueAPIError(Exception):
    def __init__(self, status_code: int, detail):
        super().__init__(f"League API error {status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


class LeagueClient:
    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        max_attempts: int | None = None,
        backoff_base: float | None = None,
        timeout: float | None = None,
        sleep=asyncio.sleep,
    ):
        settings = get_settings()
        self.base_url = base_url or settings.api_base_url
        self.token = token
        self.max_attempts = max_attempts or settings.client_max_attempts
        self.backoff_base = settings.client_backoff_base if backoff_base is None else backoff_base
        self._sleep = sleep
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or settings.client_timeout,
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    async def close(self):
        await self._client.aclose()

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    async def request(self, method: str, path: str, **kwargs):
        """Send a request, retrying up to max_attempts times. Returns the decoded JSON body."""
        last_error: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                resp = await self._client.request(method, path, headers=self._headers(), **kwargs)
            except httpx.TransportError as e:
                last_error = e
                logger.warning("%s %s failed (attempt %d/%d): %s", method, path, attempt, self.max_attempts, e)
            else:
                if resp.status_code < 500:
                    if resp.status_code >= 400:
                        try:
                            detail = resp.json().get("detail")
                        except ValueError:
                            detail = resp.text
                        raise LeagueAPIError(resp.status_code, detail)
                    return resp.json() if resp.content else None
                last_error = LeagueAPIError(resp.status_code, resp.text[:300])
                logger.warning(
                    "%s %s returned %s (attempt %d/%d)",
                    method, path, resp.status_code, attempt, self.max_attempts,
                )

            if attempt < self.max_attempts:
                await self._sleep(self.backoff_base * (2 ** (attempt - 1)))

        raise last_error

    async def login(self, email: str, password: str) -> dict:
        data = await self.request("POST", "/api/auth/login/json", json={"email": email, "password": password})
        self.token = data["access_token"]
        return data

    async def get_leaderboard(self) -> list[dict]:
        return await self.request("GET", "/api/leaderboard")

    async def get_episode_events(self, episode_id: int) -> list[dict]:
        return await self.request("GET", f"/api/episodes/{episode_id}/events")

    async def bulk_update_events(
        self, episode_id: int, add: list[dict] | None = None, remove: list[int] | None = None
    ) -> dict:
        return await self.request(
            "POST",
            f"/api/episodes/{episode_id}/events/bulk",
            json={"add": add or [], "remove": remove or []},
        )

    async def update_sole_survivor(self, player_id: int, contestant_id: int) -> dict:
        return await self.request(
            "PUT", f"/api/sole-survivor/{player_id}", json={"contestant_id": contestant_id}
        )

    async def submit_predictions(self, episode_id: int, predictions: list[dict]) -> list[dict]:
        return await self.request(
            "POST", "/api/predictions", json={"episode_id": episode_id, "predictions": predictions}
        )

    async def get_team_audit(self, player_id: int | None = None) -> dict:
        params = {"player_id": player_id} if player_id is not None else None
        return await self.request("GET", "/api/team-details/audit", params=params)
