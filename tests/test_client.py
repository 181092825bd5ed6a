import httpx
import pytest

from app.client import LeagueAPIError, LeagueClient


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


def _client(handler, sleep):
    return LeagueClient(
        base_url="http://league.test",
        token="abc",
        transport=httpx.MockTransport(handler),
        max_attempts=3,
        backoff_base=0.5,
        sleep=sleep,
    )


@pytest.mark.asyncio
async def test_retries_server_errors_with_backoff():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) < 3:
            return httpx.Response(503, text="unavailable")
        return httpx.Response(200, json=[{"rank": 1, "name": "Casey"}])

    sleep = RecordingSleep()
    async with _client(handler, sleep) as client:
        board = await client.get_leaderboard()

    assert board == [{"rank": 1, "name": "Casey"}]
    assert len(calls) == 3
    assert sleep.delays == [0.5, 1.0]
    assert calls[0].headers["Authorization"] == "Bearer abc"


@pytest.mark.asyncio
async def test_retries_transport_errors_then_raises():
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    sleep = RecordingSleep()
    async with _client(handler, sleep) as client:
        with pytest.raises(httpx.ConnectError):
            await client.get_leaderboard()

    assert len(calls) == 3
    assert sleep.delays == [0.5, 1.0]


@pytest.mark.asyncio
async def test_gives_up_after_repeated_server_errors():
    def handler(request):
        return httpx.Response(500, text="boom")

    async with _client(handler, RecordingSleep()) as client:
        with pytest.raises(LeagueAPIError) as exc_info:
            await client.get_team_audit(player_id=2)

    assert exc_info.value.status_code == 500


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(409, json={"detail": "Event 7 has already been removed"})

    sleep = RecordingSleep()
    async with _client(handler, sleep) as client:
        with pytest.raises(LeagueAPIError) as exc_info:
            await client.bulk_update_events(1, remove=[7])

    assert exc_info.value.status_code == 409
    assert exc_info.value.detail == "Event 7 has already been removed"
    assert len(calls) == 1
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_login_stores_token():
    def handler(request):
        if request.url.path == "/api/auth/login/json":
            return httpx.Response(200, json={"access_token": "new-token", "token_type": "bearer"})
        return httpx.Response(200, json={"seen": request.headers.get("Authorization")})

    async with _client(handler, RecordingSleep()) as client:
        await client.login("casey@test.com", "secret1")
        resp = await client.request("GET", "/api/auth/me")

    assert resp == {"seen": "Bearer new-token"}
