from __future__ import annotations

from typing import Any

import httpx
import pytest

from fixture_sync.core.config import Settings
from fixture_sync.ingestion.providers.api_sports.client import ApiSportsClient
from fixture_sync.ingestion.providers.api_sports.executor import CallExecutor, RetryPolicy
from fixture_sync.ingestion.providers.api_sports.quota import QuotaBucket, QuotaGate
from fixture_sync.ingestion.providers.base.client import BaseHttpClient, parse_retry_after
from fixture_sync.ingestion.providers.base.errors import (
    ProviderClientError,
    ProviderResponseError,
)

from api_payloads import fixture_payload


def _client(handler, sleep) -> ApiSportsClient:
    gate = QuotaGate(
        minute=QuotaBucket(name="minute", capacity=100, refill_interval_s=60),
        day=QuotaBucket(name="day", capacity=1000, refill_interval_s=86400),
    )
    http = BaseHttpClient(base_url="https://api.test", transport=httpx.MockTransport(handler))
    return ApiSportsClient(
        http=http, api_key="secret", executor=CallExecutor(gate, RetryPolicy(), sleep=sleep)
    )


def _ok(response: Any, headers: dict[str, str] | None = None) -> httpx.Response:
    return httpx.Response(
        200, json={"errors": [], "results": 1, "response": response}, headers=headers
    )


async def test_get_fixtures_sends_key_and_reads_quota_headers(fake_sleep) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return _ok(
            [fixture_payload(1001)],
            headers={
                "x-ratelimit-limit": "450",
                "x-ratelimit-remaining": "449",
                "x-ratelimit-requests-remaining": "74999",
            },
        )

    client = _client(handler, fake_sleep)
    fixtures = await client.get_fixtures(league=39, season=2025)
    await client.aclose()

    assert [f.fixture_id for f in fixtures] == [1001]
    assert seen[0].headers["x-apisports-key"] == "secret"
    assert seen[0].url.path == "/fixtures"
    assert dict(seen[0].url.params) == {"league": "39", "season": "2025"}
    assert client.last_minute_remaining == 449
    assert client.last_day_remaining == 74999


async def test_low_minute_quota_is_logged(fake_sleep, log_messages) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return _ok([], headers={"x-ratelimit-limit": "450", "x-ratelimit-remaining": "12"})

    client = _client(handler, fake_sleep)
    await client.get_fixtures(league=39, season=2025)
    await client.aclose()

    assert any("Rate limit running low: 12/450 remaining" in m for m in log_messages)


async def test_rate_limit_in_errors_body_is_retried(fake_sleep, sleeps) -> None:
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        if calls["n"] == 1:
            return httpx.Response(
                200,
                json={"errors": {"rateLimit": "Too many requests"}, "response": []},
            )
        return _ok([fixture_payload(7)])

    client = _client(handler, fake_sleep)
    fixture = await client.get_fixture(7)
    await client.aclose()

    assert fixture is not None and fixture.fixture_id == 7
    assert calls["n"] == 2
    assert sleeps == [60.0]


async def test_http_429_honours_retry_after(fake_sleep, sleeps) -> None:
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        if calls["n"] == 1:
            return httpx.Response(429, headers={"retry-after": "5"})
        return _ok([])

    client = _client(handler, fake_sleep)
    assert await client.get_fixtures(live="all") == []
    await client.aclose()
    assert sleeps == [5.0]


async def test_server_error_then_success(fake_sleep, sleeps) -> None:
    responses = iter([httpx.Response(503), _ok([fixture_payload(3)])])

    def handler(request: httpx.Request) -> httpx.Response:
        return next(responses)

    client = _client(handler, fake_sleep)
    fixtures = await client.get_fixtures(id=3)
    await client.aclose()

    assert [f.fixture_id for f in fixtures] == [3]
    assert sleeps == [2.0]


async def test_application_errors_are_terminal(fake_sleep) -> None:
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(200, json={"errors": {"token": "invalid key"}, "response": []})

    client = _client(handler, fake_sleep)
    with pytest.raises(ProviderResponseError, match="invalid key"):
        await client.get_leagues()
    await client.aclose()
    assert calls["n"] == 1


async def test_client_errors_are_terminal(fake_sleep) -> None:
    client = _client(lambda request: httpx.Response(403), fake_sleep)
    with pytest.raises(ProviderClientError):
        await client.get_team(33)
    await client.aclose()


async def test_malformed_items_are_dropped(fake_sleep, log_messages) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return _ok([fixture_payload(1), {"fixture": {"id": "not-a-number"}}])

    client = _client(handler, fake_sleep)
    fixtures = await client.get_fixtures(league=39, season=2025)
    await client.aclose()

    assert [f.fixture_id for f in fixtures] == [1]
    assert any("Dropping malformed ApiFixture" in m for m in log_messages)


async def test_team_statistics_empty_response_is_none(fake_sleep) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert dict(request.url.params) == {"team": "33", "league": "39", "season": "2025"}
        return httpx.Response(200, json={"errors": [], "response": {}})

    client = _client(handler, fake_sleep)
    assert await client.get_team_statistics(team_id=33, league_id=39, season=2025) is None
    await client.aclose()


async def test_get_league_reads_current_season(fake_sleep) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return _ok(
            [
                {
                    "league": {"id": 39, "name": "Premier League", "type": "League"},
                    "country": {"name": "England"},
                    "seasons": [
                        {"year": 2024, "current": False},
                        {"year": 2025, "start": "2025-08-15", "current": True},
                    ],
                }
            ]
        )

    client = _client(handler, fake_sleep)
    league = await client.get_league(39)
    await client.aclose()

    assert league is not None
    assert league.current_season is not None
    assert league.current_season.year == 2025


def test_parse_retry_after() -> None:
    assert parse_retry_after({"retry-after": "7"}) == 7.0
    assert parse_retry_after({"retry-after": "soon", "x-ratelimit-reset": "12"}) == 12.0
    assert parse_retry_after({}) is None


def test_from_settings_requires_api_key() -> None:
    with pytest.raises(RuntimeError, match="API_SPORTS_KEY"):
        ApiSportsClient.from_settings(Settings(_env_file=None, api_sports_key=None))
