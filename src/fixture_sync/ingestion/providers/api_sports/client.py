from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from fixture_sync.core.config import Settings, settings
from fixture_sync.core.logging import get_logger
from fixture_sync.ingestion.providers.api_sports.executor import CallExecutor, RetryPolicy
from fixture_sync.ingestion.providers.api_sports.quota import QuotaGate
from fixture_sync.ingestion.providers.api_sports.schemas import (
    ApiFixture,
    ApiLeague,
    ApiTeam,
    TeamStatistics,
)
from fixture_sync.ingestion.providers.base.client import BaseHttpClient
from fixture_sync.ingestion.providers.base.errors import (
    ProviderRateLimited,
    ProviderResponseError,
)

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _raise_for_payload_errors(path: str, data: Mapping[str, Any]) -> None:
    # api-sports reports some failures with HTTP 200 and a non-empty `errors`
    # (a list or an object). The per-minute throttle shows up as `rateLimit`.
    errors = data.get("errors") or []
    if not errors:
        return
    if isinstance(errors, Mapping) and "rateLimit" in errors:
        raise ProviderRateLimited(f"api-sports rate limit on {path}: {errors['rateLimit']}")
    raise ProviderResponseError(f"api-sports returned errors for {path}: {errors}")


@dataclass
class ApiSportsClient:
    """API-Sports football v3 client.

    Every request goes through the `CallExecutor`, so each attempt is admitted by the
    shared `QuotaGate` and retried according to the `RetryPolicy`.
    """

    http: BaseHttpClient
    api_key: str
    executor: CallExecutor
    low_quota_watermark: int = 50

    last_minute_remaining: int | None = field(default=None, init=False)
    last_day_remaining: int | None = field(default=None, init=False)

    @classmethod
    def from_settings(
        cls,
        cfg: Settings = settings,
        *,
        gate: QuotaGate | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> ApiSportsClient:
        api_key = cfg.require_api_sports_key()
        http = BaseHttpClient(
            base_url=cfg.api_sports_base_url,
            timeout_s=cfg.api_timeout_s,
            connect_timeout_s=cfg.api_connect_timeout_s,
            transport=transport,
        )
        executor = CallExecutor(
            gate or QuotaGate.from_settings(cfg),
            RetryPolicy.from_settings(cfg),
        )
        return cls(http=http, api_key=api_key, executor=executor)

    @property
    def gate(self) -> QuotaGate:
        return self.executor.gate

    async def aclose(self) -> None:
        await self.http.aclose()

    def _headers(self) -> dict[str, str]:
        return {"x-apisports-key": self.api_key}

    def _observe_quota(self, headers: Mapping[str, str]) -> None:
        minute_left = _parse_int(headers.get("x-ratelimit-remaining"))
        day_left = _parse_int(headers.get("x-ratelimit-requests-remaining"))
        if minute_left is not None:
            self.last_minute_remaining = minute_left
        if day_left is not None:
            self.last_day_remaining = day_left

        if minute_left is not None and minute_left < self.low_quota_watermark:
            limit = headers.get("x-ratelimit-limit")
            logger.warning("Rate limit running low: {}/{} remaining", minute_left, limit)

    async def _get_once(self, path: str, params: Mapping[str, Any] | None) -> dict[str, Any]:
        data, headers = await self.http.get_json_with_headers(
            path, params=params, headers=self._headers()
        )
        self._observe_quota(headers)
        _raise_for_payload_errors(path, data)
        return data

    async def get(self, path: str, params: Mapping[str, Any] | None = None) -> dict[str, Any]:
        return await self.executor.execute(
            lambda: self._get_once(path, params),
            label=f"GET {path} {dict(params or {})}",
        )

    async def get_response_items(
        self, path: str, params: Mapping[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        payload = await self.get(path, params=params)
        items = payload.get("response")
        if not isinstance(items, list):
            raise TypeError(f"Expected 'response' list, got: {type(items)}")
        return [i for i in items if isinstance(i, dict)]

    @staticmethod
    def _parse_items(
        model: type[ModelT], items: list[dict[str, Any]], *, path: str
    ) -> list[ModelT]:
        parsed: list[ModelT] = []
        for item in items:
            try:
                parsed.append(model.model_validate(item))
            except ValidationError as exc:
                logger.warning("Dropping malformed {} item from {}: {}", model.__name__, path, exc)
        return parsed

    # -----------------------------
    # Endpoints
    # -----------------------------

    async def get_leagues(self, **params: Any) -> list[ApiLeague]:
        items = await self.get_response_items("/leagues", params=params)
        return self._parse_items(ApiLeague, items, path="/leagues")

    async def get_league(self, league_id: int) -> ApiLeague | None:
        leagues = await self.get_leagues(id=league_id)
        return leagues[0] if leagues else None

    async def get_fixtures(self, **params: Any) -> list[ApiFixture]:
        items = await self.get_response_items("/fixtures", params=params)
        return self._parse_items(ApiFixture, items, path="/fixtures")

    async def get_fixture(self, fixture_id: int) -> ApiFixture | None:
        fixtures = await self.get_fixtures(id=fixture_id)
        return fixtures[0] if fixtures else None

    async def get_team(self, team_id: int) -> ApiTeam | None:
        items = await self.get_response_items("/teams", params={"id": team_id})
        teams = self._parse_items(ApiTeam, items, path="/teams")
        return teams[0] if teams else None

    async def get_team_statistics(
        self, *, team_id: int, league_id: int, season: int
    ) -> TeamStatistics | None:
        payload = await self.get(
            "/teams/statistics",
            params={"team": team_id, "league": league_id, "season": season},
        )
        stats = payload.get("response")
        return stats if isinstance(stats, dict) and stats else None
