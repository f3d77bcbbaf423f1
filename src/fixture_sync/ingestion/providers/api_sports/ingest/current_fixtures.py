from __future__ import annotations

import asyncio
from collections.abc import Callable, Collection, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from fixture_sync.core.config import Settings, settings
from fixture_sync.core.logging import get_logger
from fixture_sync.ingestion.batching import (
    FetchLedger,
    ItemOutcome,
    format_failure_reason,
    run_batches,
)
from fixture_sync.ingestion.dates import utc_now
from fixture_sync.ingestion.providers.api_sports.client import ApiSportsClient
from fixture_sync.ingestion.providers.api_sports.schemas import ApiFixture
from fixture_sync.ingestion.seasons import build_season_candidates, current_football_season

logger = get_logger(__name__)

# Store-query callback: every season the store has seen for a provider league id.
SeasonLookup = Callable[[int], Iterable[int]]


@dataclass(frozen=True)
class LeagueRef:
    provider_league_id: int
    stored_season: int | None = None


@dataclass(frozen=True)
class FixtureWindow:
    date_from: date
    date_to: date
    include_live: bool = False

    def params(self) -> dict[str, Any]:
        return {"from": self.date_from.isoformat(), "to": self.date_to.isoformat()}


@dataclass(frozen=True)
class ResolvedFixtures:
    fixtures: dict[int, ApiFixture]
    seasons_tried: dict[int, list[int]]
    bulk_queries: int
    bulk_failures: int
    missing_ids: list[int]
    fallback: FetchLedger
    failure_reasons: dict[str, int] = field(default_factory=dict)

    @property
    def recovered_by_fallback(self) -> int:
        return len(self.fallback.values)


def _no_history(_: int) -> Iterable[int]:
    return ()


class CurrentFixtureResolver:
    """Recover the fixtures a set of leagues currently has in play.

    Bulk `/fixtures` queries (league + season + date window) come first, one
    priority rank at a time. Tracked fixture ids that no bulk query returned are
    then fetched one by one in small paced batches.
    """

    def __init__(
        self,
        client: ApiSportsClient,
        *,
        season_lookup: SeasonLookup = _no_history,
        today: Callable[[], date] = lambda: utc_now().date(),
        stale_season_sentinel: int | None = 2010,
        fallback_batch_size: int = 10,
        fallback_delay_s: float = 2.0,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ) -> None:
        self.client = client
        self.season_lookup = season_lookup
        self._today = today
        self.stale_season_sentinel = stale_season_sentinel
        self.fallback_batch_size = fallback_batch_size
        self.fallback_delay_s = fallback_delay_s
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        client: ApiSportsClient,
        cfg: Settings = settings,
        *,
        season_lookup: SeasonLookup = _no_history,
    ) -> CurrentFixtureResolver:
        return cls(
            client,
            season_lookup=season_lookup,
            stale_season_sentinel=cfg.stale_season_sentinel,
            fallback_batch_size=cfg.batch_size,
            fallback_delay_s=cfg.inter_batch_delay_s,
        )

    # -----------------------------
    # Season planning
    # -----------------------------

    def season_candidates(self, league: LeagueRef) -> list[int]:
        return build_season_candidates(
            stored=league.stored_season,
            detected=current_football_season(self._today()),
            history=self.season_lookup(league.provider_league_id),
            stale_sentinel=self.stale_season_sentinel,
        )

    # -----------------------------
    # Bulk path
    # -----------------------------

    async def _bulk_query(
        self, league_id: int, season: int, window: FixtureWindow
    ) -> list[ApiFixture]:
        params: dict[str, Any] = {"league": league_id, "season": season}
        fixtures = await self.client.get_fixtures(**params, **window.params())
        if window.include_live:
            fixtures += await self.client.get_fixtures(**params, live="all")
        logger.debug(
            "League {} season {}: {} fixtures in {}..{}",
            league_id,
            season,
            len(fixtures),
            window.date_from,
            window.date_to,
        )
        return fixtures

    # -----------------------------
    # Fallback path
    # -----------------------------

    async def fetch_by_identifiers(self, fixture_ids: Sequence[int]) -> FetchLedger:
        """Fetch fixtures one id at a time; found fixtures land in `ledger.values`."""

        async def fetch_one(fixture_id: int) -> ItemOutcome:
            fixture = await self.client.get_fixture(fixture_id)
            if fixture is None or fixture.fixture_id is None:
                return ItemOutcome.skipped("not_found", key=fixture_id)
            return ItemOutcome.fetched(key=fixture.fixture_id, value=fixture)

        return await run_batches(
            list(fixture_ids),
            operation=fetch_one,
            batch_size=self.fallback_batch_size,
            inter_batch_delay_s=self.fallback_delay_s,
            sleep=self._sleep,
            label="fixture ids",
        )

    # -----------------------------
    # Resolution
    # -----------------------------

    async def resolve(
        self,
        leagues: Sequence[LeagueRef],
        tracked_ids: Collection[int],
        window: FixtureWindow,
    ) -> ResolvedFixtures:
        plan = {league.provider_league_id: self.season_candidates(league) for league in leagues}
        for league_id, seasons in plan.items():
            logger.info("League {}: trying seasons {}", league_id, seasons)

        fixtures: dict[int, ApiFixture] = {}
        bulk_queries = 0
        bulk_failures = 0
        failure_reasons: dict[str, int] = {}

        depth = max((len(s) for s in plan.values()), default=0)
        for rank in range(depth):
            calls = [
                (league_id, seasons[rank])
                for league_id, seasons in plan.items()
                if rank < len(seasons)
            ]
            results = await asyncio.gather(
                *(self._bulk_query(league_id, season, window) for league_id, season in calls),
                return_exceptions=True,
            )
            bulk_queries += len(calls)

            for (league_id, season), result in zip(calls, results, strict=True):
                if isinstance(result, Exception):
                    bulk_failures += 1
                    reason = format_failure_reason(result)
                    failure_reasons[reason] = failure_reasons.get(reason, 0) + 1
                    logger.error(
                        "Bulk fixture query failed for league {} season {}: {}",
                        league_id,
                        season,
                        result,
                    )
                    continue
                if isinstance(result, BaseException):
                    raise result
                for fixture in result:
                    if fixture.fixture_id is not None:
                        fixtures[fixture.fixture_id] = fixture

        missing = sorted(set(tracked_ids) - set(fixtures))
        if missing:
            logger.warning(
                "{} tracked fixtures missing from bulk responses, fetching individually",
                len(missing),
            )
        fallback = await self.fetch_by_identifiers(missing)
        for fixture in fallback.values:
            fixtures[fixture.fixture_id] = fixture

        logger.info(
            "Resolved {} fixtures ({} bulk queries, {} failed, {} recovered by id)",
            len(fixtures),
            bulk_queries,
            bulk_failures,
            len(fallback.values),
        )
        return ResolvedFixtures(
            fixtures=fixtures,
            seasons_tried=plan,
            bulk_queries=bulk_queries,
            bulk_failures=bulk_failures,
            missing_ids=missing,
            fallback=fallback,
            failure_reasons=failure_reasons,
        )
