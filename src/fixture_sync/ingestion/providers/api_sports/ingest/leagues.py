from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from fixture_sync.core.config import settings
from fixture_sync.core.logging import get_logger
from fixture_sync.db.models.core.league import League
from fixture_sync.db.repos.core.league_repo import LeagueRepository
from fixture_sync.ingestion.batching import ItemOutcome, run_batches
from fixture_sync.ingestion.providers.api_sports.client import ApiSportsClient
from fixture_sync.ingestion.providers.api_sports.schemas import ApiLeague

logger = get_logger(__name__)


@dataclass(frozen=True)
class LeagueSyncResult:
    leagues_seen: int
    created: int
    updated: int
    skipped: int
    errors: int
    skip_reasons: dict[str, int]
    failed_league_ids_sample: list[int]
    failure_reasons: dict[str, int]
    leagues_in_store: int
    active_leagues_in_store: int


def _league_fields(listing: ApiLeague, details: ApiLeague) -> dict[str, object]:
    info = listing.league
    return {
        "name": info.name or details.league.name or str(info.id),
        "type": info.type or "League",
        "country": listing.country.name or "",
        "logo_url": info.logo or "",
        "flag_url": listing.country.flag or "",
    }


async def sync_leagues(
    session: Session,
    client: ApiSportsClient,
    *,
    batch_size: int = settings.batch_size,
    inter_batch_delay_s: float = 0.0,
) -> LeagueSyncResult:
    """Upsert every provider league that currently has a `current: true` season.

    Each league is re-read by id for its authoritative season list. New leagues
    are stored inactive; fixture sync only follows leagues switched on locally.
    """
    listed = [league for league in await client.get_leagues() if league.current_season is not None]
    logger.info("Found {} leagues with a current season", len(listed))

    repo = LeagueRepository(session)

    async def process(listing: ApiLeague) -> ItemOutcome:
        league_id = listing.league.id
        if league_id is None:
            return ItemOutcome.skipped("no_id")

        details = await client.get_league(league_id) or listing
        if not details.seasons:
            logger.warning(
                "No seasons for league {} ({}), skipping", league_id, listing.league.name
            )
            return ItemOutcome.skipped("no_seasons", key=league_id)

        current = details.current_season
        if current is None:
            logger.warning("No current season for league {}, skipping", league_id)
            return ItemOutcome.skipped("no_current_season", key=league_id)

        fields = {
            **_league_fields(listing, details),
            "season": current.year,
            "season_start": current.start,
            "season_end": current.end,
        }

        existing = repo.by_provider_id(league_id)
        if existing is None:
            repo.add(League(provider_league_id=league_id, is_active=False, **fields))
            logger.debug("Added league {} (season {})", league_id, current.year)
            return ItemOutcome.created(key=league_id)

        for name, value in fields.items():
            setattr(existing, name, value)
        session.flush()
        return ItemOutcome.updated(key=league_id)

    ledger = await run_batches(
        listed,
        operation=process,
        batch_size=batch_size,
        inter_batch_delay_s=inter_batch_delay_s,
        key=lambda league: league.league.id or 0,
        label="leagues",
    )

    total = repo.count_where()
    active = repo.count_where(League.is_active.is_(True))
    logger.info(
        "League sync: created={} updated={} skipped={} errors={} (store: {} leagues, {} active)",
        ledger.created,
        ledger.updated,
        ledger.skipped,
        ledger.errored,
        total,
        active,
    )

    return LeagueSyncResult(
        leagues_seen=len(listed),
        created=ledger.created,
        updated=ledger.updated,
        skipped=ledger.skipped,
        errors=ledger.errored,
        skip_reasons=dict(ledger.skip_reasons),
        failed_league_ids_sample=[int(i) for i in ledger.failed_ids_sample],
        failure_reasons=dict(ledger.failure_reasons),
        leagues_in_store=total,
        active_leagues_in_store=active,
    )
