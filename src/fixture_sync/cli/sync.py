from __future__ import annotations

import asyncio

import typer

from fixture_sync.cli.common import api_client, echo_failures, session_scope
from fixture_sync.core.config import settings
from fixture_sync.db.repos.core.league_repo import LeagueRepository
from fixture_sync.ingestion.providers.api_sports.ingest.current_fixtures import (
    CurrentFixtureResolver,
)
from fixture_sync.ingestion.providers.api_sports.ingest.fixtures import sync_fixtures_for_leagues
from fixture_sync.ingestion.providers.api_sports.ingest.leagues import sync_leagues
from fixture_sync.ingestion.providers.api_sports.ingest.live import refresh_live_matches

app = typer.Typer(help="Run one sync pass against API-Sports now.")


@app.command("leagues")
def sync_leagues_cmd() -> None:
    """Upsert every provider league with a current season (new leagues stay inactive)."""

    async def run():
        async with api_client() as client:
            with session_scope() as session:
                return await sync_leagues(session, client)

    result = asyncio.run(run())
    typer.echo(
        " ".join(
            [
                "Synced leagues:",
                f"seen={result.leagues_seen}",
                f"created={result.created}",
                f"updated={result.updated}",
                f"skipped={result.skipped}",
                f"errors={result.errors}",
                f"in_store={result.leagues_in_store}",
                f"active={result.active_leagues_in_store}",
            ]
        )
    )
    echo_failures(result.failure_reasons)


@app.command("fixtures")
def sync_fixtures_cmd(
    window_days: int = typer.Option(
        settings.fixture_window_days,
        "--window-days",
        help="Days after today to include (today is always included).",
    ),
    league_ids: list[int] = typer.Option(
        [],
        "--league-id",
        help="Provider league id to sync (repeatable). Defaults to every active league.",
    ),
    include_live: bool = typer.Option(
        False,
        "--include-live/--no-include-live",
        help="Also query live=all for each league and season.",
    ),
) -> None:
    """Fetch upcoming fixtures, upsert matches/teams and refresh team statistics."""

    async def run():
        async with api_client() as client:
            with session_scope() as session:
                leagues = None
                if league_ids:
                    repo = LeagueRepository(session)
                    found = [repo.by_provider_id(i) for i in league_ids]
                    leagues = [league for league in found if league is not None]
                    unknown = sorted(set(league_ids) - {lg.provider_league_id for lg in leagues})
                    if unknown:
                        typer.echo(f"Unknown league ids (run `sync leagues` first): {unknown}")
                return await sync_fixtures_for_leagues(
                    session,
                    client,
                    leagues=leagues,
                    window_days=window_days,
                    include_live=include_live,
                )

    result = asyncio.run(run())
    typer.echo(
        " ".join(
            [
                f"Synced fixtures for {result.leagues} leagues:",
                f"seen={result.fixtures_seen}",
                f"created={result.created}",
                f"updated={result.updated}",
                f"skipped={result.skipped}",
                f"errors={result.errors}",
                f"recovered_by_id={result.recovered_by_id}",
                f"teams_created={result.teams_created}",
                f"team_stats_updated={result.team_stats_updated}",
                f"team_stats_failed={result.team_stats_failed}",
            ]
        )
    )
    echo_failures(result.failure_reasons)


@app.command("live")
def sync_live_cmd() -> None:
    """Refresh status and score of live or recently started matches."""

    async def run():
        async with api_client() as client:
            with session_scope() as session:
                return await refresh_live_matches(
                    session, CurrentFixtureResolver.from_settings(client)
                )

    result = asyncio.run(run())
    typer.echo(
        " ".join(
            [
                "Live refresh:",
                f"candidates={result.candidates}",
                f"fetched={result.fetched}",
                f"updated={result.updated}",
                f"finished={result.finished}",
                f"not_found={result.not_found}",
                f"league_seasons_raised={result.league_seasons_raised}",
                f"errors={result.errors}",
            ]
        )
    )
    echo_failures(result.failure_reasons)


@app.command("fetch-fixtures")
def fetch_fixtures_cmd(
    fixture_ids: list[int] = typer.Argument(..., help="Provider fixture ids."),
) -> None:
    """Look fixtures up one id at a time (paced batches) and print what came back."""

    async def run():
        async with api_client() as client:
            return await CurrentFixtureResolver.from_settings(client).fetch_by_identifiers(
                fixture_ids
            )

    ledger = asyncio.run(run())
    for fixture in ledger.values:
        status = fixture.fixture.status
        home = fixture.teams.home.name if fixture.teams.home else "?"
        away = fixture.teams.away.name if fixture.teams.away else "?"
        typer.echo(
            f"{fixture.fixture_id}: {home} vs {away} "
            f"[{status.short if status else 'NS'}] {fixture.fixture.date}"
        )
    typer.echo(
        f"fetched={ledger.fetched} not_found={ledger.skipped} errors={ledger.errored} "
        f"batches={ledger.batches}"
    )
    echo_failures(ledger.failure_reasons)
