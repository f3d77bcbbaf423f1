from __future__ import annotations

from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager

import typer
from sqlalchemy.orm import Session, sessionmaker

from fixture_sync.core.config import settings
from fixture_sync.db import DatabaseConfig, create_db_engine, create_session_factory
from fixture_sync.db import session_scope as _session_scope
from fixture_sync.ingestion.providers.api_sports.client import ApiSportsClient


def make_session_factory() -> sessionmaker[Session]:
    engine = create_db_engine(
        DatabaseConfig(database_url=settings.database_url, echo=settings.db_echo)
    )
    return create_session_factory(engine)


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Context-managed DB session for CLI commands.
    Ensures proper close and rolls back on exception.
    """
    with _session_scope(make_session_factory()) as session:
        yield session


@asynccontextmanager
async def api_client() -> AsyncIterator[ApiSportsClient]:
    """API-Sports client with its quota gate armed for the lifetime of the command."""
    client = ApiSportsClient.from_settings(settings)
    client.gate.start()
    try:
        yield client
    finally:
        await client.gate.stop()
        await client.aclose()


def echo_failures(failure_reasons: dict[str, int], *, limit: int = 5) -> None:
    if not failure_reasons:
        return
    top = sorted(failure_reasons.items(), key=lambda kv: kv[1], reverse=True)[:limit]
    typer.echo("Failures (top):")
    for reason, count in top:
        typer.echo(f"  {count}x {reason}")
