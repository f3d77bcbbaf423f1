from __future__ import annotations

from datetime import UTC, date, datetime, timedelta
from typing import Any


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (SQLite round-trips) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def parse_api_sports_fixture_datetime(
    value: Any, *, timestamp: int | None = None, provider_fixture_id: int | None = None
) -> datetime:
    """
    Parse api-sports 'fixture.date' into a tz-aware UTC datetime.

    Supports:
      - datetime (already parsed by the response models)
      - ISO string: "2025-09-07T20:20:00+00:00" / "Z"
      - the unix `fixture.timestamp`, used when the date is missing
    """
    if isinstance(value, datetime):
        return as_utc(value)

    if isinstance(value, str) and value:
        return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))

    if isinstance(timestamp, int):
        return datetime.fromtimestamp(timestamp, tz=UTC)

    raise ValueError(
        f"Missing/invalid fixture.date for provider_fixture_id={provider_fixture_id}: {value!r}"
    )


def fixture_window(days: int, *, now: datetime | None = None) -> tuple[date, date]:
    """Inclusive `from`/`to` dates covering today and the next `days` days (UTC)."""
    today = as_utc(now or utc_now()).date()
    return today, today + timedelta(days=days)
