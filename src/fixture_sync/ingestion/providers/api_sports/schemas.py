"""Typed views over API-Sports football v3 payloads.

Every field is optional: the provider omits keys freely, and a missing id is a
"skip this item" signal for the sync code, not a validation failure.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _ApiModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


# -----------------------------
# /leagues
# -----------------------------


class LeagueInfo(_ApiModel):
    id: int | None = None
    name: str | None = None
    type: str | None = None
    logo: str | None = None


class CountryInfo(_ApiModel):
    name: str | None = None
    code: str | None = None
    flag: str | None = None


class SeasonInfo(_ApiModel):
    year: int | None = None
    start: date | None = None
    end: date | None = None
    current: bool = False


class ApiLeague(_ApiModel):
    league: LeagueInfo = Field(default_factory=LeagueInfo)
    country: CountryInfo = Field(default_factory=CountryInfo)
    seasons: list[SeasonInfo] = Field(default_factory=list)

    @property
    def current_season(self) -> SeasonInfo | None:
        return next((s for s in self.seasons if s.current and s.year is not None), None)


# -----------------------------
# /fixtures
# -----------------------------


class FixtureStatus(_ApiModel):
    long: str | None = None
    short: str | None = None
    elapsed: int | None = None


class FixtureInfo(_ApiModel):
    id: int | None = None
    date: datetime | None = None
    timestamp: int | None = None
    status: FixtureStatus | None = None


class FixtureLeague(_ApiModel):
    id: int | None = None
    name: str | None = None
    season: int | None = None
    round: str | None = None


class FixtureTeam(_ApiModel):
    id: int | None = None
    name: str | None = None
    logo: str | None = None


class FixtureTeams(_ApiModel):
    home: FixtureTeam | None = None
    away: FixtureTeam | None = None


class Goals(_ApiModel):
    home: int | None = None
    away: int | None = None


class Score(_ApiModel):
    halftime: Goals = Field(default_factory=Goals)
    fulltime: Goals = Field(default_factory=Goals)
    extratime: Goals = Field(default_factory=Goals)
    penalty: Goals = Field(default_factory=Goals)


class ApiFixture(_ApiModel):
    fixture: FixtureInfo = Field(default_factory=FixtureInfo)
    league: FixtureLeague = Field(default_factory=FixtureLeague)
    teams: FixtureTeams = Field(default_factory=FixtureTeams)
    goals: Goals | None = None
    score: Score | None = None

    @property
    def fixture_id(self) -> int | None:
        return self.fixture.id


# -----------------------------
# /teams
# -----------------------------


class TeamInfo(_ApiModel):
    id: int | None = None
    name: str | None = None
    code: str | None = None
    country: str | None = None
    logo: str | None = None


class VenueInfo(_ApiModel):
    id: int | None = None
    name: str | None = None
    city: str | None = None
    capacity: int | None = None
    surface: str | None = None


class ApiTeam(_ApiModel):
    team: TeamInfo = Field(default_factory=TeamInfo)
    venue: VenueInfo = Field(default_factory=VenueInfo)


TeamStatistics = dict[str, Any]
