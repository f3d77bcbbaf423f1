from __future__ import annotations

from collections.abc import Iterable
from datetime import date

# Football seasons roll over in August: a 2025-08-01 kickoff belongs to 2025,
# a 2026-03-01 kickoff still belongs to 2025.
SEASON_ROLLOVER_MONTH = 8


def current_football_season(today: date) -> int:
    return today.year if today.month >= SEASON_ROLLOVER_MONTH else today.year - 1


def build_season_candidates(
    *,
    stored: int | None,
    detected: int,
    history: Iterable[int] = (),
    stale_sentinel: int | None = 2010,
) -> list[int]:
    """Ordered, de-duplicated seasons to query for one league.

    Priority: the season recorded in the store, the auto-detected current season,
    the season before it, then any other season seen for the league (newest first).

    A league with nothing stored and no history only tries the detected season.
    When the detected season equals `stale_sentinel` the clock is not trusted:
    the detected and previous seasons are dropped and only store-known seasons
    remain.
    """
    known = sorted({s for s in history if s is not None}, reverse=True)

    ordered: list[int | None] = [stored]
    if stale_sentinel is None or detected != stale_sentinel:
        ordered.append(detected)
        if stored is not None or known:
            ordered.append(detected - 1)
    ordered.extend(known)

    candidates: list[int] = []
    for season in ordered:
        if season is None or season in candidates:
            continue
        candidates.append(season)
    return candidates
