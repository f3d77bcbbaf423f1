from __future__ import annotations

from datetime import date

from fixture_sync.ingestion.seasons import build_season_candidates, current_football_season


def test_current_football_season_rolls_over_in_august() -> None:
    assert current_football_season(date(2025, 8, 1)) == 2025
    assert current_football_season(date(2025, 7, 31)) == 2024
    assert current_football_season(date(2026, 3, 1)) == 2025


def test_candidates_stored_equals_detected() -> None:
    assert build_season_candidates(stored=2024, detected=2024) == [2024, 2023]


def test_candidates_order_stored_detected_previous_history() -> None:
    assert build_season_candidates(stored=2023, detected=2025, history=[2022, 2024, 2023]) == [
        2023,
        2025,
        2024,
        2022,
    ]


def test_new_league_only_tries_detected_season() -> None:
    assert build_season_candidates(stored=None, detected=2025) == [2025]


def test_history_alone_adds_previous_season() -> None:
    assert build_season_candidates(stored=None, detected=2025, history=[2021]) == [
        2025,
        2024,
        2021,
    ]


def test_stale_sentinel_drops_detected_seasons() -> None:
    assert build_season_candidates(stored=2024, detected=2010, history=[2023]) == [2024, 2023]
    assert build_season_candidates(stored=None, detected=2010) == []


def test_sentinel_can_be_disabled() -> None:
    assert build_season_candidates(stored=None, detected=2010, stale_sentinel=None) == [2010]
