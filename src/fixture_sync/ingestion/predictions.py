from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol


class PredictionGenerator(Protocol):
    """External prediction model.

    Receives local `Match.id` values that have no `MatchPrediction` yet and
    returns how many predictions it stored.
    """

    async def generate(self, match_ids: Sequence[int]) -> int: ...
