from __future__ import annotations

from enum import StrEnum


class JobStatusEnum(StrEnum):
    STARTED = "started"
    SUCCESS = "success"
    FAILED = "failed"


# API-Sports fixture status short codes.
FINISHED_STATUSES = frozenset({"FT", "AET", "PEN", "CANC", "ABD", "AWD", "WO"})
LIVE_STATUSES = frozenset({"1H", "2H", "HT", "ET", "BT", "P", "SUSP", "INT", "PST"})
IN_PLAY_STATUSES = frozenset({"1H", "2H", "HT", "ET", "BT", "P", "INT"})
INTERRUPTED_STATUSES = frozenset({"PST", "SUSP"})
