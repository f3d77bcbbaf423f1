from fixture_sync.db.models.core.league import League
from fixture_sync.db.models.core.match import Match
from fixture_sync.db.models.core.match_prediction import MatchPrediction
from fixture_sync.db.models.core.team import Team
from fixture_sync.db.models.core.team_season_statistics import TeamSeasonStatistics
from fixture_sync.db.models.jobs.job_execution import JobExecution

__all__ = [
    "JobExecution",
    "League",
    "Match",
    "MatchPrediction",
    "Team",
    "TeamSeasonStatistics",
]
