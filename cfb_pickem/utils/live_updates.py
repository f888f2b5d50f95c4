"""
Pure core of the live score update

compute_update compares the stored games of a week with what the score feed
reports and returns the changes to apply. It reads no clock or database
itself; the scheduler supplies both sides and applies the result.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

SCHEDULED = "scheduled"
IN_PROGRESS = "in_progress"
COMPLETED = "completed"


@dataclass
class FeedGame:
    """One game as reported by the score feed"""

    external_id: Optional[str]
    home_team: str
    away_team: str
    home_points: Optional[int] = None
    away_points: Optional[int] = None
    completed: bool = False
    status: Optional[str] = None
    start_date: Optional[datetime] = None

    @property
    def feed_status(self):
        if self.completed or self.status in ("completed", "final"):
            return COMPLETED
        if self.status == IN_PROGRESS:
            return IN_PROGRESS
        if self.home_points is not None or self.away_points is not None:
            return IN_PROGRESS
        return SCHEDULED


@dataclass
class GameUpdate:
    game_id: int
    home_score: Optional[int]
    away_score: Optional[int]
    status: str
    previous_status: str
    external_id: Optional[str] = None

    @property
    def newly_completed(self):
        return self.status == COMPLETED and self.previous_status != COMPLETED

    def to_dict(self):
        return {
            "game_id": self.game_id,
            "home_score": self.home_score,
            "away_score": self.away_score,
            "status": self.status,
            "previous_status": self.previous_status,
            "newly_completed": self.newly_completed,
        }


def _team_key(home, away):
    return (home or "").lower().strip(), (away or "").lower().strip()


def _as_utc(moment):
    if moment is None:
        return None
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def match_feed_game(game, by_external_id, by_teams):
    """Find the feed entry for a stored game: external id first, then team names"""
    if game.external_id and str(game.external_id) in by_external_id:
        return by_external_id[str(game.external_id)]
    return by_teams.get(_team_key(game.home_team, game.away_team))


def compute_update(season, week, stored_games, feed_games, now=None):
    """
    Work out the score and status changes for one week.

    Completed games are never changed again. A game whose kickoff is still
    in the future stays scheduled whatever the feed says.

    Args:
        season: Season year
        week: Week number
        stored_games: Game rows (or objects with the same attributes)
        feed_games: FeedGame entries from the score feed
        now: current time, defaults to utcnow

    Returns:
        List of GameUpdate for games that changed
    """
    now = _as_utc(now) or datetime.now(timezone.utc)

    by_external_id = {str(f.external_id): f for f in feed_games if f.external_id is not None}
    by_teams = {_team_key(f.home_team, f.away_team): f for f in feed_games}

    updates = []
    for game in stored_games:
        if game.season != season or game.week != week:
            continue
        if game.status == COMPLETED:
            continue

        feed = match_feed_game(game, by_external_id, by_teams)
        if feed is None:
            continue

        status = feed.feed_status
        kickoff = _as_utc(game.game_time)
        if kickoff is not None and kickoff > now and status != SCHEDULED:
            status = SCHEDULED

        home_score = feed.home_points
        away_score = feed.away_points
        if status == SCHEDULED:
            home_score, away_score = game.home_score, game.away_score

        if (
            home_score == game.home_score
            and away_score == game.away_score
            and status == game.status
        ):
            continue

        updates.append(
            GameUpdate(
                game_id=game.id,
                home_score=home_score,
                away_score=away_score,
                status=status,
                previous_status=game.status,
                external_id=feed.external_id,
            )
        )

    return updates
