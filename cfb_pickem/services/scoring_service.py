"""
Writes against-the-spread results onto picks

Scoring a game updates every authenticated and anonymous pick on it in one
transaction. Results are recomputed from the game each time, so scoring the
same game again leaves the picks unchanged.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from cfb_pickem import db
from cfb_pickem.models import AnonymousPick, Game, Pick
from cfb_pickem.utils.cache_utils import invalidate_leaderboard_cache
from cfb_pickem.utils.scoring import score_pick_for_game

logger = logging.getLogger(__name__)


@dataclass
class ScoringResult:
    game_id: int
    scored: bool = False
    picks_scored: int = 0
    anonymous_picks_scored: int = 0
    picks_changed: int = 0
    skipped_reason: Optional[str] = None
    error: Optional[str] = None
    winner_against_spread: Optional[str] = None

    @property
    def success(self):
        return self.error is None

    def to_dict(self):
        return {
            "game_id": self.game_id,
            "scored": self.scored,
            "picks_scored": self.picks_scored,
            "anonymous_picks_scored": self.anonymous_picks_scored,
            "picks_changed": self.picks_changed,
            "skipped_reason": self.skipped_reason,
            "error": self.error,
            "winner_against_spread": self.winner_against_spread,
        }


@dataclass
class WeekScoringResult:
    season: int
    week: int
    games: List[ScoringResult] = field(default_factory=list)

    @property
    def games_scored(self):
        return sum(1 for r in self.games if r.scored)

    @property
    def picks_changed(self):
        return sum(r.picks_changed for r in self.games)

    @property
    def errors(self):
        return [r.error for r in self.games if r.error]

    def to_dict(self):
        return {
            "season": self.season,
            "week": self.week,
            "games_scored": self.games_scored,
            "picks_changed": self.picks_changed,
            "errors": self.errors,
            "games": [r.to_dict() for r in self.games],
        }


class ScoringService:
    """Scores picks once their games are completed"""

    def score_game(self, game):
        """
        Score every pick on a game.

        A game that is not completed is left alone. A completed game missing
        a score is logged and skipped.

        Args:
            game: Game row

        Returns:
            ScoringResult
        """
        result = ScoringResult(game_id=game.id)

        if not game.is_completed:
            result.skipped_reason = f"Game status is {game.status}"
            return result

        if not game.has_final_score:
            result.skipped_reason = "Completed game is missing a score"
            logger.warning(
                f"Game {game.id} ({game.away_team} @ {game.home_team}) is completed "
                f"but missing a score; picks not scored"
            )
            return result

        try:
            picks = Pick.query.filter_by(game_id=game.id).all()
            anonymous_picks = AnonymousPick.query.filter_by(game_id=game.id).all()

            for pick in picks:
                if self._apply(pick, game):
                    result.picks_changed += 1
            for pick in anonymous_picks:
                if self._apply(pick, game):
                    result.picks_changed += 1

            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error scoring game {game.id}: {e}")
            result.error = f"Database error: {e}"
            return result

        result.scored = True
        result.picks_scored = len(picks)
        result.anonymous_picks_scored = len(anonymous_picks)
        result.winner_against_spread = game.winner_against_spread

        if result.picks_changed:
            invalidate_leaderboard_cache()
            logger.info(
                f"Scored game {game.id}: {result.picks_changed} pick(s) updated "
                f"({len(picks)} authenticated, {len(anonymous_picks)} anonymous)"
            )
        return result

    def score_game_by_id(self, game_id):
        """Score a game by id, or None if it does not exist"""
        game = Game.query.get(game_id)
        if game is None:
            return None
        return self.score_game(game)

    def score_week(self, season, week):
        """Score every completed game of a week"""
        week_result = WeekScoringResult(season=season, week=week)
        games = Game.query.filter_by(season=season, week=week, status="completed").all()

        for game in games:
            week_result.games.append(self.score_game(game))

        logger.info(
            f"Scored {season} week {week}: {week_result.games_scored} game(s), "
            f"{week_result.picks_changed} pick(s) changed"
        )
        return week_result

    @staticmethod
    def _apply(pick, game):
        """Write result and points onto a pick row; True when they changed"""
        outcome, points = score_pick_for_game(pick, game)
        if outcome is None:
            return False

        if pick.result == outcome and pick.points_earned == points:
            return False

        pick.result = outcome
        pick.points_earned = points
        return True
