"""
Tests for against-the-spread scoring rules.
"""

import pytest

from cfb_pickem.models import Game
from cfb_pickem.utils.pick_sets import PickRecord
from cfb_pickem.utils.scoring import (
    LOSS,
    PUSH,
    WIN,
    against_the_spread,
    calculate_pick_result,
    score_pick_for_game,
)


def _game(home_score=None, away_score=None, spread=-3.5, status="completed"):
    return Game(
        season=2025,
        week=1,
        home_team="Alabama",
        away_team="Georgia",
        home_score=home_score,
        away_score=away_score,
        spread=spread,
        status=status,
    )


class TestCalculatePickResult:
    """ATS result and points for a single pick"""

    def test_favorite_wins_but_fails_to_cover(self):
        """Alabama -3.5 wins 24-21: Georgia covers"""
        assert calculate_pick_result("Georgia", "Alabama", "Georgia", 24, 21, -3.5) == (WIN, 20)
        assert calculate_pick_result("Alabama", "Alabama", "Georgia", 24, 21, -3.5) == (LOSS, 0)

    def test_lock_points(self):
        assert calculate_pick_result(
            "Georgia", "Alabama", "Georgia", 24, 21, -3.5, is_lock=True
        ) == (WIN, 40)
        assert calculate_pick_result(
            "Alabama", "Alabama", "Georgia", 24, 21, -3.5, is_lock=True
        ) == (LOSS, 0)

    @pytest.mark.parametrize("team", ["Alabama", "Georgia"])
    @pytest.mark.parametrize("is_lock", [True, False])
    def test_push_scores_ten_for_everyone(self, team, is_lock):
        """24 + (-3) == 21 is a push whichever side or lock flag"""
        assert calculate_pick_result(
            team, "Alabama", "Georgia", 24, 21, -3, is_lock=is_lock
        ) == (PUSH, 10)

    def test_spread_always_applies_to_home_score(self):
        """Home underdog +7 loses by 3 and still covers"""
        assert calculate_pick_result("Alabama", "Alabama", "Georgia", 17, 20, 7) == (WIN, 20)
        assert calculate_pick_result("Georgia", "Alabama", "Georgia", 17, 20, 7) == (LOSS, 0)

    def test_missing_spread_is_a_pickem(self):
        assert against_the_spread(21, 17, None) == (21, 17)
        assert calculate_pick_result("Alabama", "Alabama", "Georgia", 21, 17, None) == (WIN, 20)
        assert calculate_pick_result("Alabama", "Alabama", "Georgia", 17, 17, None) == (PUSH, 10)

    def test_unknown_team_loses(self):
        assert calculate_pick_result("Auburn", "Alabama", "Georgia", 24, 21, -3.5) == (LOSS, 0)


class TestScorePickForGame:
    """Scoring against a Game row"""

    def _pick(self, team, is_lock=False):
        return PickRecord(
            id=1,
            source="authenticated",
            week=1,
            season=2025,
            game_id=1,
            selected_team=team,
            is_lock=is_lock,
            submitted_at=None,
        )

    def test_not_completed_is_not_scored(self):
        game = _game(24, 21, status="in_progress")
        assert score_pick_for_game(self._pick("Georgia"), game) == (None, None)

    def test_missing_score_is_not_scored(self):
        game = _game(24, None)
        assert score_pick_for_game(self._pick("Georgia"), game) == (None, None)

    def test_completed_game(self):
        game = _game(24, 21)
        assert score_pick_for_game(self._pick("Georgia", is_lock=True), game) == (WIN, 40)

    def test_rescoring_is_identical(self):
        game = _game(24, 21)
        pick = self._pick("Alabama")
        assert score_pick_for_game(pick, game) == score_pick_for_game(pick, game)


class TestWinnerAgainstSpread:
    def test_away_covers(self):
        assert _game(24, 21).winner_against_spread == "Georgia"

    def test_home_covers(self):
        assert _game(31, 21).winner_against_spread == "Alabama"

    def test_push_has_no_winner(self):
        assert _game(24, 21, spread=-3).winner_against_spread is None

    def test_unfinished_game_has_no_winner(self):
        assert _game(24, 21, status="in_progress").winner_against_spread is None

    def test_update_score_reports_changes(self):
        game = _game(None, None, status="scheduled")
        assert game.update_score(7, 0, "in_progress") is True
        assert game.update_score(7, 0, "in_progress") is False
        with pytest.raises(ValueError):
            game.update_score(7, 0, "final")
