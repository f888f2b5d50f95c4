"""
Tests for writing scores onto stored picks.
"""

from cfb_pickem.models import AnonymousPick, Pick
from cfb_pickem.services.scoring_service import ScoringService


class TestScoreGame:
    def test_scores_both_sources(
        self, make_user, make_games, submit_authenticated, submit_anonymous, finish_game
    ):
        user = make_user("fan@x.com")
        games = make_games(2)
        submit_authenticated(user, games)
        submit_anonymous(games, pick_away=(0,))
        finish_game(games[0], 31, 21)

        result = ScoringService().score_game(games[0])

        assert result.scored
        assert result.picks_scored == 1
        assert result.anonymous_picks_scored == 1
        assert result.picks_changed == 2
        assert result.winner_against_spread == games[0].home_team

        pick = Pick.query.filter_by(game_id=games[0].id).one()
        assert (pick.result, pick.points_earned) == ("win", 40)
        anonymous = AnonymousPick.query.filter_by(game_id=games[0].id).one()
        assert (anonymous.result, anonymous.points_earned) == ("loss", 0)

    def test_rescoring_changes_nothing(
        self, make_user, make_games, submit_authenticated, finish_game
    ):
        user = make_user("fan@x.com")
        games = make_games(1)
        submit_authenticated(user, games)
        finish_game(games[0], 24, 21)
        service = ScoringService()

        first = service.score_game(games[0])
        second = service.score_game(games[0])

        assert first.picks_changed == 1
        assert second.scored
        assert second.picks_changed == 0
        pick = Pick.query.one()
        assert (pick.result, pick.points_earned) == ("loss", 0)

    def test_push(self, make_user, make_games, submit_authenticated, finish_game):
        user = make_user("fan@x.com")
        games = make_games(1, spread=-3)
        submit_authenticated(user, games)
        finish_game(games[0], 24, 21)

        ScoringService().score_game(games[0])

        assert (Pick.query.one().result, Pick.query.one().points_earned) == ("push", 10)

    def test_unfinished_game_is_left_alone(self, make_user, make_games, submit_authenticated):
        user = make_user("fan@x.com")
        games = make_games(1, status="in_progress")
        submit_authenticated(user, games)

        result = ScoringService().score_game(games[0])

        assert not result.scored
        assert result.skipped_reason == "Game status is in_progress"
        assert Pick.query.one().result is None

    def test_completed_game_without_score_is_skipped(
        self, make_user, make_games, submit_authenticated
    ):
        user = make_user("fan@x.com")
        games = make_games(1, status="completed")
        submit_authenticated(user, games)

        result = ScoringService().score_game(games[0])

        assert not result.scored
        assert result.success
        assert result.skipped_reason == "Completed game is missing a score"
        assert Pick.query.one().points_earned is None

    def test_score_game_by_id(self, make_games, finish_game):
        games = make_games(1)
        finish_game(games[0], 10, 3)

        assert ScoringService().score_game_by_id(games[0].id).scored
        assert ScoringService().score_game_by_id(999) is None


class TestScoreWeek:
    def test_scores_completed_games_only(
        self, make_user, make_games, submit_authenticated, finish_game
    ):
        user = make_user("fan@x.com")
        games = make_games(3)
        submit_authenticated(user, games)
        finish_game(games[0], 31, 21)
        finish_game(games[1], 14, 21)

        result = ScoringService().score_week(2025, 1)

        assert result.games_scored == 2
        assert result.picks_changed == 2
        assert result.errors == []
        points = {p.game_id: p.points_earned for p in Pick.query.all()}
        assert points == {games[0].id: 40, games[1].id: 0, games[2].id: None}
