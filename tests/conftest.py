"""
Pytest fixtures and configuration for all tests.
"""

from datetime import datetime, timedelta

import pytest

from cfb_pickem import create_app, db
from cfb_pickem.models import (
    AnonymousPick,
    Game,
    LeagueSafePayment,
    Pick,
    User,
    WeekSettings,
)
from cfb_pickem.utils.pick_sets import ANONYMOUS, AUTHENTICATED, PickRecord

SEASON = 2025
SUBMITTED = datetime(2025, 9, 6, 10, 15, 2)


@pytest.fixture
def app():
    """Application with a fresh in-memory database."""
    app = create_app("testing")
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_headers():
    return {"X-Admin-Token": "test-admin-token"}


# ----------------------------------------------------------------------
# Pure record factory (no database)
# ----------------------------------------------------------------------


@pytest.fixture
def make_record():
    """Build PickRecords for the pure grouping/leaderboard functions."""
    counter = {"id": 0}

    def _make(
        game_id,
        selected_team="Home",
        source=ANONYMOUS,
        email="a@x.com",
        name="Alice",
        user_id=None,
        week=1,
        season=SEASON,
        is_lock=False,
        submitted_at=SUBMITTED,
        **kwargs,
    ):
        counter["id"] += 1
        return PickRecord(
            id=kwargs.pop("id", counter["id"]),
            source=source,
            week=week,
            season=season,
            game_id=game_id,
            selected_team=selected_team,
            is_lock=is_lock,
            submitted_at=submitted_at,
            user_id=user_id if source == AUTHENTICATED else None,
            email=email,
            display_name=name,
            **kwargs,
        )

    return _make


# ----------------------------------------------------------------------
# Database factories
# ----------------------------------------------------------------------


@pytest.fixture
def make_user(app):
    def _make(email, display_name=None, leaguesafe_email=None, paid=False, season=SEASON):
        user = User(email=email, display_name=display_name, leaguesafe_email=leaguesafe_email)
        db.session.add(user)
        db.session.flush()
        if paid:
            db.session.add(
                LeagueSafePayment(user_id=user.id, season=season, status="Paid", is_matched=True)
            )
        db.session.commit()
        return user

    return _make


@pytest.fixture
def make_games(app):
    """Create n games for a week and configure the week's game count."""

    def _make(n, week=1, season=SEASON, spread=-3.5, status="scheduled", configure=True):
        games = []
        for i in range(n):
            game = Game(
                season=season,
                week=week,
                home_team=f"Home {week}-{i}",
                away_team=f"Away {week}-{i}",
                spread=spread,
                status=status,
                game_time=datetime(2025, 9, 6, 12, 0) + timedelta(days=7 * (week - 1)),
                external_id=f"{season}-{week}-{i}",
            )
            db.session.add(game)
            games.append(game)
        if configure:
            db.session.add(WeekSettings(season=season, week=week, games_count=n, is_active=True))
        db.session.commit()
        return games

    return _make


@pytest.fixture
def submit_anonymous(app):
    """Insert an anonymous pick set: one row per game, home team picked."""

    def _submit(
        games,
        email="fan@x.com",
        name="Fan",
        submitted_at=SUBMITTED,
        lock_index=0,
        pick_away=(),
        **fields,
    ):
        rows = []
        for index, game in enumerate(games):
            row = AnonymousPick(
                email=email,
                name=name,
                game_id=game.id,
                week=game.week,
                season=game.season,
                selected_team=game.away_team if index in pick_away else game.home_team,
                is_lock=index == lock_index,
                submitted_at=submitted_at + timedelta(seconds=index),
                **fields,
            )
            db.session.add(row)
            rows.append(row)
        db.session.commit()
        return rows

    return _submit


@pytest.fixture
def submit_authenticated(app):
    """Insert authenticated picks for a user: one per game, home team picked."""

    def _submit(user, games, submitted_at=SUBMITTED, lock_index=0, pick_away=()):
        rows = []
        for index, game in enumerate(games):
            row = Pick(
                user_id=user.id,
                game_id=game.id,
                week=game.week,
                season=game.season,
                selected_team=game.away_team if index in pick_away else game.home_team,
                is_lock=index == lock_index,
                submitted_at=submitted_at,
            )
            db.session.add(row)
            rows.append(row)
        db.session.commit()
        return rows

    return _submit


@pytest.fixture
def finish_game(app):
    """Mark a game completed with a final score."""

    def _finish(game, home_score, away_score):
        game.home_score = home_score
        game.away_score = away_score
        game.status = "completed"
        db.session.commit()
        return game

    return _finish
