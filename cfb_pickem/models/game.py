from datetime import datetime, timezone

from cfb_pickem import db
from cfb_pickem.utils.scoring import against_the_spread

GAME_STATUSES = ("scheduled", "in_progress", "completed")


class Game(db.Model):
    __tablename__ = "games"

    id = db.Column(db.Integer, primary_key=True)

    # Game identification
    season = db.Column(db.Integer, nullable=False)
    week = db.Column(db.Integer, nullable=False)

    # Teams
    home_team = db.Column(db.String(100), nullable=False)
    away_team = db.Column(db.String(100), nullable=False)

    # Game timing
    game_time = db.Column(db.DateTime)

    # Scores
    home_score = db.Column(db.Integer)
    away_score = db.Column(db.Integer)

    # Point spread relative to the home team (negative = home team favored)
    spread = db.Column(db.Float)

    status = db.Column(db.String(20), nullable=False, default="scheduled")

    # External ID from the score feed
    external_id = db.Column(db.String(50), unique=True, index=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    picks = db.relationship(
        "Pick", backref="game", lazy="dynamic", cascade="all, delete-orphan"
    )
    anonymous_picks = db.relationship(
        "AnonymousPick", backref="game", lazy="dynamic", cascade="all, delete-orphan"
    )

    # Indexes
    __table_args__ = (
        db.Index("idx_game_season_week", "season", "week"),
        db.CheckConstraint("home_team != away_team", name="different_teams"),
    )

    def __repr__(self):
        return f"<Game {self.away_team} @ {self.home_team} Week {self.week}>"

    @property
    def is_completed(self):
        return self.status == "completed"

    @property
    def has_final_score(self):
        return self.home_score is not None and self.away_score is not None

    @property
    def winner_against_spread(self):
        """Team that covered, or None for a push / unfinished game"""
        if not self.is_completed or not self.has_final_score:
            return None

        home_ats, away_ats = against_the_spread(
            self.home_score, self.away_score, self.spread
        )
        if home_ats > away_ats:
            return self.home_team
        if home_ats < away_ats:
            return self.away_team
        return None

    def update_score(self, home_score, away_score, status):
        """Apply a score update from the score feed

        Returns True when anything changed.
        """
        if status not in GAME_STATUSES:
            raise ValueError(f"Unknown game status: {status}")

        changed = (
            self.home_score != home_score
            or self.away_score != away_score
            or self.status != status
        )
        self.home_score = home_score
        self.away_score = away_score
        self.status = status
        return changed

    @staticmethod
    def get_games_for_week(season, week):
        """Get all games for a specific week"""
        return (
            Game.query.filter_by(season=season, week=week)
            .order_by(Game.game_time, Game.id)
            .all()
        )

    def to_dict(self):
        """Convert game to dictionary for API responses"""
        return {
            "id": self.id,
            "season": self.season,
            "week": self.week,
            "home_team": self.home_team,
            "away_team": self.away_team,
            "game_time": self.game_time.isoformat() if self.game_time else None,
            "home_score": self.home_score,
            "away_score": self.away_score,
            "spread": self.spread,
            "status": self.status,
            "winner_against_spread": self.winner_against_spread,
        }
