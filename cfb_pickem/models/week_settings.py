from datetime import datetime, timezone

from cfb_pickem import db


class WeekSettings(db.Model):
    """Per-week pool configuration"""

    __tablename__ = "week_settings"

    id = db.Column(db.Integer, primary_key=True)
    season = db.Column(db.Integer, nullable=False)
    week = db.Column(db.Integer, nullable=False)

    # Number of games in a complete pick set for the week
    games_count = db.Column(db.Integer)

    picks_open = db.Column(db.Boolean, default=False)

    # The week the live-update scheduler polls
    is_active = db.Column(db.Boolean, default=False)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.UniqueConstraint("season", "week", name="unique_season_week"),
    )

    def __repr__(self):
        return f"<WeekSettings {self.season} week {self.week}>"

    @staticmethod
    def expected_game_count(season, week):
        """Configured games for the week, falling back to the scheduled game count"""
        from .game import Game

        settings = WeekSettings.query.filter_by(season=season, week=week).first()
        if settings and settings.games_count:
            return settings.games_count

        count = Game.query.filter_by(season=season, week=week).count()
        return count or None

    @staticmethod
    def get_active_week(season):
        """Active week for a season, or None"""
        settings = (
            WeekSettings.query.filter_by(season=season, is_active=True)
            .order_by(WeekSettings.week.desc())
            .first()
        )
        return settings.week if settings else None

    def to_dict(self):
        return {
            "season": self.season,
            "week": self.week,
            "games_count": self.games_count,
            "picks_open": self.picks_open,
            "is_active": self.is_active,
        }
