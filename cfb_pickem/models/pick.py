from datetime import datetime, timezone

from cfb_pickem import db
from cfb_pickem.utils.pick_sets import AUTHENTICATED, PickRecord, group_pick_sets


class Pick(db.Model):
    """Pick submitted by a signed-in user"""

    __tablename__ = "picks"

    id = db.Column(db.Integer, primary_key=True)

    # Pick identification
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    game_id = db.Column(db.Integer, db.ForeignKey("games.id"), nullable=False)
    week = db.Column(db.Integer, nullable=False)
    season = db.Column(db.Integer, nullable=False)

    # Pick details
    selected_team = db.Column(db.String(100), nullable=False)
    is_lock = db.Column(db.Boolean, default=False, nullable=False)
    submitted_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Results (calculated after game completion)
    result = db.Column(db.String(10))
    points_earned = db.Column(db.Float)

    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Constraints and indexes
    __table_args__ = (
        db.UniqueConstraint("user_id", "game_id", name="unique_user_game_pick"),
        db.Index("idx_pick_user_season_week", "user_id", "season", "week"),
        db.Index("idx_pick_game", "game_id"),
    )

    def __repr__(self):
        return f"<Pick user_id={self.user_id} game_id={self.game_id} team={self.selected_team}>"

    def to_record(self):
        """Normalize into the engine's PickRecord"""
        return PickRecord(
            id=self.id,
            source=AUTHENTICATED,
            week=self.week,
            season=self.season,
            game_id=self.game_id,
            selected_team=self.selected_team,
            is_lock=bool(self.is_lock),
            submitted_at=self.submitted_at,
            user_id=self.user_id,
            email=self.user.email if self.user else None,
            display_name=self.user.name if self.user else None,
            result=self.result,
            points_earned=self.points_earned,
            show_on_leaderboard=True,
        )

    @staticmethod
    def get_records(season, week=None, user_id=None):
        """PickRecords for a season, optionally narrowed to a week and user"""
        from sqlalchemy.orm import joinedload

        query = Pick.query.options(joinedload(Pick.user)).filter(Pick.season == season)
        if week is not None:
            query = query.filter(Pick.week == week)
        if user_id is not None:
            query = query.filter(Pick.user_id == user_id)
        return [pick.to_record() for pick in query.order_by(Pick.submitted_at, Pick.id).all()]

    @staticmethod
    def load_pick_sets(season, week, user_id=None, expected_game_count=None):
        """Authenticated picks for a week grouped into pick sets"""
        return group_pick_sets(
            Pick.get_records(season, week=week, user_id=user_id), expected_game_count
        )

    def to_dict(self):
        """Convert pick to dictionary for API responses"""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "game_id": self.game_id,
            "season": self.season,
            "week": self.week,
            "selected_team": self.selected_team,
            "is_lock": self.is_lock,
            "result": self.result,
            "points_earned": self.points_earned,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
        }
