from datetime import datetime, timezone

from sqlalchemy import func

from cfb_pickem import db
from cfb_pickem.utils.pick_sets import ANONYMOUS, PickRecord, group_pick_sets


class AnonymousPick(db.Model):
    """Pick submitted by email without signing in

    Counts for nobody until the conflict resolver assigns it to a user, and
    only shows on the leaderboard while show_on_leaderboard is set.
    """

    __tablename__ = "anonymous_picks"

    id = db.Column(db.Integer, primary_key=True)

    # Submitter
    email = db.Column(db.String(120), nullable=False)
    name = db.Column(db.String(100))

    # Pick identification
    game_id = db.Column(db.Integer, db.ForeignKey("games.id"), nullable=False)
    week = db.Column(db.Integer, nullable=False)
    season = db.Column(db.Integer, nullable=False)

    # Pick details
    selected_team = db.Column(db.String(100))
    is_lock = db.Column(db.Boolean, default=False, nullable=False)
    submitted_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Results (calculated after game completion)
    result = db.Column(db.String(10))
    points_earned = db.Column(db.Float)

    # Assignment state, owned by the conflict resolver
    assigned_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    show_on_leaderboard = db.Column(db.Boolean, default=False, nullable=False)
    validation_status = db.Column(
        db.String(30), default="pending_validation", nullable=False
    )
    processing_notes = db.Column(db.Text)

    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    assigned_user = db.relationship("User", foreign_keys=[assigned_user_id])

    __table_args__ = (
        db.Index("idx_anon_pick_season_week", "season", "week"),
        db.Index("idx_anon_pick_email", "email"),
        db.Index("idx_anon_pick_assigned", "assigned_user_id", "season", "week"),
        db.Index("idx_anon_pick_game", "game_id"),
    )

    def __repr__(self):
        return f"<AnonymousPick {self.email} game_id={self.game_id} team={self.selected_team}>"

    def to_record(self):
        """Normalize into the engine's PickRecord"""
        return PickRecord(
            id=self.id,
            source=ANONYMOUS,
            week=self.week,
            season=self.season,
            game_id=self.game_id,
            selected_team=self.selected_team,
            is_lock=bool(self.is_lock),
            submitted_at=self.submitted_at,
            email=self.email,
            display_name=self.name,
            result=self.result,
            points_earned=self.points_earned,
            assigned_user_id=self.assigned_user_id,
            show_on_leaderboard=bool(self.show_on_leaderboard),
            validation_status=self.validation_status,
            processing_notes=self.processing_notes,
        )

    @staticmethod
    def get_records(season, week=None, assigned_user_id=None, visible_only=False, email=None):
        query = AnonymousPick.query.filter(AnonymousPick.season == season)
        if week is not None:
            query = query.filter(AnonymousPick.week == week)
        if assigned_user_id is not None:
            query = query.filter(AnonymousPick.assigned_user_id == assigned_user_id)
        if visible_only:
            query = query.filter(AnonymousPick.show_on_leaderboard.is_(True))
        if email is not None:
            query = query.filter(func.lower(AnonymousPick.email) == email.lower().strip())
        return [
            pick.to_record()
            for pick in query.order_by(AnonymousPick.submitted_at, AnonymousPick.id).all()
        ]

    @staticmethod
    def load_pick_sets(season, week, expected_game_count=None, **filters):
        """Anonymous picks for a week grouped into pick sets"""
        return group_pick_sets(
            AnonymousPick.get_records(season, week=week, **filters), expected_game_count
        )

    @staticmethod
    def find_pick_set(season, week, key, expected_game_count=None):
        """Look up one pick set by its key, or None"""
        for pick_set in AnonymousPick.load_pick_sets(season, week, expected_game_count):
            if pick_set.key == key:
                return pick_set
        return None

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "game_id": self.game_id,
            "season": self.season,
            "week": self.week,
            "selected_team": self.selected_team,
            "is_lock": self.is_lock,
            "result": self.result,
            "points_earned": self.points_earned,
            "assigned_user_id": self.assigned_user_id,
            "show_on_leaderboard": self.show_on_leaderboard,
            "validation_status": self.validation_status,
            "processing_notes": self.processing_notes,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
        }
