from datetime import datetime, timezone

from cfb_pickem import db

PICK_SOURCES = ("authenticated", "anonymous")


class UserPickPreference(db.Model):
    """Admin's recorded choice of which pick source counts for a user

    A row with week NULL applies to the whole season; a week-specific row
    wins over it.
    """

    __tablename__ = "user_pick_preferences"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    season = db.Column(db.Integer, nullable=False)
    week = db.Column(db.Integer, nullable=True)

    preferred_source = db.Column(db.String(20), nullable=False)
    reasoning = db.Column(db.Text)
    set_by_admin = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint("user_id", "season", "week", name="unique_user_pick_preference"),
    )

    def __repr__(self):
        return f"<UserPickPreference user={self.user_id} {self.season}/{self.week} {self.preferred_source}>"

    @staticmethod
    def record(user_id, season, week, preferred_source, reasoning=None, set_by_admin=None):
        """Create or update a preference (caller commits)"""
        if preferred_source not in PICK_SOURCES:
            raise ValueError(f"Unknown pick source: {preferred_source}")

        preference = UserPickPreference.query.filter_by(
            user_id=user_id, season=season, week=week
        ).first()
        if preference is None:
            preference = UserPickPreference(user_id=user_id, season=season, week=week)
            db.session.add(preference)

        preference.preferred_source = preferred_source
        preference.reasoning = reasoning
        preference.set_by_admin = set_by_admin
        return preference

    @staticmethod
    def for_season(season):
        """{(user_id, week or None): preferred_source} for a season"""
        preferences = UserPickPreference.query.filter_by(season=season).all()
        return {(p.user_id, p.week): p.preferred_source for p in preferences}
