from datetime import datetime, timezone

from cfb_pickem import db

PAID_STATUS = "Paid"


class LeagueSafePayment(db.Model):
    """Pool entry payment imported from LeagueSafe

    A user may only appear on the leaderboard for a season once a matched,
    paid row exists for them.
    """

    __tablename__ = "leaguesafe_payments"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    season = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(30), nullable=False, default="NotPaid")
    is_matched = db.Column(db.Boolean, default=False)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.Index("idx_payment_user_season", "user_id", "season"),
    )

    def __repr__(self):
        return f"<LeagueSafePayment user_id={self.user_id} season={self.season} {self.status}>"

    @property
    def is_paid(self):
        return self.status == PAID_STATUS and bool(self.is_matched)

    def to_dict(self):
        return {
            "user_id": self.user_id,
            "season": self.season,
            "status": self.status,
            "is_matched": self.is_matched,
            "is_paid": self.is_paid,
        }
