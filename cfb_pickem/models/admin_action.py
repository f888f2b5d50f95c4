from datetime import datetime, timezone

from cfb_pickem import db


class AdminAction(db.Model):
    """Audit trail of pick set assignments and admin decisions"""

    __tablename__ = "admin_actions"

    id = db.Column(db.Integer, primary_key=True)

    # Action details
    admin_user_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=True
    )  # NULL for automatic assignments
    target_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    action_type = db.Column(
        db.String(50), nullable=False
    )  # 'assign_pick_set', 'keep_new', 'keep_existing', ...
    action_description = db.Column(db.String(500), nullable=False)

    # Pick set context
    season = db.Column(db.Integer)
    week = db.Column(db.Integer)
    pick_set_key = db.Column(db.String(255))

    action_metadata = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    admin_user = db.relationship("User", foreign_keys=[admin_user_id])
    target_user = db.relationship("User", foreign_keys=[target_user_id])

    __table_args__ = (
        db.Index("idx_admin_action_target", "target_user_id"),
        db.Index("idx_admin_action_type", "action_type"),
        db.Index("idx_admin_action_season_week", "season", "week"),
    )

    def __repr__(self):
        return f"<AdminAction {self.action_type} target={self.target_user_id} {self.pick_set_key}>"

    @staticmethod
    def log_action(
        action_type,
        description,
        target_user_id=None,
        admin_user_id=None,
        season=None,
        week=None,
        pick_set_key=None,
        action_metadata=None,
    ):
        """Add an audit row to the session (caller commits)"""
        action = AdminAction(
            admin_user_id=admin_user_id,
            target_user_id=target_user_id,
            action_type=action_type,
            action_description=description,
            season=season,
            week=week,
            pick_set_key=pick_set_key,
            action_metadata=action_metadata or {},
        )

        db.session.add(action)
        return action

    def to_dict(self):
        return {
            "id": self.id,
            "admin_user_id": self.admin_user_id,
            "target_user_id": self.target_user_id,
            "action_type": self.action_type,
            "action_description": self.action_description,
            "season": self.season,
            "week": self.week,
            "pick_set_key": self.pick_set_key,
            "action_metadata": self.action_metadata,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
