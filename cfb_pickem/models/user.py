from datetime import datetime, timezone

from sqlalchemy import func

from cfb_pickem import db


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)

    # Email registered with LeagueSafe, when it differs from the login email
    leaguesafe_email = db.Column(db.String(120), index=True)

    # Profile information
    display_name = db.Column(db.String(100))

    # Account status
    is_active = db.Column(db.Boolean, default=True)
    is_admin = db.Column(db.Boolean, default=False)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    picks = db.relationship(
        "Pick", backref="user", lazy="dynamic", cascade="all, delete-orphan"
    )
    payments = db.relationship(
        "LeagueSafePayment", backref="user", lazy="dynamic", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<User {self.email}>"

    @property
    def name(self):
        """Name shown on leaderboards"""
        return self.display_name or self.email.split("@")[0]

    @property
    def known_emails(self):
        """All normalized emails that identify this user"""
        emails = {self.email.lower().strip()}
        if self.leaguesafe_email:
            emails.add(self.leaguesafe_email.lower().strip())
        return emails

    @staticmethod
    def find_by_email(email):
        """Find the user owning an email (login or LeagueSafe), case-insensitive"""
        if not email:
            return None

        normalized = email.lower().strip()
        user = User.query.filter(func.lower(User.email) == normalized).first()
        if user:
            return user

        return User.query.filter(func.lower(User.leaguesafe_email) == normalized).first()

    def to_dict(self):
        """Convert user to dictionary for API responses"""
        return {
            "id": self.id,
            "email": self.email,
            "display_name": self.name,
            "is_active": self.is_active,
        }
