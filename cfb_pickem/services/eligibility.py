"""
Payment eligibility checks

A user may appear on the leaderboard for a season only when a paid and
matched LeagueSafe payment exists for them. Payments are sometimes matched
to a duplicate account created from the user's LeagueSafe email, so rows
owned by any account sharing one of the user's emails count too.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError

from cfb_pickem.errors import EligibilityLookupError
from cfb_pickem.models import LeagueSafePayment, User
from cfb_pickem.models.payment import PAID_STATUS

logger = logging.getLogger(__name__)


@dataclass
class EligibilityResult:
    user_id: int
    season: int
    is_paid: bool
    status: Optional[str] = None
    is_matched: bool = False

    def to_dict(self):
        return {
            "user_id": self.user_id,
            "season": self.season,
            "is_paid": self.is_paid,
            "status": self.status,
            "is_matched": self.is_matched,
        }


class PaymentEligibility:
    """Answers "has this user paid for this season?" from the payments table"""

    def check(self, user_id, season):
        """
        Check payment eligibility for one user.

        Args:
            user_id: User to check
            season: Season year

        Returns:
            EligibilityResult

        Raises:
            EligibilityLookupError: when the lookup itself fails
        """
        try:
            user = User.query.get(user_id)
            if user is None:
                return EligibilityResult(user_id=user_id, season=season, is_paid=False)

            payments = self._payments_for(user, season)
        except SQLAlchemyError as e:
            logger.error(f"Eligibility lookup failed for user {user_id}: {e}")
            raise EligibilityLookupError(
                f"Could not check payment status for user {user_id}: {e}"
            ) from e

        paid = next((p for p in payments if p.is_paid), None)
        if paid is not None:
            return EligibilityResult(
                user_id=user_id,
                season=season,
                is_paid=True,
                status=paid.status,
                is_matched=True,
            )

        latest = payments[0] if payments else None
        return EligibilityResult(
            user_id=user_id,
            season=season,
            is_paid=False,
            status=latest.status if latest else None,
            is_matched=bool(latest.is_matched) if latest else False,
        )

    def _payments_for(self, user, season):
        owner_ids = {user.id}
        emails = list(user.known_emails)
        linked = User.query.filter(
            or_(
                func.lower(User.email).in_(emails),
                func.lower(User.leaguesafe_email).in_(emails),
            )
        ).all()
        owner_ids.update(u.id for u in linked)

        return (
            LeagueSafePayment.query.filter(
                LeagueSafePayment.user_id.in_(owner_ids),
                LeagueSafePayment.season == season,
            )
            .order_by(LeagueSafePayment.created_at.desc(), LeagueSafePayment.id.desc())
            .all()
        )

    def eligible_user_ids(self, season):
        """
        Ids of every payment-eligible user for a season.

        Raises:
            EligibilityLookupError: when the lookup fails
        """
        try:
            paid_owner_ids = {
                row.user_id
                for row in LeagueSafePayment.query.filter(
                    LeagueSafePayment.season == season,
                    LeagueSafePayment.status == PAID_STATUS,
                    LeagueSafePayment.is_matched.is_(True),
                    LeagueSafePayment.user_id.isnot(None),
                ).all()
            }
            if not paid_owner_ids:
                return set()

            users = User.query.all()
        except SQLAlchemyError as e:
            logger.error(f"Eligibility lookup failed for season {season}: {e}")
            raise EligibilityLookupError(
                f"Could not load payment status for season {season}: {e}"
            ) from e

        paid_emails = set()
        for user in users:
            if user.id in paid_owner_ids:
                paid_emails.update(user.known_emails)

        return {
            user.id
            for user in users
            if user.id in paid_owner_ids or user.known_emails & paid_emails
        }

