"""
Builds season and weekly leaderboards from stored picks

Reads only: picks of both sources, user names, admin source preferences and
payment status are loaded and handed to the pure aggregation in
utils.leaderboard.
"""

import logging

from flask import current_app

from cfb_pickem.errors import EligibilityLookupError
from cfb_pickem.models import AnonymousPick, Pick, User, UserPickPreference
from cfb_pickem.services.eligibility import PaymentEligibility
from cfb_pickem.utils.leaderboard import SEASON_TO_DATE, build_leaderboard_rows

logger = logging.getLogger(__name__)


def previous_scored_week(records):
    """Latest week with scored picks before the latest scored week, or None"""
    scored_weeks = sorted({r.week for r in records if r.result is not None})
    if len(scored_weeks) < 2:
        return None
    return scored_weeks[-2]


class LeaderboardService:
    def __init__(self, eligibility=None, require_payment=None):
        self.eligibility = eligibility or PaymentEligibility()
        if require_payment is None:
            require_payment = current_app.config.get("LEADERBOARD_REQUIRE_PAYMENT", True)
        self.require_payment = require_payment
        self.eligibility_error = None

    def build_leaderboard(self, season, week=SEASON_TO_DATE):
        """
        Build the ranked leaderboard for a season or a single week.

        Args:
            season: Season year
            week: Week number, or "season-to-date"

        Returns:
            Ordered list of LeaderboardRow. Ranks are competition ranks and
            may skip numbers after ties. When payment status could not be
            loaded the list is empty and eligibility_error holds the reason.
        """
        self.eligibility_error = None
        records = self.load_records(season)
        eligible = self._eligible_user_ids(season)
        display_names = self._display_names(records)
        preferences = UserPickPreference.for_season(season)

        if week != SEASON_TO_DATE:
            return build_leaderboard_rows(
                records,
                display_names=display_names,
                preferences=preferences,
                week=week,
                eligible_user_ids=eligible,
            )

        previous_ranks = {}
        through = previous_scored_week(records)
        if through is not None:
            previous_rows = build_leaderboard_rows(
                records,
                display_names=display_names,
                preferences=preferences,
                through_week=through,
                eligible_user_ids=eligible,
            )
            previous_ranks = {row.user_id: row.rank for row in previous_rows}

        return build_leaderboard_rows(
            records,
            display_names=display_names,
            preferences=preferences,
            previous_ranks=previous_ranks,
            eligible_user_ids=eligible,
        )

    def load_records(self, season):
        """All authenticated picks plus visible assigned anonymous picks"""
        return Pick.get_records(season) + [
            record
            for record in AnonymousPick.get_records(season, visible_only=True)
            if record.assigned_user_id is not None
        ]

    def _display_names(self, records):
        user_ids = {r.owner_id for r in records if r.owner_id is not None}
        if not user_ids:
            return {}
        users = User.query.filter(User.id.in_(user_ids)).all()
        return {user.id: user.name for user in users}

    def _eligible_user_ids(self, season):
        if not self.require_payment:
            return None
        try:
            return self.eligibility.eligible_user_ids(season)
        except EligibilityLookupError as e:
            # Unknown payment status counts as unpaid
            logger.error(f"Leaderboard built without eligible users: {e}")
            self.eligibility_error = str(e)
            return set()
