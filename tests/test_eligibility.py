"""
Tests for LeagueSafe payment eligibility.
"""

import pytest
from sqlalchemy.exc import OperationalError

from cfb_pickem import db
from cfb_pickem.errors import EligibilityLookupError
from cfb_pickem.models import LeagueSafePayment
from cfb_pickem.services.eligibility import PaymentEligibility

SEASON = 2025


class TestCheck:
    def test_paid_and_matched(self, make_user):
        user = make_user("fan@x.com", paid=True)

        result = PaymentEligibility().check(user.id, SEASON)

        assert result.is_paid
        assert result.status == "Paid"

    def test_no_payment(self, make_user):
        user = make_user("fan@x.com")

        result = PaymentEligibility().check(user.id, SEASON)

        assert not result.is_paid
        assert result.status is None

    def test_unmatched_payment_does_not_count(self, make_user):
        user = make_user("fan@x.com")
        db.session.add(
            LeagueSafePayment(user_id=user.id, season=SEASON, status="Paid", is_matched=False)
        )
        db.session.commit()

        result = PaymentEligibility().check(user.id, SEASON)

        assert not result.is_paid
        assert result.status == "Paid"
        assert not result.is_matched

    def test_other_season_does_not_count(self, make_user):
        user = make_user("fan@x.com", paid=True, season=2024)

        assert not PaymentEligibility().check(user.id, SEASON).is_paid

    def test_payment_on_linked_account(self, make_user):
        """Payment matched to an account created from the LeagueSafe email"""
        user = make_user("fan@x.com", leaguesafe_email="Pool@Y.com")
        make_user("pool@y.com", paid=True)

        assert PaymentEligibility().check(user.id, SEASON).is_paid

    def test_unknown_user(self, app):
        assert not PaymentEligibility().check(12345, SEASON).is_paid

    def test_lookup_failure_raises(self, make_user, monkeypatch):
        user = make_user("fan@x.com", paid=True)
        eligibility = PaymentEligibility()

        def broken(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("connection lost"))

        monkeypatch.setattr(eligibility, "_payments_for", broken)

        with pytest.raises(EligibilityLookupError):
            eligibility.check(user.id, SEASON)


class TestEligibleUserIds:
    def test_paid_users_and_linked_accounts(self, make_user):
        paid = make_user("one@x.com", paid=True)
        linked = make_user("two@x.com", leaguesafe_email="one@x.com")
        make_user("three@x.com")

        assert PaymentEligibility().eligible_user_ids(SEASON) == {paid.id, linked.id}

    def test_nobody_paid(self, make_user):
        make_user("one@x.com")

        assert PaymentEligibility().eligible_user_ids(SEASON) == set()
