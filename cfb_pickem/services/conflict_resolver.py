"""
Anonymous pick set assignment

Anonymous pick sets count for nobody until they are assigned to a user.
Assignment gathers the pick sets already counting for the user that week,
then either assigns straight away (auto mode, or no conflicts) or hands the
conflict to an admin (manual mode). Every set is assigned in its own
transaction: the user row is locked, existing sets are re-read inside the
transaction and all of the set's rows are updated in one statement whose row
count is checked. Any failure rolls the whole set back for a retry.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from cfb_pickem import db
from cfb_pickem.errors import (
    EligibilityLookupError,
    PartialAssignmentError,
    PickSetLookupError,
)
from cfb_pickem.models import (
    AdminAction,
    AnonymousPick,
    Pick,
    User,
    UserPickPreference,
    WeekSettings,
)
from cfb_pickem.services.eligibility import PaymentEligibility
from cfb_pickem.utils.cache_utils import invalidate_leaderboard_cache
from cfb_pickem.utils.pick_sets import ANONYMOUS, AUTHENTICATED

logger = logging.getLogger(__name__)

AUTO = "auto"
MANUAL = "manual"
MODES = (AUTO, MANUAL)

KEEP_NEW = "new"
KEEP_EXISTING = "existing"

PENDING = "pending_validation"
AUTO_VALIDATED = "auto_validated"
MANUALLY_VALIDATED = "manually_validated"
DUPLICATE_CONFLICT = "duplicate_conflict"


@dataclass
class PickSetConflict:
    """A pick set already counting for the target user"""

    pick_set: object

    @property
    def source(self):
        return self.pick_set.source

    def to_dict(self):
        return self.pick_set.to_dict(include_picks=True)


@dataclass
class AssignmentOutcome:
    pick_set_key: str
    target_user_id: Optional[int]
    mode: str
    success: bool = False
    assigned: bool = False
    show_on_leaderboard: bool = False
    validation_status: Optional[str] = None
    has_conflicts: bool = False
    requires_decision: bool = False
    conflicts: List[PickSetConflict] = field(default_factory=list)
    eligibility_error: Optional[str] = None
    error: Optional[str] = None
    retryable: bool = False
    updated_count: int = 0
    notes: List[str] = field(default_factory=list)

    def fail(self, error, retryable=False):
        self.success = False
        self.assigned = False
        self.show_on_leaderboard = False
        self.error = error
        self.retryable = retryable
        return self

    def to_dict(self):
        return {
            "pick_set_key": self.pick_set_key,
            "target_user_id": self.target_user_id,
            "mode": self.mode,
            "success": self.success,
            "assigned": self.assigned,
            "show_on_leaderboard": self.show_on_leaderboard,
            "validation_status": self.validation_status,
            "has_conflicts": self.has_conflicts,
            "requires_decision": self.requires_decision,
            "conflicts": [c.to_dict() for c in self.conflicts],
            "eligibility_error": self.eligibility_error,
            "error": self.error,
            "retryable": self.retryable,
            "updated_count": self.updated_count,
            "notes": list(self.notes),
        }


class ConflictResolver:
    """Assigns anonymous pick sets to users"""

    def __init__(self, eligibility=None, allow_incomplete_auto_assign=None):
        self.eligibility = eligibility or PaymentEligibility()
        if allow_incomplete_auto_assign is None:
            allow_incomplete_auto_assign = current_app.config.get(
                "ALLOW_INCOMPLETE_AUTO_ASSIGN", False
            )
        self.allow_incomplete_auto_assign = allow_incomplete_auto_assign

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def resolve_primary_user_id(self, email):
        """Map a submitter email to a user id (login or LeagueSafe email)"""
        user = User.find_by_email(email)
        return user.id if user else None

    def find_existing_sets(self, target_user_id, season, week, exclude_key=None):
        """
        Pick sets already counting for a user in a week.

        Authenticated sets, plus anonymous sets assigned to the user and shown
        on the leaderboard.

        Raises:
            PickSetLookupError: when the sets cannot be read
        """
        try:
            expected = WeekSettings.expected_game_count(season, week)
            authenticated = Pick.load_pick_sets(
                season, week, user_id=target_user_id, expected_game_count=expected
            )
            anonymous = AnonymousPick.load_pick_sets(
                season,
                week,
                expected_game_count=expected,
                assigned_user_id=target_user_id,
                visible_only=True,
            )
        except SQLAlchemyError as e:
            logger.error(
                f"Could not load existing pick sets for user {target_user_id} "
                f"({season} week {week}): {e}"
            )
            raise PickSetLookupError(
                f"No conflict data available for user {target_user_id}: {e}"
            ) from e

        anonymous = [ps for ps in anonymous if ps.key != exclude_key]
        return authenticated + anonymous

    # ------------------------------------------------------------------
    # Assignment
    # ------------------------------------------------------------------

    def resolve_assignment(self, pick_set, target_user_id, mode=AUTO, admin_user_id=None):
        """
        Assign an anonymous pick set to a user.

        Args:
            pick_set: anonymous PickSet to assign
            target_user_id: user the set belongs to
            mode: "auto" assigns despite conflicts, "manual" returns them for
                an admin decision without changing anything
            admin_user_id: admin performing a manual assignment, for the audit row

        Returns:
            AssignmentOutcome
        """
        if mode not in MODES:
            raise ValueError(f"Unknown assignment mode: {mode}")

        outcome = AssignmentOutcome(
            pick_set_key=pick_set.key, target_user_id=target_user_id, mode=mode
        )

        if pick_set.is_authenticated:
            return outcome.fail("Authenticated pick sets are owned by their submitter")

        if mode == AUTO and not pick_set.is_complete and not self.allow_incomplete_auto_assign:
            return self._hold_incomplete(pick_set, outcome)

        try:
            if not self._lock_user(target_user_id):
                db.session.rollback()
                return outcome.fail(f"User {target_user_id} not found")

            try:
                existing = self.find_existing_sets(
                    target_user_id, pick_set.season, pick_set.week, exclude_key=pick_set.key
                )
            except PickSetLookupError as e:
                db.session.rollback()
                return outcome.fail(str(e), retryable=True)

            outcome.conflicts = [PickSetConflict(ps) for ps in existing]
            outcome.has_conflicts = bool(existing)

            if existing and mode == MANUAL:
                db.session.rollback()
                outcome.success = True
                outcome.requires_decision = True
                outcome.validation_status = pick_set.validation_status
                outcome.notes.append(
                    f"{len(existing)} existing pick set(s) for this week; "
                    "choose which submission to keep"
                )
                return outcome

            visible = self._eligible(target_user_id, pick_set.season, outcome)
            status = AUTO_VALIDATED if mode == AUTO else MANUALLY_VALIDATED

            if existing:
                sources = sorted({c.source for c in outcome.conflicts})
                outcome.notes.append(
                    f"Assigned alongside {len(existing)} existing pick set(s) "
                    f"({', '.join(sources)}); authenticated picks take precedence"
                )
            if not pick_set.is_complete:
                outcome.notes.append(
                    f"Incomplete: {pick_set.pick_count} of {pick_set.expected_game_count} picks"
                )
            if outcome.eligibility_error:
                outcome.notes.append("Hidden from leaderboard: payment status unknown")
            elif not visible:
                outcome.notes.append("Hidden from leaderboard: payment not confirmed")

            outcome.updated_count = self._update_pick_set(
                pick_set,
                assigned_user_id=target_user_id,
                show_on_leaderboard=visible,
                validation_status=status,
                processing_notes="; ".join(outcome.notes) or None,
            )

            AdminAction.log_action(
                action_type="assign_pick_set",
                description=(
                    f"Assigned {pick_set.label} week {pick_set.week} picks "
                    f"to user {target_user_id} ({mode})"
                ),
                target_user_id=target_user_id,
                admin_user_id=admin_user_id,
                season=pick_set.season,
                week=pick_set.week,
                pick_set_key=pick_set.key,
                action_metadata={
                    "mode": mode,
                    "show_on_leaderboard": visible,
                    "has_conflicts": outcome.has_conflicts,
                    "pick_ids": pick_set.pick_ids,
                },
            )

            db.session.commit()

        except PartialAssignmentError as e:
            db.session.rollback()
            logger.warning(f"Rolled back assignment of {pick_set.key}: {e}")
            return outcome.fail(str(e), retryable=True)
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Database error assigning {pick_set.key}: {e}")
            return outcome.fail(f"Database error: {e}", retryable=True)

        outcome.success = True
        outcome.assigned = True
        outcome.show_on_leaderboard = visible
        outcome.validation_status = status
        invalidate_leaderboard_cache()

        logger.info(
            f"Assigned pick set {pick_set.key} to user {target_user_id} "
            f"(mode={mode}, visible={visible}, conflicts={len(existing)})"
        )
        return outcome

    def apply_decision(
        self, pick_set, target_user_id, keep, admin_user_id=None, reasoning=None
    ):
        """
        Apply an admin's choice after a manual-mode conflict.

        keep="new" makes the new set the counting one: it is assigned and
        shown (when the user has paid), other visible anonymous sets are
        hidden. keep="existing" assigns the new set but hides it, so it is
        not offered as unassigned again. When an authenticated submission is
        involved the choice is stored as the user's pick source preference
        for the week.

        Returns:
            AssignmentOutcome
        """
        if keep not in (KEEP_NEW, KEEP_EXISTING):
            raise ValueError(f"Unknown decision: {keep}")

        outcome = AssignmentOutcome(
            pick_set_key=pick_set.key, target_user_id=target_user_id, mode=MANUAL
        )

        if pick_set.is_authenticated:
            return outcome.fail("Authenticated pick sets are owned by their submitter")

        try:
            if not self._lock_user(target_user_id):
                db.session.rollback()
                return outcome.fail(f"User {target_user_id} not found")

            try:
                existing = self.find_existing_sets(
                    target_user_id, pick_set.season, pick_set.week, exclude_key=pick_set.key
                )
            except PickSetLookupError as e:
                db.session.rollback()
                return outcome.fail(str(e), retryable=True)

            outcome.conflicts = [PickSetConflict(ps) for ps in existing]
            outcome.has_conflicts = bool(existing)
            has_authenticated = any(ps.is_authenticated for ps in existing)
            note = f"Admin kept {keep} submission"
            if reasoning:
                note = f"{note}: {reasoning}"

            if keep == KEEP_NEW:
                visible = self._eligible(target_user_id, pick_set.season, outcome)
                status = MANUALLY_VALIDATED
                for losing in existing:
                    if not losing.is_authenticated:
                        self._update_pick_set(
                            losing,
                            show_on_leaderboard=False,
                            validation_status=DUPLICATE_CONFLICT,
                            processing_notes=f"Replaced by {pick_set.key}",
                        )
                preferred = ANONYMOUS
            else:
                visible = False
                status = DUPLICATE_CONFLICT
                preferred = AUTHENTICATED

            outcome.notes.append(note)
            if keep == KEEP_NEW and not visible:
                outcome.notes.append("Hidden from leaderboard: payment not confirmed")

            outcome.updated_count = self._update_pick_set(
                pick_set,
                assigned_user_id=target_user_id,
                show_on_leaderboard=visible,
                validation_status=status,
                processing_notes="; ".join(outcome.notes),
            )

            if has_authenticated:
                UserPickPreference.record(
                    target_user_id,
                    pick_set.season,
                    pick_set.week,
                    preferred,
                    reasoning=reasoning or note,
                    set_by_admin=admin_user_id,
                )

            AdminAction.log_action(
                action_type=f"keep_{keep}",
                description=(
                    f"Kept {keep} submission for user {target_user_id} "
                    f"week {pick_set.week} ({pick_set.label})"
                ),
                target_user_id=target_user_id,
                admin_user_id=admin_user_id,
                season=pick_set.season,
                week=pick_set.week,
                pick_set_key=pick_set.key,
                action_metadata={
                    "keep": keep,
                    "reasoning": reasoning,
                    "existing_sets": [ps.key for ps in existing],
                    "preferred_source": preferred if has_authenticated else None,
                },
            )

            db.session.commit()

        except PartialAssignmentError as e:
            db.session.rollback()
            logger.warning(f"Rolled back decision for {pick_set.key}: {e}")
            return outcome.fail(str(e), retryable=True)
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Database error applying decision for {pick_set.key}: {e}")
            return outcome.fail(f"Database error: {e}", retryable=True)

        outcome.success = True
        outcome.assigned = True
        outcome.show_on_leaderboard = visible
        outcome.validation_status = status
        invalidate_leaderboard_cache()

        logger.info(f"Applied decision keep={keep} for {pick_set.key} (user {target_user_id})")
        return outcome

    def auto_assign_week(self, season, week):
        """
        Auto-assign every unassigned anonymous pick set of a week whose email
        belongs to a known user.

        Sets left partly assigned by an earlier failure are retried.

        Returns:
            dict of counts plus the individual outcomes
        """
        expected = WeekSettings.expected_game_count(season, week)
        pick_sets = AnonymousPick.load_pick_sets(season, week, expected_game_count=expected)

        summary = {
            "season": season,
            "week": week,
            "processed": 0,
            "assigned": 0,
            "with_conflicts": 0,
            "held_incomplete": 0,
            "unmatched": [],
            "failed": 0,
            "outcomes": [],
        }

        for pick_set in pick_sets:
            if all(p.assigned_user_id is not None for p in pick_set.all_picks):
                continue

            summary["processed"] += 1
            user_id = self.resolve_primary_user_id(pick_set.email)
            if user_id is None:
                summary["unmatched"].append(pick_set.email)
                continue

            outcome = self.resolve_assignment(pick_set, user_id, mode=AUTO)
            summary["outcomes"].append(outcome.to_dict())

            if outcome.assigned:
                summary["assigned"] += 1
                if outcome.has_conflicts:
                    summary["with_conflicts"] += 1
            elif not outcome.success:
                summary["failed"] += 1
            elif outcome.validation_status == PENDING:
                summary["held_incomplete"] += 1

        logger.info(
            f"Auto-assign {season} week {week}: {summary['assigned']} assigned, "
            f"{summary['held_incomplete']} held, {len(summary['unmatched'])} unmatched, "
            f"{summary['failed']} failed"
        )
        return summary

    def validation_summary(self, season, week):
        """Anonymous pick counts by validation and assignment state"""
        base = AnonymousPick.query.filter(
            AnonymousPick.season == season, AnonymousPick.week == week
        )

        by_status = dict(
            base.with_entities(AnonymousPick.validation_status, func.count(AnonymousPick.id))
            .group_by(AnonymousPick.validation_status)
            .all()
        )

        unassigned = base.filter(AnonymousPick.assigned_user_id.is_(None)).count()
        on_leaderboard = base.filter(AnonymousPick.show_on_leaderboard.is_(True)).count()
        assigned_hidden = base.filter(
            AnonymousPick.assigned_user_id.isnot(None),
            AnonymousPick.show_on_leaderboard.is_(False),
        ).count()

        expected = WeekSettings.expected_game_count(season, week)
        pick_sets = AnonymousPick.load_pick_sets(season, week, expected_game_count=expected)

        return {
            "season": season,
            "week": week,
            "total": base.count(),
            "by_status": {status: by_status.get(status, 0) for status in (
                PENDING, AUTO_VALIDATED, MANUALLY_VALIDATED, DUPLICATE_CONFLICT
            )},
            "unassigned": unassigned,
            "assigned_hidden": assigned_hidden,
            "on_leaderboard": on_leaderboard,
            "pick_sets": len(pick_sets),
            "pick_sets_needing_attention": sum(1 for ps in pick_sets if ps.needs_attention),
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lock_user(self, user_id):
        """Lock the user row for the rest of the transaction (FOR UPDATE)"""
        return User.query.filter(User.id == user_id).with_for_update().first()

    def _eligible(self, user_id, season, outcome):
        try:
            return self.eligibility.check(user_id, season).is_paid
        except EligibilityLookupError as e:
            outcome.eligibility_error = str(e)
            return False

    def _update_pick_set(self, pick_set, **values):
        """Update every row of a set in one statement and verify the count"""
        ids = pick_set.pick_ids
        updated = (
            AnonymousPick.query.filter(AnonymousPick.id.in_(ids))
            .update(values, synchronize_session=False)
        )
        if updated != len(ids):
            raise PartialAssignmentError(expected=len(ids), updated=updated)
        return updated

    def _hold_incomplete(self, pick_set, outcome):
        """Leave an incomplete set pending with a note for admin review"""
        note = (
            f"Held for review: {pick_set.pick_count} of "
            f"{pick_set.expected_game_count} picks"
        )
        try:
            self._update_pick_set(
                pick_set, validation_status=PENDING, processing_notes=note
            )
            db.session.commit()
        except PartialAssignmentError as e:
            db.session.rollback()
            return outcome.fail(str(e), retryable=True)
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Database error holding {pick_set.key}: {e}")
            return outcome.fail(f"Database error: {e}", retryable=True)

        outcome.success = True
        outcome.validation_status = PENDING
        outcome.notes.append(note)
        logger.info(f"Pick set {pick_set.key} not auto-assigned: {note}")
        return outcome
