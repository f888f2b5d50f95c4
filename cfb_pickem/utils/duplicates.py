"""
Duplicate pick set detection

Finds pick sets that are the same submission repeated, whether from the same
email, from different emails later assigned to one user, or from different
emails that have not been assigned yet. Only membership is reported; which
member counts is decided by the conflict resolver.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List

from cfb_pickem.utils.pick_sets import content_signature

logger = logging.getLogger(__name__)

SAME_EMAIL = "same_email"
SAME_USER = "same_user"
CROSS_EMAIL = "cross_email"


@dataclass(eq=False)
class DuplicateGroup:
    reason: str
    signature: str
    members: list

    @property
    def duplicate_count(self):
        return len(self.members) - 1

    @property
    def emails(self):
        return sorted({m.email for m in self.members if m.email})

    def to_dict(self):
        return {
            "reason": self.reason,
            "signature": self.signature,
            "duplicate_count": self.duplicate_count,
            "emails": self.emails,
            "members": [m.to_dict(include_picks=False) for m in self.members],
        }


@dataclass
class DuplicateReport:
    groups: List[DuplicateGroup] = field(default_factory=list)

    @property
    def total_duplicates(self):
        return sum(group.duplicate_count for group in self.groups)

    def to_dict(self):
        return {
            "total_duplicates": self.total_duplicates,
            "groups": [group.to_dict() for group in self.groups],
        }


@dataclass
class DuplicateIndexes:
    """
    Lookup tables built once per detection run.

    by_email: normalized submitter email -> pick sets submitted from it
    by_assigned_user: user id -> pick sets owned by that user (authenticated
        sets are owned by their submitter, anonymous ones by assignment)
    by_signature: content signature -> pick sets with no owning user yet
    """

    by_email: Dict[str, list] = field(default_factory=dict)
    by_assigned_user: Dict[int, list] = field(default_factory=dict)
    by_signature: Dict[str, list] = field(default_factory=dict)
    signatures: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def build(cls, pick_sets):
        indexes = cls()
        for pick_set in pick_sets:
            indexes.signatures[pick_set.key] = content_signature(pick_set)

            if pick_set.email:
                indexes.by_email.setdefault(pick_set.email, []).append(pick_set)

            if pick_set.assigned_user_id is not None:
                indexes.by_assigned_user.setdefault(pick_set.assigned_user_id, []).append(
                    pick_set
                )
            else:
                indexes.by_signature.setdefault(
                    indexes.signatures[pick_set.key], []
                ).append(pick_set)
        return indexes

    def signature_of(self, pick_set):
        return self.signatures[pick_set.key]


def _matching_groups(indexes, pick_sets):
    """Split pick sets into groups of two or more with equal signatures"""
    by_signature = {}
    for pick_set in pick_sets:
        by_signature.setdefault(indexes.signature_of(pick_set), []).append(pick_set)
    return [
        (signature, members)
        for signature, members in by_signature.items()
        if len(members) > 1
    ]


def detect_duplicates(pick_sets):
    """
    Report duplicate pick sets for one (season, week).

    Each reported group of n sets contributes n - 1 duplicates. A pick set
    belongs to at most one group: when a later pass finds sets overlapping
    groups already reported, they are merged into the earliest of them and
    keep its reason.
    """
    pick_sets = [ps for ps in pick_sets if ps.picks]
    indexes = DuplicateIndexes.build(pick_sets)
    report = DuplicateReport()
    owners = {}

    def add(reason, signature, members):
        overlapping = []
        for member in members:
            group = owners.get(member.key)
            if group is not None and group not in overlapping:
                overlapping.append(group)

        if not overlapping:
            group = DuplicateGroup(reason=reason, signature=signature, members=list(members))
            report.groups.append(group)
        else:
            group = overlapping[0]
            for other in overlapping[1:]:
                group.members.extend(other.members)
                report.groups.remove(other)
            known = {m.key for m in group.members}
            group.members.extend(m for m in members if m.key not in known)
            group.members.sort(key=lambda m: m.submitted_at)

        for member in group.members:
            owners[member.key] = group

    # Pass 1: repeated submissions from the same email
    for email in sorted(indexes.by_email):
        for signature, members in _matching_groups(indexes, indexes.by_email[email]):
            add(SAME_EMAIL, signature, members)

    # Pass 2: different emails already assigned to the same user
    for user_id in sorted(indexes.by_assigned_user):
        for signature, members in _matching_groups(
            indexes, indexes.by_assigned_user[user_id]
        ):
            add(SAME_USER, signature, members)

    # Pass 3: unassigned sets with identical content from several emails
    for signature in sorted(indexes.by_signature):
        members = indexes.by_signature[signature]
        if len(members) > 1 and len({m.email for m in members}) > 1:
            add(CROSS_EMAIL, signature, members)

    if report.groups:
        logger.info(
            f"Found {len(report.groups)} duplicate group(s), "
            f"{report.total_duplicates} duplicate pick set(s)"
        )
    return report
