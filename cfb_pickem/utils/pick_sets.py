"""
Pick set grouping for CFB Pick'em

A pick form issues one write per game, so a single submission arrives as
several rows a few seconds apart. Rows are grouped into pick sets by
submitter identity and submission time floored to the minute; separate
submissions are normally minutes apart and stay separate.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

AUTHENTICATED = "authenticated"
ANONYMOUS = "anonymous"

VALIDATION_STATUSES = (
    "pending_validation",
    "auto_validated",
    "manually_validated",
    "duplicate_conflict",
)


@dataclass
class PickRecord:
    """One pick from either the authenticated or the anonymous table"""

    id: int
    source: str
    week: int
    season: int
    game_id: int
    selected_team: Optional[str]
    is_lock: bool
    submitted_at: datetime
    user_id: Optional[int] = None
    email: Optional[str] = None
    display_name: Optional[str] = None
    result: Optional[str] = None
    points_earned: Optional[float] = None
    assigned_user_id: Optional[int] = None
    show_on_leaderboard: bool = False
    validation_status: Optional[str] = None
    processing_notes: Optional[str] = None

    @property
    def is_authenticated(self):
        return self.source == AUTHENTICATED

    @property
    def identity(self):
        """Submitter identity: user id, or normalized email + display name"""
        if self.is_authenticated:
            return ("user", self.user_id)
        return ("email", normalize_email(self.email), (self.display_name or "").strip())

    @property
    def owner_id(self):
        """User the pick counts for, if any"""
        return self.user_id if self.is_authenticated else self.assigned_user_id


@dataclass
class PickSet:
    """Picks one submitter made for one week in one submission"""

    key: str
    identity: tuple
    season: int
    week: int
    submitted_at: datetime
    picks: List[PickRecord] = field(default_factory=list)
    superseded: List[PickRecord] = field(default_factory=list)
    expected_game_count: Optional[int] = None
    anomalies: List[str] = field(default_factory=list)

    @property
    def is_authenticated(self):
        return self.identity[0] == "user"

    @property
    def source(self):
        return AUTHENTICATED if self.is_authenticated else ANONYMOUS

    @property
    def _first(self):
        return self.picks[0] if self.picks else self.superseded[0]

    @property
    def email(self):
        return normalize_email(self._first.email)

    @property
    def display_name(self):
        return self._first.display_name

    @property
    def user_id(self):
        return self._first.user_id

    @property
    def assigned_user_id(self):
        """Owning user; authenticated sets are owned by their submitter"""
        return self._first.owner_id

    @property
    def show_on_leaderboard(self):
        if self.is_authenticated:
            return True
        return bool(self._first.show_on_leaderboard)

    @property
    def validation_status(self):
        return self._first.validation_status

    @property
    def processing_notes(self):
        return self._first.processing_notes

    @property
    def all_picks(self):
        return self.picks + self.superseded

    @property
    def pick_ids(self):
        """Ids of every row owned by the set, superseded writes included"""
        return sorted(p.id for p in self.all_picks)

    @property
    def pick_count(self):
        return len(self.picks)

    @property
    def lock_pick(self):
        return next((p for p in self.picks if p.is_lock), None)

    @property
    def total_points(self):
        return sum(p.points_earned or 0 for p in self.picks)

    @property
    def is_complete(self):
        if self.expected_game_count is None:
            return True
        return self.pick_count == self.expected_game_count

    @property
    def needs_attention(self):
        return bool(self.anomalies)

    @property
    def label(self):
        """Human readable submitter, used as a duplicate-report key"""
        if self.is_authenticated:
            return self.email or f"user:{self.user_id}"
        return self.email

    def to_dict(self, include_picks=True):
        data = {
            "key": self.key,
            "source": self.source,
            "season": self.season,
            "week": self.week,
            "email": self.email,
            "display_name": self.display_name,
            "user_id": self.user_id,
            "submitted_at": self.submitted_at.isoformat(),
            "pick_count": self.pick_count,
            "expected_game_count": self.expected_game_count,
            "is_complete": self.is_complete,
            "assigned_user_id": self.assigned_user_id,
            "show_on_leaderboard": self.show_on_leaderboard,
            "validation_status": self.validation_status,
            "processing_notes": self.processing_notes,
            "total_points": self.total_points,
            "anomalies": list(self.anomalies),
            "signature": content_signature(self),
        }
        if include_picks:
            data["picks"] = [
                {
                    "id": p.id,
                    "game_id": p.game_id,
                    "selected_team": p.selected_team,
                    "is_lock": p.is_lock,
                    "result": p.result,
                    "points_earned": p.points_earned,
                }
                for p in self.picks
            ]
        return data


def normalize_email(email):
    return email.lower().strip() if email else None


def floor_minute(moment):
    return moment.replace(second=0, microsecond=0)


def pick_set_key(identity, submitted_minute):
    """Stable string key for a pick set (used by the admin API)"""
    parts = [str(part) for part in identity]
    return ":".join(parts) + "@" + submitted_minute.strftime("%Y-%m-%dT%H:%M")


def content_signature(pick_set_or_picks):
    """
    Canonical content of a pick set: gameId:selectedTeam:LOCK|REG for every
    pick, ordered by game id. Equal signatures mean equal content whatever
    the submitter.
    """
    picks = getattr(pick_set_or_picks, "picks", pick_set_or_picks)
    ordered = sorted(picks, key=lambda p: p.game_id)
    return ",".join(
        f"{p.game_id}:{p.selected_team}:{'LOCK' if p.is_lock else 'REG'}"
        for p in ordered
    )


def group_pick_sets(records, expected_game_count=None):
    """
    Group raw pick records into pick sets.

    Args:
        records: iterable of PickRecord for one or more (season, week)
        expected_game_count: games configured for the week; sets of any
            other size are kept but flagged. A dict {(season, week): count}
            is accepted for multi-week input.

    Returns:
        List of PickSet ordered by submission minute, then identity.
    """
    buckets = {}
    for record in records:
        minute = floor_minute(record.submitted_at)
        bucket_key = (record.identity, record.season, record.week, minute)
        buckets.setdefault(bucket_key, []).append(record)

    pick_sets = []
    for (identity, season, week, minute), rows in buckets.items():
        if isinstance(expected_game_count, dict):
            expected = expected_game_count.get((season, week))
        else:
            expected = expected_game_count

        pick_set = PickSet(
            key=pick_set_key(identity, minute),
            identity=identity,
            season=season,
            week=week,
            submitted_at=minute,
            expected_game_count=expected,
        )
        _fill_pick_set(pick_set, rows)
        pick_sets.append(pick_set)

    pick_sets.sort(key=lambda ps: (ps.submitted_at, [str(part) for part in ps.identity]))
    return pick_sets


def _fill_pick_set(pick_set, rows):
    """Keep the latest write per game and record data-quality anomalies"""
    latest_by_game = {}
    for row in sorted(rows, key=lambda r: (r.submitted_at, r.id)):
        previous = latest_by_game.get(row.game_id)
        if previous is not None:
            pick_set.superseded.append(previous)
        latest_by_game[row.game_id] = row

    pick_set.picks = sorted(latest_by_game.values(), key=lambda r: (r.submitted_at, r.game_id))

    if pick_set.superseded:
        pick_set.anomalies.append(
            f"{len(pick_set.superseded)} pick(s) resubmitted within the same minute"
        )

    if not pick_set.is_complete:
        pick_set.anomalies.append(
            f"Expected {pick_set.expected_game_count} picks, found {pick_set.pick_count}"
        )

    missing_team = [p for p in pick_set.picks if not p.selected_team]
    if missing_team:
        pick_set.anomalies.append(f"{len(missing_team)} pick(s) missing a selected team")

    lock_count = sum(1 for p in pick_set.picks if p.is_lock)
    if lock_count > 1:
        pick_set.anomalies.append(f"{lock_count} lock picks in one set")

    if not pick_set.is_authenticated:
        # Set-level fields are written per row; disagreement means a partial write
        for attr in ("assigned_user_id", "show_on_leaderboard", "validation_status"):
            if len({getattr(p, attr) for p in pick_set.all_picks}) > 1:
                pick_set.anomalies.append(f"Inconsistent {attr} across picks")
