"""
Leaderboard aggregation for CFB Pick'em

Everything here works on already-fetched PickRecords and has no side
effects; the leaderboard service loads the data and calls in.

Ranks are competition ranks: equal point totals share a rank and the next
total skips the tied places (1, 1, 3, 4). Consumers must not assume ranks
are contiguous.
"""

from dataclasses import dataclass, field
from typing import Optional

from cfb_pickem.utils.pick_sets import ANONYMOUS, AUTHENTICATED, group_pick_sets
from cfb_pickem.utils.scoring import LOSS, PUSH, WIN

MIXED = "mixed"
SEASON_TO_DATE = "season-to-date"


@dataclass
class LeaderboardRow:
    user_id: int
    display_name: str
    total_points: float = 0
    wins: int = 0
    losses: int = 0
    pushes: int = 0
    lock_wins: int = 0
    lock_losses: int = 0
    lock_pushes: int = 0
    rank: Optional[int] = None
    rank_change: Optional[int] = None
    tie_count: int = 1
    sources: set = field(default_factory=set)

    @property
    def record(self):
        return f"{self.wins}-{self.losses}-{self.pushes}"

    @property
    def lock_record(self):
        return f"{self.lock_wins}-{self.lock_losses}-{self.lock_pushes}"

    @property
    def pick_source(self):
        if len(self.sources) > 1:
            return MIXED
        return next(iter(self.sources), AUTHENTICATED)

    @property
    def is_tied(self):
        return self.tie_count > 1

    def add_pick(self, pick):
        self.sources.add(pick.source)
        self.total_points += pick.points_earned or 0

        if pick.result == WIN:
            self.wins += 1
            if pick.is_lock:
                self.lock_wins += 1
        elif pick.result == LOSS:
            self.losses += 1
            if pick.is_lock:
                self.lock_losses += 1
        elif pick.result == PUSH:
            self.pushes += 1
            if pick.is_lock:
                self.lock_pushes += 1

    def to_dict(self):
        return {
            "rank": self.rank,
            "user_id": self.user_id,
            "display_name": self.display_name,
            "total_points": self.total_points,
            "record": self.record,
            "lock_record": self.lock_record,
            "wins": self.wins,
            "losses": self.losses,
            "pushes": self.pushes,
            "rank_change": self.rank_change,
            "pick_source": self.pick_source,
            "is_tied": self.is_tied,
            "tie_count": self.tie_count,
        }


def _latest_per_game(picks):
    latest = {}
    for pick in sorted(picks, key=lambda p: (p.submitted_at, p.id)):
        latest[pick.game_id] = pick
    return list(latest.values())


def _preferred_source(preferences, user_id, week):
    if not preferences:
        return None
    return preferences.get((user_id, week)) or preferences.get((user_id, None))


def select_authoritative_picks(records, preferences=None):
    """
    Choose the picks that count for each (user, season, week).

    Authenticated picks take precedence over visible assigned anonymous picks
    unless an admin preference for the week (or the season) names the other
    source and that source has picks. Among several visible anonymous sets,
    the latest submission counts.

    Args:
        records: PickRecords of both sources
        preferences: {(user_id, week or None): "authenticated"|"anonymous"}
    """
    by_owner_week = {}
    for record in records:
        if record.owner_id is None:
            continue
        if not record.is_authenticated and not record.show_on_leaderboard:
            continue
        by_owner_week.setdefault((record.owner_id, record.season, record.week), []).append(record)

    selected = []
    for (user_id, _season, week), picks in sorted(by_owner_week.items(), key=lambda kv: kv[0]):
        authenticated = _latest_per_game(p for p in picks if p.is_authenticated)

        anonymous = []
        anonymous_sets = group_pick_sets(p for p in picks if not p.is_authenticated)
        if anonymous_sets:
            latest_set = max(anonymous_sets, key=lambda ps: (ps.submitted_at, ps.key))
            anonymous = latest_set.picks

        preference = _preferred_source(preferences, user_id, week)
        if preference == ANONYMOUS and anonymous:
            selected.extend(anonymous)
        elif preference == AUTHENTICATED and authenticated:
            selected.extend(authenticated)
        else:
            selected.extend(authenticated or anonymous)

    return selected


def aggregate_rows(picks, display_names=None):
    """Roll contributing picks up into one unranked row per user"""
    display_names = display_names or {}
    rows = {}
    for pick in picks:
        user_id = pick.owner_id
        row = rows.get(user_id)
        if row is None:
            row = LeaderboardRow(
                user_id=user_id,
                display_name=display_names.get(user_id) or pick.display_name or f"User {user_id}",
            )
            rows[user_id] = row
        row.add_pick(pick)
    return list(rows.values())


def tied_rows(rows, row):
    """All rows sharing this row's point total (independent of rank fields)"""
    return [other for other in rows if other.total_points == row.total_points]


def rank_rows(rows):
    """
    Sort rows and assign competition ranks.

    Order inside a tie is wins, then display name, then user id, so the
    result does not depend on input order.
    """
    ordered = sorted(
        rows,
        key=lambda r: (-r.total_points, -r.wins, (r.display_name or "").lower(), str(r.user_id)),
    )

    previous = None
    for index, row in enumerate(ordered):
        if previous is not None and row.total_points == previous.total_points:
            row.rank = previous.rank
        else:
            row.rank = index + 1
        previous = row

    for row in ordered:
        row.tie_count = len(tied_rows(ordered, row))

    return ordered


def apply_rank_changes(rows, previous_ranks):
    """rank_change = previous - current (positive = improved); new entrants get None"""
    previous_ranks = previous_ranks or {}
    for row in rows:
        previous = previous_ranks.get(row.user_id)
        row.rank_change = previous - row.rank if previous is not None else None
    return rows


def build_leaderboard_rows(
    records,
    display_names=None,
    preferences=None,
    week=SEASON_TO_DATE,
    through_week=None,
    previous_ranks=None,
    eligible_user_ids=None,
):
    """
    Build ranked leaderboard rows from pick records.

    Args:
        records: PickRecords for one season (both sources)
        display_names: {user_id: name}
        preferences: admin source preferences, see select_authoritative_picks
        week: a week number, or "season-to-date"
        through_week: for season-to-date, ignore weeks after this one
        previous_ranks: {user_id: rank} from the prior week's season view;
            only applied to season-to-date builds
        eligible_user_ids: when given, only these users are ranked
    """
    if week != SEASON_TO_DATE:
        records = [r for r in records if r.week == week]
    elif through_week is not None:
        records = [r for r in records if r.week <= through_week]

    picks = select_authoritative_picks(records, preferences)
    if eligible_user_ids is not None:
        picks = [p for p in picks if p.owner_id in eligible_user_ids]

    rows = rank_rows(aggregate_rows(picks, display_names))

    if week == SEASON_TO_DATE and previous_ranks is not None:
        apply_rank_changes(rows, previous_ranks)

    return rows
