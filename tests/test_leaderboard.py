"""
Tests for leaderboard aggregation and ranking.
"""

import random
from datetime import datetime

from cfb_pickem.utils.leaderboard import (
    MIXED,
    LeaderboardRow,
    apply_rank_changes,
    build_leaderboard_rows,
    rank_rows,
    select_authoritative_picks,
    tied_rows,
)
from cfb_pickem.utils.pick_sets import ANONYMOUS, AUTHENTICATED


def _scored(make_record, user_id, week, points_list, source=AUTHENTICATED, **kwargs):
    """One pick per entry in points_list, scored win/loss/push to match the points"""
    results = {0: "loss", 10: "push", 20: "win", 40: "win"}
    records = []
    for game_id, points in enumerate(points_list, start=1):
        fields = dict(
            source=source,
            week=week,
            result=results[points] if points is not None else None,
            points_earned=points,
            is_lock=points == 40,
        )
        if source == AUTHENTICATED:
            fields["user_id"] = user_id
        else:
            fields["assigned_user_id"] = user_id
        fields.update(kwargs)
        records.append(make_record(game_id + week * 100, "Team", **fields))
    return records


class TestSourceSelection:
    """Which picks count for a user-week"""

    def test_authenticated_beats_visible_anonymous(self, make_record):
        """Authenticated 200 pts vs assigned anonymous 180 pts: 200 counts"""
        records = _scored(make_record, 1, 1, [20] * 10) + _scored(
            make_record, 1, 1, [20] * 9 + [0], source=ANONYMOUS, show_on_leaderboard=True
        )

        rows = build_leaderboard_rows(records, display_names={1: "Alice"})

        assert len(rows) == 1
        assert rows[0].total_points == 200
        assert rows[0].pick_source == AUTHENTICATED

    def test_admin_preference_selects_anonymous(self, make_record):
        records = _scored(make_record, 1, 1, [20] * 10) + _scored(
            make_record, 1, 1, [20] * 9 + [0], source=ANONYMOUS, show_on_leaderboard=True
        )

        rows = build_leaderboard_rows(records, preferences={(1, 1): ANONYMOUS})

        assert rows[0].total_points == 180
        assert rows[0].pick_source == ANONYMOUS

    def test_season_wide_preference_applies_to_every_week(self, make_record):
        records = _scored(make_record, 1, 1, [20, 20]) + _scored(
            make_record, 1, 1, [0, 0], source=ANONYMOUS, show_on_leaderboard=True
        )

        rows = build_leaderboard_rows(records, preferences={(1, None): ANONYMOUS})

        assert rows[0].total_points == 0

    def test_preference_for_missing_source_falls_back(self, make_record):
        records = _scored(make_record, 1, 1, [20, 20])

        rows = build_leaderboard_rows(records, preferences={(1, 1): ANONYMOUS})

        assert rows[0].total_points == 40

    def test_hidden_and_unassigned_anonymous_picks_do_not_count(self, make_record):
        hidden = _scored(make_record, 1, 1, [20, 20], source=ANONYMOUS, show_on_leaderboard=False)
        unassigned = _scored(make_record, None, 1, [20, 20], source=ANONYMOUS,
                             show_on_leaderboard=True)

        assert build_leaderboard_rows(hidden + unassigned) == []

    def test_latest_visible_anonymous_set_counts(self, make_record):
        early = _scored(make_record, 1, 1, [20, 20], source=ANONYMOUS, show_on_leaderboard=True,
                        submitted_at=datetime(2025, 9, 6, 9, 0))
        late = _scored(make_record, 1, 1, [0, 10], source=ANONYMOUS, show_on_leaderboard=True,
                       submitted_at=datetime(2025, 9, 6, 11, 0))

        selected = select_authoritative_picks(early + late)

        assert sorted(p.points_earned for p in selected) == [0, 10]

    def test_mixed_source_across_weeks(self, make_record):
        records = _scored(make_record, 1, 1, [20]) + _scored(
            make_record, 1, 2, [20], source=ANONYMOUS, show_on_leaderboard=True
        )

        season = build_leaderboard_rows(records)
        week_two = build_leaderboard_rows(records, week=2)

        assert season[0].pick_source == MIXED
        assert week_two[0].pick_source == ANONYMOUS


class TestAggregation:
    def test_records_and_lock_records(self, make_record):
        records = _scored(make_record, 1, 1, [40, 20, 0, 10, None])

        row = build_leaderboard_rows(records)[0]

        assert row.total_points == 70
        assert row.record == "2-1-1"
        assert row.lock_record == "1-0-0"

    def test_unscored_picks_count_zero(self, make_record):
        rows = build_leaderboard_rows(_scored(make_record, 1, 1, [None, None]))

        assert rows[0].total_points == 0
        assert rows[0].record == "0-0-0"

    def test_week_filter(self, make_record):
        records = _scored(make_record, 1, 1, [20]) + _scored(make_record, 1, 2, [40])

        assert build_leaderboard_rows(records, week=1)[0].total_points == 20
        assert build_leaderboard_rows(records, through_week=1)[0].total_points == 20
        assert build_leaderboard_rows(records)[0].total_points == 60

    def test_eligible_users_only(self, make_record):
        records = _scored(make_record, 1, 1, [20]) + _scored(make_record, 2, 1, [40])

        rows = build_leaderboard_rows(records, eligible_user_ids={2})

        assert [r.user_id for r in rows] == [2]


class TestRanking:
    """Competition ranks, ties and stability"""

    def _rows(self, totals):
        return [
            LeaderboardRow(user_id=i, display_name=f"User {i}", total_points=t)
            for i, t in enumerate(totals, start=1)
        ]

    def test_competition_ranks(self):
        ranked = rank_rows(self._rows([100, 80, 100, 60]))

        assert [r.rank for r in ranked] == [1, 1, 3, 4]
        assert [r.tie_count for r in ranked] == [2, 2, 1, 1]
        assert ranked[0].is_tied and not ranked[2].is_tied

    def test_rank_skips_tied_count_minus_one(self):
        ranked = rank_rows(self._rows([50, 50, 50, 40]))

        assert [r.rank for r in ranked] == [1, 1, 1, 4]

    def test_tie_membership_uses_totals_not_rank(self):
        rows = self._rows([90, 90, 70])
        rows[1].rank = 7

        assert {r.user_id for r in tied_rows(rows, rows[0])} == {1, 2}

    def test_order_inside_tie_uses_wins_then_name(self):
        rows = [
            LeaderboardRow(user_id=1, display_name="zed", total_points=60, wins=3),
            LeaderboardRow(user_id=2, display_name="Amy", total_points=60, wins=3),
            LeaderboardRow(user_id=3, display_name="bob", total_points=60, wins=4),
        ]

        assert [r.user_id for r in rank_rows(rows)] == [3, 2, 1]

    def test_stable_under_input_permutation(self, make_record):
        records = []
        for user_id, points in enumerate([[20, 20], [40, 0], [20, 10, 10], [0], [20, 20]], 1):
            records += _scored(make_record, user_id, 1, points)
        names = {1: "Dana", 2: "Cal", 3: "Bea", 4: "Ari", 5: "Eve"}

        expected = [r.to_dict() for r in build_leaderboard_rows(records, display_names=names)]

        rng = random.Random(2025)
        for _ in range(10):
            shuffled = records[:]
            rng.shuffle(shuffled)
            rows = build_leaderboard_rows(shuffled, display_names=names)
            assert [r.to_dict() for r in rows] == expected


class TestRankChange:
    def test_rank_change(self):
        rows = rank_rows(
            [
                LeaderboardRow(user_id=1, display_name="a", total_points=50),
                LeaderboardRow(user_id=2, display_name="b", total_points=40),
                LeaderboardRow(user_id=3, display_name="c", total_points=30),
            ]
        )

        apply_rank_changes(rows, {1: 2, 2: 2})

        assert [r.rank_change for r in rows] == [1, 0, None]

    def test_weekly_view_has_no_rank_change(self, make_record):
        rows = build_leaderboard_rows(
            _scored(make_record, 1, 1, [20]), week=1, previous_ranks={1: 4}
        )

        assert rows[0].rank_change is None

    def test_season_view_rank_change(self, make_record):
        rows = build_leaderboard_rows(_scored(make_record, 1, 1, [20]), previous_ranks={1: 4})

        assert rows[0].rank_change == 3
