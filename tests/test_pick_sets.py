"""
Tests for grouping pick records into pick sets.
"""

from datetime import datetime

from cfb_pickem.utils.pick_sets import (
    AUTHENTICATED,
    content_signature,
    floor_minute,
    group_pick_sets,
)


def _six_picks(make_record, submitted_at, email="a@x.com", name="Alice", **kwargs):
    return [
        make_record(game_id, f"Team {game_id}", email=email, name=name, submitted_at=submitted_at,
                    is_lock=game_id == 1, **kwargs)
        for game_id in range(1, 7)
    ]


class TestGroupPickSets:
    """Grouping by submitter identity and submission minute"""

    def test_writes_in_the_same_minute_merge(self, make_record):
        """10:15:02 and 10:15:47 with identical picks form one set of 6"""
        records = _six_picks(make_record, datetime(2025, 9, 6, 10, 15, 2)) + _six_picks(
            make_record, datetime(2025, 9, 6, 10, 15, 47)
        )

        pick_sets = group_pick_sets(records, expected_game_count=6)

        assert len(pick_sets) == 1
        pick_set = pick_sets[0]
        assert pick_set.pick_count == 6
        assert len(pick_set.superseded) == 6
        assert pick_set.is_complete
        assert all(p.submitted_at.second == 47 for p in pick_set.picks)
        assert len(pick_set.pick_ids) == 12

    def test_separate_minutes_stay_separate(self, make_record):
        records = _six_picks(make_record, datetime(2025, 9, 6, 10, 15, 2)) + _six_picks(
            make_record, datetime(2025, 9, 6, 10, 19, 30)
        )

        pick_sets = group_pick_sets(records, expected_game_count=6)

        assert len(pick_sets) == 2
        assert pick_sets[0].submitted_at < pick_sets[1].submitted_at

    def test_email_is_case_insensitive(self, make_record):
        records = _six_picks(make_record, datetime(2025, 9, 6, 10, 15, 2), email="A@X.com ")
        records[0].email = "a@x.com"

        pick_sets = group_pick_sets(records)

        assert len(pick_sets) == 1
        assert pick_sets[0].email == "a@x.com"

    def test_different_display_names_are_different_submitters(self, make_record):
        moment = datetime(2025, 9, 6, 10, 15, 2)
        records = _six_picks(make_record, moment, name="Alice") + _six_picks(
            make_record, moment, name="Bob"
        )

        assert len(group_pick_sets(records)) == 2

    def test_authenticated_identity_is_the_user(self, make_record):
        moment = datetime(2025, 9, 6, 10, 15, 2)
        records = [
            make_record(1, source=AUTHENTICATED, user_id=7, email="one@x.com", submitted_at=moment),
            make_record(2, source=AUTHENTICATED, user_id=7, email="two@x.com", submitted_at=moment),
        ]

        pick_sets = group_pick_sets(records)

        assert len(pick_sets) == 1
        assert pick_sets[0].is_authenticated
        assert pick_sets[0].assigned_user_id == 7
        assert pick_sets[0].show_on_leaderboard is True

    def test_incomplete_set_is_kept_and_flagged(self, make_record):
        records = _six_picks(make_record, datetime(2025, 9, 6, 10, 15, 2))[:5]

        pick_sets = group_pick_sets(records, expected_game_count=6)

        assert len(pick_sets) == 1
        assert not pick_sets[0].is_complete
        assert pick_sets[0].needs_attention
        assert "Expected 6 picks, found 5" in pick_sets[0].anomalies

    def test_expected_count_per_week(self, make_record):
        moment = datetime(2025, 9, 6, 10, 15, 2)
        records = _six_picks(make_record, moment, week=1) + _six_picks(make_record, moment, week=2)

        pick_sets = group_pick_sets(records, expected_game_count={(2025, 1): 6, (2025, 2): 7})

        by_week = {ps.week: ps for ps in pick_sets}
        assert by_week[1].is_complete
        assert not by_week[2].is_complete

    def test_missing_team_and_extra_lock_are_flagged(self, make_record):
        records = _six_picks(make_record, datetime(2025, 9, 6, 10, 15, 2))
        records[2].selected_team = None
        records[3].is_lock = True

        anomalies = group_pick_sets(records)[0].anomalies

        assert "1 pick(s) missing a selected team" in anomalies
        assert "2 lock picks in one set" in anomalies

    def test_partial_write_is_flagged(self, make_record):
        records = _six_picks(make_record, datetime(2025, 9, 6, 10, 15, 2))
        for record in records[:3]:
            record.assigned_user_id = 5

        anomalies = group_pick_sets(records)[0].anomalies

        assert "Inconsistent assigned_user_id across picks" in anomalies

    def test_output_order_is_deterministic(self, make_record):
        records = (
            _six_picks(make_record, datetime(2025, 9, 6, 11, 0, 0), email="b@x.com")
            + _six_picks(make_record, datetime(2025, 9, 6, 10, 0, 0), email="c@x.com")
            + _six_picks(make_record, datetime(2025, 9, 6, 11, 0, 30), email="a@x.com")
        )

        forward = [ps.key for ps in group_pick_sets(records)]
        backward = [ps.key for ps in group_pick_sets(list(reversed(records)))]

        assert forward == backward
        assert forward[0].startswith("email:c@x.com")

    def test_floor_minute(self):
        assert floor_minute(datetime(2025, 9, 6, 10, 15, 59, 999)) == datetime(2025, 9, 6, 10, 15)


class TestContentSignature:
    def test_order_independent(self, make_record):
        moment = datetime(2025, 9, 6, 10, 15, 2)
        picks = _six_picks(make_record, moment)

        assert content_signature(picks) == content_signature(list(reversed(picks)))

    def test_format(self, make_record):
        picks = [
            make_record(12, "Georgia", is_lock=True),
            make_record(3, "Texas"),
        ]

        assert content_signature(picks) == "3:Texas:REG,12:Georgia:LOCK"

    def test_lock_flag_changes_signature(self, make_record):
        plain = [make_record(1, "Texas")]
        locked = [make_record(1, "Texas", is_lock=True)]

        assert content_signature(plain) != content_signature(locked)

    def test_pick_set_signature(self, make_record):
        picks = _six_picks(make_record, datetime(2025, 9, 6, 10, 15, 2))
        pick_set = group_pick_sets(picks)[0]

        assert content_signature(pick_set) == content_signature(picks)
