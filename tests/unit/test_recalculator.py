"""
Tests for chain recalculation.

The invariant checked throughout: every match snapshot equals the growth of
the previous snapshot (or the initial one) by that match's stat line, in
temporal order, and the player's current attributes equal the chain end.
"""

from datetime import date

import pytest
from sqlalchemy.exc import OperationalError

from squadgrowth.db.models import Match, MatchReview, Player, PlayerSnapshot
from squadgrowth.growth.calculator import compute_growth
from squadgrowth.growth.recalculator import ChainRecalculator, RecalcState
from squadgrowth.growth.stores import MatchReviewStore, SnapshotStore
from squadgrowth.growth.types import AttributeSet, MatchStatLine


def _record(session, player_id, match_id, stats):
    """Write a review and recalculate, as a submission would."""
    MatchReviewStore(session).upsert(player_id, match_id, stats)
    result = ChainRecalculator(session).recalculate(player_id, match_id, stats)
    session.commit()
    return result


def _expected_chain(stat_lines, position=None):
    running = AttributeSet.default()
    chain = []
    for stats in stat_lines:
        running = compute_growth(running, stats, position)
        chain.append(running)
    return chain


def _snapshot(session, player_id, match_id):
    return AttributeSet.from_row(SnapshotStore(session).get_for_match(player_id, match_id))


@pytest.fixture
def three_matches(make_match):
    return [
        make_match(date(2026, 3, 1), "Harbor United"),
        make_match(date(2026, 3, 8), "Northgate"),
        make_match(date(2026, 3, 15), "Millbrook"),
    ]


GAME_ONE = MatchStatLine(goals=2, minutes_played=90, coach_rating=70)
GAME_TWO = MatchStatLine(assists=1, tackles=3, minutes_played=75)
GAME_THREE = MatchStatLine(interceptions=4, chances_created=2, minutes_played=90, coach_rating=35)


class TestRecalculate:

    def test_first_match_grows_from_initial(self, db_session, make_player, three_matches):
        player = make_player()
        first = three_matches[0]

        result = _record(db_session, player.id, first.id, MatchStatLine(goals=2, minutes_played=90))

        assert result.previous_attributes == AttributeSet.default()
        assert result.match_computed_attributes.shooting == 51
        assert result.per_attribute_growth["shooting"] == 1
        assert result.per_attribute_growth["passing"] == -1
        assert result.replayed_match_ids == []
        assert _snapshot(db_session, player.id, first.id) == result.final_attributes

    def test_edit_earlier_match_rewrites_later_snapshots(self, db_session, make_player, three_matches):
        player = make_player()
        first, second, third = three_matches
        _record(db_session, player.id, first.id, GAME_ONE)
        _record(db_session, player.id, second.id, GAME_TWO)
        _record(db_session, player.id, third.id, GAME_THREE)

        edited = MatchStatLine(goals=0, minutes_played=90, coach_rating=20)
        result = _record(db_session, player.id, first.id, edited)

        expected = _expected_chain([edited, GAME_TWO, GAME_THREE])
        assert result.replayed_match_ids == [second.id, third.id]
        assert result.match_computed_attributes == expected[0]
        assert _snapshot(db_session, player.id, first.id) == expected[0]
        assert _snapshot(db_session, player.id, second.id) == expected[1]
        assert _snapshot(db_session, player.id, third.id) == expected[2]
        assert result.final_attributes == expected[2]

        db_session.expire_all()
        assert AttributeSet.from_row(db_session.get(Player, player.id)) == expected[2]

    def test_out_of_order_entry_is_chained_by_date(self, db_session, make_player, three_matches):
        player = make_player()
        first, second, third = three_matches

        _record(db_session, player.id, third.id, GAME_THREE)
        _record(db_session, player.id, first.id, GAME_ONE)
        result = _record(db_session, player.id, second.id, GAME_TWO)

        expected = _expected_chain([GAME_ONE, GAME_TWO, GAME_THREE])
        assert result.previous_attributes == expected[0]
        assert _snapshot(db_session, player.id, third.id) == expected[2]
        assert SnapshotStore(db_session).get_current(player.id) == expected[2]

    def test_same_day_matches_ordered_by_id(self, db_session, make_player, make_match):
        player = make_player()
        morning = make_match(date(2026, 6, 6), "Morning XI")
        afternoon = make_match(date(2026, 6, 6), "Afternoon XI")

        _record(db_session, player.id, afternoon.id, GAME_TWO)
        result = _record(db_session, player.id, morning.id, GAME_ONE)

        expected = _expected_chain([GAME_ONE, GAME_TWO])
        assert result.replayed_match_ids == [afternoon.id]
        assert _snapshot(db_session, player.id, afternoon.id) == expected[1]

    def test_same_day_large_match_id_is_replayed(self, db_session, make_player, team):
        player = make_player()
        early = Match(id=1, team_id=team.id, match_date=date(2026, 6, 6), opponent="Morning XI")
        late = Match(id=10_000_001, team_id=team.id, match_date=date(2026, 6, 6), opponent="Evening XI")
        db_session.add_all([early, late])
        db_session.flush()
        early.update_temporal_order()
        late.update_temporal_order()
        db_session.commit()

        _record(db_session, player.id, late.id, GAME_TWO)
        result = _record(db_session, player.id, early.id, GAME_ONE)

        expected = _expected_chain([GAME_ONE, GAME_TWO])
        assert result.replayed_match_ids == [late.id]
        assert _snapshot(db_session, player.id, late.id) == expected[1]

    def test_resubmitting_same_stats_is_idempotent(self, db_session, make_player, three_matches):
        player = make_player()
        first, second, _ = three_matches
        _record(db_session, player.id, first.id, GAME_ONE)
        before = _record(db_session, player.id, second.id, GAME_TWO)

        again = _record(db_session, player.id, first.id, GAME_ONE)

        assert again.final_attributes == before.final_attributes
        assert db_session.query(PlayerSnapshot).filter(PlayerSnapshot.player_id == player.id).count() == 3
        assert db_session.query(MatchReview).filter(MatchReview.player_id == player.id).count() == 2

    def test_goalkeeper_chain_grows_goalkeeper_attributes(self, db_session, make_player, three_matches):
        keeper = make_player("Alex Moreno", position="GK")
        stats = MatchStatLine(saves=5, successful_goalie_kicks=8, failed_goalie_kicks=2, minutes_played=90)

        result = _record(db_session, keeper.id, three_matches[0].id, stats)

        assert result.final_attributes == compute_growth(AttributeSet.default(), stats, "GK")
        assert result.final_attributes.diving > 50

    def test_uses_stored_review_when_no_stat_line(self, db_session, make_player, three_matches):
        player = make_player()
        match = three_matches[0]
        MatchReviewStore(db_session).upsert(player.id, match.id, GAME_ONE)

        result = ChainRecalculator(db_session).recalculate(player.id, match.id)

        assert result.final_attributes == compute_growth(AttributeSet.default(), GAME_ONE)

    def test_missing_review_raises(self, db_session, make_player, three_matches):
        player = make_player()
        recalculator = ChainRecalculator(db_session)

        with pytest.raises(LookupError):
            recalculator.recalculate(player.id, three_matches[0].id)
        assert recalculator.state == RecalcState.FAILED

    def test_state_done_after_success(self, db_session, make_player, three_matches):
        player = make_player()
        recalculator = ChainRecalculator(db_session)
        MatchReviewStore(db_session).upsert(player.id, three_matches[0].id, GAME_ONE)

        recalculator.recalculate(player.id, three_matches[0].id, GAME_ONE)

        assert recalculator.state == RecalcState.DONE

    def test_failed_write_leaves_nothing_behind(self, db_session, make_player, three_matches, monkeypatch):
        player = make_player()
        first, second, _ = three_matches
        _record(db_session, player.id, first.id, GAME_ONE)
        snapshot_before = _snapshot(db_session, player.id, first.id)

        def failing_upsert(self, entries):
            raise OperationalError("INSERT INTO player_snapshots", {}, Exception("disk I/O error"))

        monkeypatch.setattr(SnapshotStore, "upsert_many", failing_upsert)
        recalculator = ChainRecalculator(db_session)
        MatchReviewStore(db_session).upsert(player.id, second.id, GAME_TWO)

        with pytest.raises(OperationalError):
            recalculator.recalculate(player.id, second.id, GAME_TWO)
        db_session.rollback()

        assert recalculator.state == RecalcState.FAILED
        assert MatchReviewStore(db_session).get_by_player_match(player.id, second.id) is None
        assert SnapshotStore(db_session).get_for_match(player.id, second.id) is None
        assert _snapshot(db_session, player.id, first.id) == snapshot_before
        assert AttributeSet.from_row(db_session.get(Player, player.id)) == snapshot_before


class TestRebuildAndVerify:

    def test_rebuild_matches_incremental_chain(self, db_session, make_player, three_matches):
        player = make_player()
        for match, stats in zip(three_matches, (GAME_ONE, GAME_TWO, GAME_THREE)):
            _record(db_session, player.id, match.id, stats)

        result = ChainRecalculator(db_session).rebuild_player_chain(player.id)
        db_session.commit()

        assert result.matches_replayed == 3
        assert result.orphans_removed == 0
        assert result.final_attributes == _expected_chain([GAME_ONE, GAME_TWO, GAME_THREE])[2]

    def test_rebuild_removes_orphan_snapshots(self, db_session, make_player, three_matches):
        player = make_player()
        first, second, _ = three_matches
        _record(db_session, player.id, first.id, GAME_ONE)
        SnapshotStore(db_session).upsert_many([(player.id, second.id, AttributeSet(shooting=99))])
        db_session.commit()

        result = ChainRecalculator(db_session).rebuild_player_chain(player.id)
        db_session.commit()

        assert result.orphans_removed == 1
        assert SnapshotStore(db_session).get_for_match(player.id, second.id) is None

    def test_verify_detects_tampered_snapshot(self, db_session, make_player, three_matches):
        player = make_player()
        first, second, _ = three_matches
        _record(db_session, player.id, first.id, GAME_ONE)
        _record(db_session, player.id, second.id, GAME_TWO)
        recalculator = ChainRecalculator(db_session)
        assert recalculator.verify_player_chain(player.id).is_consistent

        SnapshotStore(db_session).get_for_match(player.id, first.id).shooting = 90
        db_session.get(Player, player.id).passing = 12
        db_session.flush()

        report = recalculator.verify_player_chain(player.id)

        assert not report.is_consistent
        assert [m.match_id for m in report.mismatches] == [first.id]
        assert "passing" in report.current_drift
