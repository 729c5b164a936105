from decimal import Decimal

import pytest

from conftest import make_set, make_snapshot
from rankwatch.diff.engine import diff, diff_contests
from rankwatch.models.enums import TOP10, ChangeKind
from rankwatch.models.events import (
    EnteredTop10,
    ExitedTop10,
    FirstObserved,
    RankImproved,
    RankWorsened,
    ScoreDecreased,
    ScoreImproved,
    TeamDisappeared,
    Top10ScoreImproved,
)

PREV = make_snapshot("PA", [("A", 10), ("B", 8)])
CURR = make_snapshot("PA", [("B", 12), ("A", 10)])


def kinds(events):
    return [e.kind for e in events]


@pytest.mark.parametrize("target", ["A", "B", "missing", TOP10])
def test_identical_snapshots_produce_no_events(target):
    assert diff(PREV, PREV, target) == []


def test_overtaken_team_only_worsens_in_rank():
    assert diff(PREV, CURR, "A") == [RankWorsened(team="A", previous=1, current=2)]


def test_overtaking_team_improves_rank_and_score():
    assert diff(PREV, CURR, "B") == [
        RankImproved(team="B", previous=2, current=1),
        ScoreImproved(team="B", previous=Decimal(8), current=Decimal(12)),
    ]


def test_score_decrease_is_reported():
    prev = make_snapshot("PA", [("A", "0.91")])
    curr = make_snapshot("PA", [("A", "0.89")])
    assert diff(prev, curr, "A") == [
        ScoreDecreased(team="A", previous=Decimal("0.91"), current=Decimal("0.89"))
    ]


def test_scores_compare_numerically_not_as_text():
    # "9.5" > "10.25" as strings, but not as numbers
    prev = make_snapshot("PA", [("A", "9.5")])
    curr = make_snapshot("PA", [("A", "10.25")])
    assert kinds(diff(prev, curr, "A")) == [ChangeKind.SCORE_IMPROVED]


def test_equal_scores_with_different_spelling_are_unchanged():
    prev = make_snapshot("PA", [("A", "10")])
    curr = make_snapshot("PA", [("A", "10.00")])
    assert diff(prev, curr, "A") == []


def test_first_observation_without_previous_snapshot():
    events = diff(None, CURR, "A")
    assert events == [
        FirstObserved(team="A", rank=2, score=Decimal(10), pool_size=2)
    ]


def test_first_observation_when_team_is_new():
    curr = make_snapshot("PA", [("C", 20), ("A", 10), ("B", 8)])
    assert kinds(diff(PREV, curr, "C")) == [ChangeKind.FIRST_OBSERVED]
    assert diff(PREV, curr, "C")[0].pool_size == 3


def test_absent_team_produces_nothing():
    assert diff(PREV, CURR, "Z") == []
    assert diff(None, CURR, "Z") == []


def test_disappearance_is_silent_unless_enabled():
    curr = make_snapshot("PA", [("B", 8)])
    assert diff(PREV, curr, "A") == []
    assert diff(PREV, curr, "A", report_disappearance=True) == [
        TeamDisappeared(team="A", last_rank=1, last_score=Decimal(10))
    ]


def test_top_view_without_previous_has_no_narrative():
    assert diff(None, CURR, TOP10) == []


def test_top_view_lists_exits_before_entries():
    prev = make_snapshot("PA", [(f"T{i}", 100 - i) for i in range(1, 13)])
    # T9 and T10 fall out, T11 and T12 climb in with better scores
    rows = [(f"T{i}", 100 - i) for i in range(1, 9)]
    rows += [("T11", 80), ("T12", 79), ("T9", 50), ("T10", 49)]
    curr = make_snapshot("PA", rows)

    events = diff(prev, curr, TOP10)

    assert events[:2] == [ExitedTop10(team="T9"), ExitedTop10(team="T10")]
    assert [e.team for e in events[2:4]] == ["T11", "T12"]
    assert all(isinstance(e, EnteredTop10) for e in events[2:4])
    assert events[2].rank == 9
    assert len(events) == 4


def test_top_view_score_changes():
    prev = make_snapshot("PA", [("A", 10), ("B", 8), ("C", 7)])
    curr = make_snapshot("PA", [("B", 11), ("A", 10.5), ("C", 6)])

    events = diff(prev, curr, TOP10)

    assert events == [
        Top10ScoreImproved(
            team="B", previous=Decimal(8), current=Decimal(11), rank_changed=True
        ),
        Top10ScoreImproved(
            team="A", previous=Decimal(10), current=Decimal("10.5"), rank_changed=True
        ),
        Top10ScoreImproved(
            team="C", previous=Decimal(7), current=Decimal(6), rank_changed=False
        ),
    ]


def test_top_view_reports_score_drop_without_rank_change():
    prev = make_snapshot("PA", [("A", 10), ("B", 8)])
    curr = make_snapshot("PA", [("A", 10), ("B", 7)])

    assert diff(prev, curr, TOP10) == [
        Top10ScoreImproved(
            team="B", previous=Decimal(8), current=Decimal(7), rank_changed=False
        )
    ]


def test_top_view_score_gain_at_same_rank():
    prev = make_snapshot("PA", [("A", 10), ("B", 8)])
    curr = make_snapshot("PA", [("A", 12), ("B", 8)])

    [event] = diff(prev, curr, TOP10)
    assert event.team == "A"
    assert event.rank_changed is False


def test_top_view_respects_smaller_contests_and_top_n():
    prev = make_snapshot("PA", [("A", 3), ("B", 2), ("C", 1)])
    curr = make_snapshot("PA", [("A", 3), ("C", 2.5), ("B", 2)])
    assert kinds(diff(prev, curr, TOP10, top_n=2)) == [
        ChangeKind.EXITED_TOP10,
        ChangeKind.ENTERED_TOP10,
    ]
    assert kinds(diff(prev, curr, TOP10)) == [ChangeKind.TOP10_SCORE_IMPROVED]


def test_diff_is_deterministic():
    first = diff(PREV, CURR, "B")
    second = diff(PREV, CURR, "B")
    assert [e.model_dump_json() for e in first] == [e.model_dump_json() for e in second]


def test_diff_contests_covers_every_current_contest():
    prev = make_set({"PA": [("A", 10)], "CRO": [("A", 5)]})
    curr = make_set({"PA": [("A", 11)], "CRO": [("A", 5)]})

    result = diff_contests(prev, curr, "A")

    assert list(result) == ["PA", "CRO"]
    assert kinds(result["PA"]) == [ChangeKind.SCORE_IMPROVED]
    assert result["CRO"] == []
