from decimal import Decimal

import pytest
from pydantic import ValidationError

from conftest import make_snapshot
from rankwatch.models.enums import TOP10, ChannelKind
from rankwatch.models.leaderboard import ContestSnapshot, TeamEntry, parse_score
from rankwatch.models.subscriber import Subscriber


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("0.87312", Decimal("0.87312")),
        (" 12 ", Decimal("12")),
        ("1,204.5", Decimal("1204.5")),
        ("0,873", Decimal("0.873")),
        (3, Decimal("3")),
    ],
)
def test_parse_score(raw, expected):
    assert parse_score(raw) == expected


@pytest.mark.parametrize("raw", ["", "n/a", "NaN", "inf"])
def test_parse_score_rejects_non_numbers(raw):
    with pytest.raises(ValueError):
        parse_score(raw)


def test_team_entry_parses_page_text():
    entry = TeamEntry(rank=" 3. ", name="  K2IV ", score="0.91", submitted_at=" 2021-09-01 ")
    assert entry.rank == 3
    assert entry.name == "K2IV"
    assert entry.score == Decimal("0.91")
    assert entry.submitted_at == "2021-09-01"


def test_team_entry_rejects_bad_rank_and_empty_name():
    with pytest.raises(ValidationError):
        TeamEntry(rank=0, name="A", score=1)
    with pytest.raises(ValidationError):
        TeamEntry(rank=1, name="  ", score=1)


def test_contest_snapshot_requires_contiguous_ranks():
    entries = (
        TeamEntry(rank=1, name="A", score=3),
        TeamEntry(rank=3, name="B", score=2),
    )
    with pytest.raises(ValidationError, match="rank 3 found where rank 2"):
        ContestSnapshot(contest="PA", entries=entries)


def test_contest_snapshot_rejects_duplicate_names():
    entries = (
        TeamEntry(rank=1, name="A", score=3),
        TeamEntry(rank=2, name="A", score=2),
    )
    with pytest.raises(ValidationError, match="duplicate team name"):
        ContestSnapshot(contest="PA", entries=entries)


def test_contest_snapshot_lookups():
    snapshot = make_snapshot("PA", [(n, 10 - i) for i, n in enumerate("ABCDEFG")])
    assert snapshot.find("C").rank == 3
    assert snapshot.find("c") is None
    assert snapshot.find_casefold("c").name == "C"
    assert [e.name for e in snapshot.top(2)] == ["A", "B"]
    assert [e.name for e in snapshot.window("B", 2)] == ["A", "B", "C", "D"]
    assert [e.name for e in snapshot.window("G", 1)] == ["F", "G"]
    assert snapshot.window("Z", 1) == []


def test_subscriber_defaults_to_top_view_and_serializes_sorted():
    subscriber = Subscriber(id="u1", channel_kind=ChannelKind.DIRECT)
    assert subscriber.subscriptions == {TOP10}

    subscriber = Subscriber(id="u1", subscriptions={"zeta", TOP10, "Alpha"})
    assert subscriber.model_dump(mode="json")["subscriptions"] == ["Alpha", TOP10, "zeta"]
    assert subscriber.sorted_targets() == [TOP10, "Alpha", "zeta"]
