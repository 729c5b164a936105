from datetime import datetime, timezone
from typing import Dict, List, Sequence, Tuple

import pytest

from rankwatch.delivery.channel import DeliveryChannel, DeliveryError
from rankwatch.models.enums import ChannelKind
from rankwatch.models.leaderboard import ContestSnapshot, SnapshotSet, TeamEntry
from rankwatch.rendering.messages import RenderedMessage

CONTESTS = ["People Analytics", "Cash Ratio Optimization"]


def make_snapshot(contest: str, rows: Sequence[Tuple[str, object]]) -> ContestSnapshot:
    """Builds a contest snapshot from (name, score) pairs, ranked in order."""
    return ContestSnapshot(
        contest=contest,
        entries=tuple(
            TeamEntry(rank=i, name=name, score=score, submitted_at=f"2021-09-0{min(i, 9)} 10:00")
            for i, (name, score) in enumerate(rows, start=1)
        ),
    )


def make_set(
    rows_by_contest: Dict[str, Sequence[Tuple[str, object]]],
    observed_at: datetime = datetime(2021, 9, 1, tzinfo=timezone.utc),
) -> SnapshotSet:
    return SnapshotSet(
        contests={c: make_snapshot(c, rows) for c, rows in rows_by_contest.items()},
        observed_at=observed_at,
    )


class RecordingChannel(DeliveryChannel):
    """Keeps every delivered message; recipients in ``failing`` raise instead."""

    def __init__(self, failing: Sequence[str] = ()):
        self.failing = set(failing)
        self.sent: List[Tuple[str, RenderedMessage, ChannelKind]] = []

    async def deliver(self, recipient_id, message, channel_kind=ChannelKind.DIRECT):
        if recipient_id in self.failing:
            raise DeliveryError(f"{recipient_id} blocked the bot")
        self.sent.append((recipient_id, message, channel_kind))

    def to(self, recipient_id: str) -> List[RenderedMessage]:
        return [m for r, m, _ in self.sent if r == recipient_id]


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def state_dir(tmp_path):
    return tmp_path / "data"
