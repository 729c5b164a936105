from typing import Dict, List, Optional

from rankwatch.models.enums import TOP10
from rankwatch.models.events import (
    ChangeEvent,
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
from rankwatch.models.leaderboard import ContestSnapshot, SnapshotSet

DEFAULT_TOP_N = 10


def diff(
    previous: Optional[ContestSnapshot],
    current: ContestSnapshot,
    target: str,
    *,
    top_n: int = DEFAULT_TOP_N,
    report_disappearance: bool = False,
) -> List[ChangeEvent]:
    """Compares two observations of one contest for a single target.

    Args:
        previous: The earlier snapshot, or None if the contest was never observed.
        current: The fresh snapshot.
        target: A team name, or ``TOP10`` for the aggregate view.
        top_n: Size of the aggregate view.
        report_disappearance: Emit ``TeamDisappeared`` when a team present in
            ``previous`` is missing from ``current``.

    Returns:
        Ordered change events; empty when nothing notable changed.
    """
    if target == TOP10:
        return diff_top(previous, current, top_n=top_n)
    return diff_team(
        previous, current, target, report_disappearance=report_disappearance
    )


def diff_team(
    previous: Optional[ContestSnapshot],
    current: ContestSnapshot,
    team: str,
    *,
    report_disappearance: bool = False,
) -> List[ChangeEvent]:
    now = current.find(team)
    before = previous.find(team) if previous is not None else None

    if now is None:
        if before is not None and report_disappearance:
            return [
                TeamDisappeared(
                    team=team, last_rank=before.rank, last_score=before.score
                )
            ]
        return []

    if before is None:
        return [
            FirstObserved(
                team=team, rank=now.rank, score=now.score, pool_size=len(current)
            )
        ]

    events: List[ChangeEvent] = []
    # Lower rank number is a better position
    if now.rank < before.rank:
        events.append(RankImproved(team=team, previous=before.rank, current=now.rank))
    elif now.rank > before.rank:
        events.append(RankWorsened(team=team, previous=before.rank, current=now.rank))

    if now.score > before.score:
        events.append(
            ScoreImproved(team=team, previous=before.score, current=now.score)
        )
    elif now.score < before.score:
        events.append(
            ScoreDecreased(team=team, previous=before.score, current=now.score)
        )
    return events


def diff_top(
    previous: Optional[ContestSnapshot],
    current: ContestSnapshot,
    *,
    top_n: int = DEFAULT_TOP_N,
) -> List[ChangeEvent]:
    # First observation: the table alone is shown, without a delta narrative
    if previous is None:
        return []

    before = {entry.name: entry for entry in previous.top(top_n)}
    now = {entry.name: entry for entry in current.top(top_n)}

    events: List[ChangeEvent] = []
    # Both top views are already in rank order, so iteration order is rank order
    for name in before:
        if name not in now:
            events.append(ExitedTop10(team=name))
    for name, entry in now.items():
        if name not in before:
            events.append(EnteredTop10(team=name, rank=entry.rank, score=entry.score))
    for name, entry in now.items():
        old = before.get(name)
        if old is not None and entry.score != old.score:
            events.append(
                Top10ScoreImproved(
                    team=name,
                    previous=old.score,
                    current=entry.score,
                    rank_changed=old.rank != entry.rank,
                )
            )
    return events


def diff_contests(
    previous: Optional[SnapshotSet],
    current: SnapshotSet,
    target: str,
    *,
    top_n: int = DEFAULT_TOP_N,
    report_disappearance: bool = False,
) -> Dict[str, List[ChangeEvent]]:
    """Runs ``diff`` for every contest of ``current``, keyed by contest name."""
    results: Dict[str, List[ChangeEvent]] = {}
    for contest, snapshot in current.contests.items():
        before = previous.get(contest) if previous is not None else None
        results[contest] = diff(
            before,
            snapshot,
            target,
            top_n=top_n,
            report_disappearance=report_disappearance,
        )
    return results
