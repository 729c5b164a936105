from decimal import Decimal
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from .enums import ChangeKind


class _Event(BaseModel):
    """Common base for change events; ``team`` is the subject of the change."""

    model_config = ConfigDict(frozen=True)

    team: str


class RankImproved(_Event):
    kind: Literal[ChangeKind.RANK_IMPROVED] = ChangeKind.RANK_IMPROVED
    previous: int
    current: int


class RankWorsened(_Event):
    kind: Literal[ChangeKind.RANK_WORSENED] = ChangeKind.RANK_WORSENED
    previous: int
    current: int


class ScoreImproved(_Event):
    kind: Literal[ChangeKind.SCORE_IMPROVED] = ChangeKind.SCORE_IMPROVED
    previous: Decimal
    current: Decimal


class ScoreDecreased(_Event):
    """Scores should never go down; seeing one means the scorer misbehaved."""

    kind: Literal[ChangeKind.SCORE_DECREASED] = ChangeKind.SCORE_DECREASED
    previous: Decimal
    current: Decimal


class FirstObserved(_Event):
    kind: Literal[ChangeKind.FIRST_OBSERVED] = ChangeKind.FIRST_OBSERVED
    rank: int
    score: Decimal
    pool_size: int


class TeamDisappeared(_Event):
    kind: Literal[ChangeKind.TEAM_DISAPPEARED] = ChangeKind.TEAM_DISAPPEARED
    last_rank: int
    last_score: Decimal


class EnteredTop10(_Event):
    kind: Literal[ChangeKind.ENTERED_TOP10] = ChangeKind.ENTERED_TOP10
    rank: int
    score: Decimal


class ExitedTop10(_Event):
    kind: Literal[ChangeKind.EXITED_TOP10] = ChangeKind.EXITED_TOP10


class Top10ScoreImproved(_Event):
    kind: Literal[ChangeKind.TOP10_SCORE_IMPROVED] = ChangeKind.TOP10_SCORE_IMPROVED
    previous: Decimal
    current: Decimal
    rank_changed: bool


ChangeEvent = Annotated[
    Union[
        RankImproved,
        RankWorsened,
        ScoreImproved,
        ScoreDecreased,
        FirstObserved,
        TeamDisappeared,
        EnteredTop10,
        ExitedTop10,
        Top10ScoreImproved,
    ],
    Field(discriminator="kind"),
]
