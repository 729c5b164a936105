from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def parse_score(value: Any) -> Decimal:
    """Parses a leaderboard score into a Decimal.

    Scores arrive as page text such as ``"0.87312"`` or ``"1,204.5"``.
    A lone comma is read as the decimal separator (``"0,873"``).
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    text = str(value).strip().replace(" ", "")
    if "," in text and "." in text:
        text = text.replace(",", "")
    elif "," in text:
        text = text.replace(",", ".")
    try:
        score = Decimal(text)
    except InvalidOperation:
        raise ValueError(f"score is not numeric: {value!r}")
    if not score.is_finite():
        raise ValueError(f"score is not finite: {value!r}")
    return score


class TeamEntry(BaseModel):
    """One row of a contest leaderboard."""

    model_config = ConfigDict(frozen=True)

    rank: int = Field(..., gt=0)
    name: str = Field(..., min_length=1)
    score: Decimal
    submitted_at: str = ""

    @field_validator("rank", mode="before")
    @classmethod
    def _parse_rank(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().rstrip(".")
        return value

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("score", mode="before")
    @classmethod
    def _parse_score(cls, value: Any) -> Decimal:
        return parse_score(value)

    @field_validator("submitted_at", mode="before")
    @classmethod
    def _strip_submitted_at(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


class ContestSnapshot(BaseModel):
    """The full ranked team list of one contest, ordered by rank."""

    model_config = ConfigDict(frozen=True)

    contest: str
    entries: Tuple[TeamEntry, ...] = ()

    @model_validator(mode="after")
    def _check_ranking(self) -> "ContestSnapshot":
        # Ranks must read 1, 2, ..., n; anything else is an upstream parsing fault
        for expected, entry in enumerate(self.entries, start=1):
            if entry.rank != expected:
                raise ValueError(
                    f"contest '{self.contest}': rank {entry.rank} found where "
                    f"rank {expected} was expected"
                )
        seen = set()
        for entry in self.entries:
            if entry.name in seen:
                raise ValueError(
                    f"contest '{self.contest}': duplicate team name '{entry.name}'"
                )
            seen.add(entry.name)
        return self

    def __len__(self) -> int:
        return len(self.entries)

    def find(self, name: str) -> Optional[TeamEntry]:
        for entry in self.entries:
            if entry.name == name:
                return entry
        return None

    def find_casefold(self, name: str) -> Optional[TeamEntry]:
        wanted = name.casefold()
        for entry in self.entries:
            if entry.name.casefold() == wanted:
                return entry
        return None

    def top(self, n: int) -> Tuple[TeamEntry, ...]:
        return self.entries[:n]

    def window(self, name: str, radius: int) -> List[TeamEntry]:
        """Entries ranked within ``radius`` places of ``name`` (inclusive)."""
        entry = self.find(name)
        if entry is None:
            return []
        start = max(entry.rank - 1 - radius, 0)
        return list(self.entries[start : entry.rank + radius])


class SnapshotSet(BaseModel):
    """All tracked contests as observed at one point in time."""

    model_config = ConfigDict(frozen=True)

    contests: Dict[str, ContestSnapshot]
    observed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="after")
    def _check_keys(self) -> "SnapshotSet":
        for name, snapshot in self.contests.items():
            if name != snapshot.contest:
                raise ValueError(
                    f"contest key '{name}' does not match snapshot '{snapshot.contest}'"
                )
        return self

    @property
    def contest_names(self) -> List[str]:
        return list(self.contests.keys())

    def get(self, contest: str) -> Optional[ContestSnapshot]:
        return self.contests.get(contest)
