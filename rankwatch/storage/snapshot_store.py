from pathlib import Path
from typing import Iterable, List, Optional

from loguru import logger
from pydantic import ValidationError

from rankwatch.models.leaderboard import ContestSnapshot, SnapshotSet
from .json_store import PersistenceError, read_json, write_json_atomic


class SnapshotValidationError(Exception):
    """Raised when a fresh snapshot set is refused at ingest."""

    pass


class SnapshotStore:
    """Holds the current snapshot set and keeps its file in sync."""

    def __init__(self, path: Path, expected_contests: Iterable[str]):
        self.path = Path(path)
        self.expected_contests: List[str] = list(expected_contests)
        self._current: Optional[SnapshotSet] = None

    @property
    def current(self) -> Optional[SnapshotSet]:
        return self._current

    def load(self) -> Optional[SnapshotSet]:
        """Restores the last persisted snapshot set, if there is one."""
        data = read_json(self.path)
        if data is None:
            logger.info(f"No snapshot file at {self.path}; starting without history.")
            return None
        try:
            snapshot_set = SnapshotSet.model_validate(data)
        except ValidationError as e:
            raise PersistenceError(f"Snapshot file {self.path} is invalid: {e}") from e

        if set(snapshot_set.contest_names) != set(self.expected_contests):
            # Tracked contests were reconfigured; the old history cannot be diffed
            logger.warning(
                f"Persisted contests {snapshot_set.contest_names} differ from "
                f"configured {self.expected_contests}; ignoring snapshot file."
            )
            return None

        self._current = snapshot_set
        logger.info(
            f"Loaded snapshot observed at {snapshot_set.observed_at.isoformat()} "
            f"for {len(snapshot_set.contests)} contests."
        )
        return snapshot_set

    def validate(self, snapshot_set: SnapshotSet) -> None:
        """Raises SnapshotValidationError if ``snapshot_set`` may not become current."""
        names = snapshot_set.contest_names
        if set(names) != set(self.expected_contests):
            raise SnapshotValidationError(
                f"Tracked contests changed: expected {self.expected_contests}, got {names}"
            )
        for name, snapshot in snapshot_set.contests.items():
            # Re-run the model checks; model_construct() callers skip them
            try:
                ContestSnapshot.model_validate(snapshot.model_dump())
            except ValidationError as e:
                raise SnapshotValidationError(
                    f"Contest '{name}' failed validation: {e}"
                ) from e

    def replace(self, snapshot_set: SnapshotSet) -> Optional[SnapshotSet]:
        """Makes ``snapshot_set`` current and returns what was current before.

        The new set is validated and written to disk before the in-memory
        swap, so a failure at either step leaves the old set current.
        """
        self.validate(snapshot_set)
        write_json_atomic(self.path, snapshot_set.model_dump(mode="json"))
        previous, self._current = self._current, snapshot_set
        logger.debug(
            f"Snapshot replaced (observed_at={snapshot_set.observed_at.isoformat()})."
        )
        return previous
