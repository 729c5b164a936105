from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from bs4 import BeautifulSoup, Tag
from loguru import logger
from pydantic import ValidationError

from rankwatch.models.leaderboard import ContestSnapshot, SnapshotSet, TeamEntry
from rankwatch.scrapers.base_scraper import StructuralError

# rank, team name, score, submission time
EXPECTED_COLUMNS = 4


def _heading_text(table: Tag) -> Optional[str]:
    """Text of the element right before the table's container, the contest title."""
    container = table.parent
    if container is None:
        return None
    heading = container.find_previous_sibling()
    if heading is None:
        return None
    return " ".join(heading.get_text(" ", strip=True).split())


def find_contest_tables(soup: BeautifulSoup, contests: Sequence[str]) -> Dict[str, Tag]:
    """Maps each tracked contest to its table.

    Raises:
        StructuralError: Unless exactly one table is found per contest.
    """
    wanted = set(contests)
    matches: List[tuple] = []
    for table in soup.find_all("table"):
        heading = _heading_text(table)
        if heading in wanted:
            matches.append((heading, table))

    found = {heading for heading, _ in matches}
    if len(matches) != len(contests) or found != wanted:
        missing = [c for c in contests if c not in found]
        logger.error(
            f"There should be {len(contests)} scoreboards, but found {len(matches)} "
            f"(missing: {missing})"
        )
        raise StructuralError(
            f"Error fetching the web: there should be {len(contests)} scoreboards, "
            f"but found {len(matches)}"
        )
    return {heading: table for heading, table in matches}


def parse_table(contest: str, table: Tag) -> ContestSnapshot:
    entries: List[TeamEntry] = []
    for row_number, tr in enumerate(table.find_all("tr"), start=1):
        cells = tr.find_all("td")
        if not cells:
            continue  # header row
        if len(cells) < EXPECTED_COLUMNS:
            raise StructuralError(
                f"Contest '{contest}': row {row_number} has {len(cells)} cells, "
                f"expected {EXPECTED_COLUMNS}"
            )
        rank, name, score, submitted_at = (
            cell.get_text(" ", strip=True) for cell in cells[:EXPECTED_COLUMNS]
        )
        try:
            entries.append(
                TeamEntry(rank=rank, name=name, score=score, submitted_at=submitted_at)
            )
        except ValidationError as e:
            raise StructuralError(
                f"Contest '{contest}': row {row_number} is malformed: {e}"
            ) from e

    try:
        return ContestSnapshot(contest=contest, entries=tuple(entries))
    except ValidationError as e:
        raise StructuralError(f"Contest '{contest}' is inconsistent: {e}") from e


def parse_snapshot_set(
    html: str,
    contests: Sequence[str],
    observed_at: Optional[datetime] = None,
) -> SnapshotSet:
    """Parses the dashboard page into a SnapshotSet, contests in tracked order."""
    soup = BeautifulSoup(html, "html.parser")
    tables = find_contest_tables(soup, contests)
    snapshots = {contest: parse_table(contest, tables[contest]) for contest in contests}
    for contest, snapshot in snapshots.items():
        logger.debug(f"Parsed {len(snapshot)} teams for '{contest}'")
    return SnapshotSet(
        contests=snapshots,
        observed_at=observed_at or datetime.now(timezone.utc),
    )
