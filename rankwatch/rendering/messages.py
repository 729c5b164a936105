from io import StringIO
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, Field
from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from rankwatch.models.enums import TOP10, ChangeKind
from rankwatch.models.events import ChangeEvent
from rankwatch.models.leaderboard import SnapshotSet, TeamEntry

BRAND_COLOR = 0x008891
ERROR_COLOR = 0xE74C3C

# Discord embed limits
MAX_FIELD_VALUE_LENGTH = 1024
MAX_DESCRIPTION_LENGTH = 4096
MAX_FIELDS = 25


class MessageField(BaseModel):
    name: str
    value: str


class RenderedMessage(BaseModel):
    """A presentable notification, independent of the delivery platform."""

    title: str
    description: str = ""
    fields: List[MessageField] = Field(default_factory=list)
    color: int = BRAND_COLOR

    def add_field(self, name: str, value: str) -> None:
        if len(self.fields) >= MAX_FIELDS:
            return
        self.fields.append(MessageField(name=name, value=_clip(value)))

    def to_text(self) -> str:
        """Plain-text rendering, used for logs and channels without embeds."""
        parts = [f"**{self.title}**"]
        if self.description:
            parts.append(self.description)
        for field in self.fields:
            parts.append(f"__{field.name}__\n{field.value}")
        return "\n\n".join(parts)


def _clip(value: str, limit: int = MAX_FIELD_VALUE_LENGTH) -> str:
    if len(value) <= limit:
        return value
    return value[: limit - 1].rstrip() + "…"


def _fit_lines(head: str, lines: Sequence[str], limit: int = MAX_FIELD_VALUE_LENGTH) -> str:
    """Appends ``lines`` to ``head`` while they fit, noting how many were dropped."""
    value = head
    for i, line in enumerate(lines):
        candidate = f"{value}\n{line}" if value else line
        if len(candidate) > limit - 20:
            return f"{value}\n… and {len(lines) - i} more"
        value = candidate
    return value


def render_table(entries: Sequence[TeamEntry], highlight: Optional[str] = None) -> str:
    """Renders leaderboard rows as an ASCII table inside a code block."""
    table = Table(box=box.ASCII, header_style="", show_edge=True)
    table.add_column("Rank", justify="right")
    # One line per team keeps ten rows well inside a field
    table.add_column("Team Name", max_width=24, overflow="ellipsis", no_wrap=True)
    table.add_column("Score", justify="right")
    for entry in entries:
        name = f"> {entry.name}" if entry.name == highlight else entry.name
        table.add_row(str(entry.rank), Text(name), str(entry.score))

    console = Console(
        file=StringIO(),
        width=56,
        color_system=None,
        force_terminal=False,
        highlight=False,
        emoji=False,
    )
    console.print(table)
    return "```\n" + console.file.getvalue().rstrip() + "\n```"


def describe_event(event: ChangeEvent, top_n: int = 10) -> str:
    """One human-readable line for a change event."""
    team = event.team
    kind = event.kind
    if kind == ChangeKind.RANK_IMPROVED:
        return (
            f"Team {team} moved up the leaderboard from **rank {event.previous}** "
            f"to **rank {event.current}**!"
        )
    if kind == ChangeKind.RANK_WORSENED:
        return (
            f"Team {team} moved down the leaderboard from **rank {event.previous}** "
            f"to **rank {event.current}** 😔"
        )
    if kind == ChangeKind.SCORE_IMPROVED:
        return (
            f"Team {team}'s score improved from **{event.previous}** "
            f"to **{event.current}**!"
        )
    if kind == ChangeKind.SCORE_DECREASED:
        return (
            f"Team {team}'s score decreased from **{event.previous}** "
            f"to **{event.current}** ... but ... how ...?"
        )
    if kind == ChangeKind.FIRST_OBSERVED:
        return (
            f"Team {team} is on **rank {event.rank}** of {event.pool_size} "
            f"with score **{event.score}**"
        )
    if kind == ChangeKind.TEAM_DISAPPEARED:
        return (
            f"Team {team} is no longer on the leaderboard "
            f"(last seen at **rank {event.last_rank}** with score **{event.last_score}**)"
        )
    if kind == ChangeKind.ENTERED_TOP10:
        return (
            f"{team} entered the top {top_n} at **rank {event.rank}** "
            f"with score **{event.score}**"
        )
    if kind == ChangeKind.EXITED_TOP10:
        return f"{team} dropped out of the top {top_n}"
    if kind == ChangeKind.TOP10_SCORE_IMPROVED:
        suffix = " and changed position" if event.rank_changed else ""
        verb = "improved" if event.current > event.previous else "dropped"
        return (
            f"{team}'s score {verb} from **{event.previous}** "
            f"to **{event.current}**{suffix}"
        )
    raise ValueError(f"Unknown change event kind: {kind}")


def render_team_update(
    team: str,
    current: SnapshotSet,
    events_by_contest: Dict[str, List[ChangeEvent]],
    *,
    first_observation: bool = False,
    neighbor_window: int = 2,
) -> RenderedMessage:
    """Builds the notification for a single tracked team.

    Contests without events are left out, except on a first observation
    where a contest missing the team gets a "not found" notice.
    """
    message = RenderedMessage(title="Rank Notification")
    for contest, events in events_by_contest.items():
        snapshot = current.get(contest)
        entry = snapshot.find(team) if snapshot is not None else None

        if not events:
            if entry is None and first_observation:
                message.add_field(
                    contest, f"Team {team} was not found in this contest."
                )
            continue

        lines = [describe_event(event) for event in events]
        if entry is not None:
            lines.append(f"> Submission Date: {entry.submitted_at or 'unknown'}")
            if neighbor_window > 0:
                lines.append(
                    render_table(snapshot.window(team, neighbor_window), highlight=team)
                )
        message.add_field(contest, "\n".join(lines))
    return message


def render_top10(
    current: SnapshotSet,
    events_by_contest: Dict[str, List[ChangeEvent]],
    *,
    top_n: int = 10,
) -> RenderedMessage:
    """Builds the aggregate view: every contest's full top table, plus updates."""
    message = RenderedMessage(title=f"Top {top_n} Leaderboard")
    for contest, snapshot in current.contests.items():
        table = render_table(snapshot.top(top_n))
        events = events_by_contest.get(contest) or []
        if events:
            updates = [f"- {describe_event(event, top_n)}" for event in events]
            value = _fit_lines(table + "\nUpdates:", updates)
        else:
            value = table
        message.add_field(contest, value)
    return message


def render_target_update(
    target: str,
    current: SnapshotSet,
    events_by_contest: Dict[str, List[ChangeEvent]],
    *,
    first_observation: bool = False,
    top_n: int = 10,
    neighbor_window: int = 2,
) -> RenderedMessage:
    if target == TOP10:
        return render_top10(current, events_by_contest, top_n=top_n)
    return render_team_update(
        target,
        current,
        events_by_contest,
        first_observation=first_observation,
        neighbor_window=neighbor_window,
    )


def render_notice(title: str, text: str) -> RenderedMessage:
    return RenderedMessage(title=title, description=_clip(text, MAX_DESCRIPTION_LENGTH))


def render_error(error: object) -> RenderedMessage:
    # Clip the text, not the fenced block, so the fence stays closed
    text = _clip(str(error), MAX_DESCRIPTION_LENGTH - 20)
    return RenderedMessage(
        title="An Error Occurred",
        description=f"```bash\n{text}\n```",
        color=ERROR_COLOR,
    )


def render_help() -> RenderedMessage:
    return render_notice(
        "Leaderboard Bot",
        "\n".join(
            [
                "`sub <team>` follow rank and score changes of a team",
                "`sub top10` follow the top 10 of every contest",
                "`unsub <team|top10>` stop following a target",
                "`top10` show the current top 10",
                "`help` show this message",
            ]
        ),
    )
