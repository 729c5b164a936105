from typing import Optional, Tuple

from loguru import logger

from rankwatch.diff.engine import diff_contests
from rankwatch.models.enums import (
    TOP10,
    ChannelKind,
    SubscribeResult,
    UnsubscribeResult,
)
from rankwatch.rendering.messages import (
    RenderedMessage,
    render_help,
    render_notice,
    render_team_update,
    render_top10,
)
from rankwatch.storage.snapshot_store import SnapshotStore
from rankwatch.storage.subscriber_registry import SubscriberRegistry, normalize_target

WELCOME_TEXT = (
    "Hi! You will now get the top 10 of every contest whenever it changes. "
    "Send `help` to see what else I can do."
)

COMMANDS = ("help", "top10", "sub", "unsub")


def parse_command(text: str) -> Tuple[str, str]:
    """Splits a message into a lower-cased command word and its argument."""
    words = (text or "").split()
    if not words:
        return "", ""
    return words[0].casefold(), " ".join(words[1:])


class CommandHandler:
    """Answers the text commands subscribers send to the bot.

    Handling never awaits, so registry changes made here cannot interleave
    with a dispatch cycle half-way through.
    """

    def __init__(
        self,
        registry: SubscriberRegistry,
        store: SnapshotStore,
        *,
        top_n: int = 10,
        neighbor_window: int = 2,
    ):
        self.registry = registry
        self.store = store
        self.top_n = top_n
        self.neighbor_window = neighbor_window

    def handle(
        self, sender_id: str, channel_kind: ChannelKind, text: str
    ) -> Optional[RenderedMessage]:
        """Returns the reply for ``text``, or None when the bot stays quiet."""
        command, argument = parse_command(text)
        if command not in COMMANDS and channel_kind != ChannelKind.DIRECT:
            # Group chatter that isn't meant for us
            return None
        _, created = self.registry.get_or_create(sender_id, channel_kind)
        logger.debug(f"Command '{command}' from {sender_id} ({channel_kind.value})")

        if command == "help":
            reply = render_help()
        elif command == "top10":
            reply = self._top10()
        elif command == "sub":
            reply = self._subscribe(sender_id, argument)
        elif command == "unsub":
            reply = self._unsubscribe(sender_id, argument)
        else:
            reply = render_help()

        if created and channel_kind == ChannelKind.DIRECT:
            reply.description = f"{WELCOME_TEXT}\n\n{reply.description}".strip()
        return reply

    def resolve_target(self, argument: str) -> str:
        """Maps user input onto a known team name, keeping it as typed otherwise."""
        target = normalize_target(argument)
        current = self.store.current
        if target == TOP10 or current is None:
            return target
        for snapshot in current.contests.values():
            entry = snapshot.find_casefold(target)
            if entry is not None:
                return entry.name
        return target

    def _top10(self) -> RenderedMessage:
        current = self.store.current
        if current is None:
            return render_notice(
                f"Top {self.top_n} Leaderboard", "No leaderboard data yet, try again soon."
            )
        return render_top10(current, {}, top_n=self.top_n)

    def _subscribe(self, sender_id: str, argument: str) -> RenderedMessage:
        if not argument.strip():
            return render_notice("Subscription", "Usage: `sub <team name>` or `sub top10`")
        target = self.resolve_target(argument)
        result = self.registry.subscribe(sender_id, target)
        if result == SubscribeResult.ALREADY_SUBSCRIBED:
            return render_notice("Subscription", f"You are already subscribed to **{target}**.")

        reply = self._standing(target)
        reply.description = f"You are now subscribed to **{target}**."
        return reply

    def _unsubscribe(self, sender_id: str, argument: str) -> RenderedMessage:
        if not argument.strip():
            return render_notice("Subscription", "Usage: `unsub <team name>` or `unsub top10`")
        target = self.resolve_target(argument)
        result = self.registry.unsubscribe(sender_id, target)
        if result == UnsubscribeResult.NOT_SUBSCRIBED:
            return render_notice("Subscription", f"You are not subscribed to **{target}**.")
        return render_notice("Subscription", f"You are no longer subscribed to **{target}**.")

    def _standing(self, target: str) -> RenderedMessage:
        """Current position of a freshly subscribed target, as far as we know it."""
        current = self.store.current
        if current is None:
            return render_notice("Subscription", "")
        if target == TOP10:
            return render_top10(current, {}, top_n=self.top_n)
        return render_team_update(
            target,
            current,
            diff_contests(None, current, target),
            first_observation=True,
            neighbor_window=self.neighbor_window,
        )
