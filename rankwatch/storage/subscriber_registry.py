from pathlib import Path
from typing import Dict, List, Optional, Tuple

from loguru import logger
from pydantic import ValidationError

from rankwatch.models.enums import (
    TOP10,
    ChannelKind,
    SubscribeResult,
    UnsubscribeResult,
)
from rankwatch.models.subscriber import Subscriber
from .json_store import PersistenceError, read_json, write_json_atomic


def normalize_target(target: str) -> str:
    """Collapses whitespace; the reserved aggregate target is case-insensitive."""
    cleaned = " ".join(target.split())
    if cleaned.casefold() == TOP10:
        return TOP10
    return cleaned


class SubscriberRegistry:
    """Subscribers keyed by delivery address, persisted on every mutation.

    Mutations build the next state, write it to disk and only then swap it
    in. None of them awaits, so an interleaved reader on the event loop sees
    either the old or the new state in full.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._subscribers: Dict[str, Subscriber] = {}

    def load(self) -> int:
        data = read_json(self.path)
        if data is None:
            logger.info(f"No subscriber file at {self.path}; starting empty.")
            return 0
        try:
            loaded = [Subscriber.model_validate(s) for s in data.get("subscribers", [])]
        except (ValidationError, AttributeError) as e:
            raise PersistenceError(f"Subscriber file {self.path} is invalid: {e}") from e
        self._subscribers = {s.id: s for s in loaded}
        logger.info(f"Loaded {len(self._subscribers)} subscribers from {self.path}.")
        return len(self._subscribers)

    def get(self, subscriber_id: str) -> Optional[Subscriber]:
        return self._subscribers.get(subscriber_id)

    def subscribers(self) -> List[Subscriber]:
        """A point-in-time copy, safe to iterate across awaits."""
        return list(self._subscribers.values())

    def __len__(self) -> int:
        return len(self._subscribers)

    def get_or_create(
        self, subscriber_id: str, channel_kind: ChannelKind
    ) -> Tuple[Subscriber, bool]:
        existing = self._subscribers.get(subscriber_id)
        if existing is not None:
            return existing, False

        subscriber = Subscriber(id=subscriber_id, channel_kind=channel_kind)
        self._commit({**self._subscribers, subscriber_id: subscriber})
        logger.info(f"New {channel_kind.value} subscriber {subscriber_id}")
        return subscriber, True

    def subscribe(self, subscriber_id: str, target: str) -> SubscribeResult:
        subscriber = self._require(subscriber_id)
        target = normalize_target(target)
        if target in subscriber.subscriptions:
            return SubscribeResult.ALREADY_SUBSCRIBED

        updated = subscriber.model_copy(
            update={"subscriptions": subscriber.subscriptions | {target}}
        )
        self._commit({**self._subscribers, subscriber_id: updated})
        logger.info(f"{subscriber_id} subscribed to '{target}'")
        return SubscribeResult.SUBSCRIBED

    def unsubscribe(self, subscriber_id: str, target: str) -> UnsubscribeResult:
        subscriber = self._require(subscriber_id)
        target = normalize_target(target)
        if target not in subscriber.subscriptions:
            return UnsubscribeResult.NOT_SUBSCRIBED

        # An empty subscription set is kept; the record itself stays
        updated = subscriber.model_copy(
            update={"subscriptions": subscriber.subscriptions - {target}}
        )
        self._commit({**self._subscribers, subscriber_id: updated})
        logger.info(f"{subscriber_id} unsubscribed from '{target}'")
        return UnsubscribeResult.UNSUBSCRIBED

    def _require(self, subscriber_id: str) -> Subscriber:
        subscriber = self._subscribers.get(subscriber_id)
        if subscriber is None:
            raise KeyError(f"Unknown subscriber {subscriber_id}")
        return subscriber

    def _commit(self, subscribers: Dict[str, Subscriber]) -> None:
        payload = {
            "subscribers": [s.model_dump(mode="json") for s in subscribers.values()]
        }
        write_json_atomic(self.path, payload)
        self._subscribers = subscribers
