from typing import List, Set

from pydantic import BaseModel, Field, field_serializer

from .enums import ChannelKind, TOP10


class Subscriber(BaseModel):
    """A delivery address and the targets it wants notifications for."""

    id: str = Field(..., min_length=1)
    channel_kind: ChannelKind = ChannelKind.DIRECT
    subscriptions: Set[str] = Field(default_factory=lambda: {TOP10})

    @field_serializer("subscriptions")
    def _sorted_subscriptions(self, subscriptions: Set[str]) -> List[str]:
        # Stable file contents between runs
        return sorted(subscriptions)

    def sorted_targets(self) -> List[str]:
        """Targets in delivery order: the aggregate view first, then teams."""
        return sorted(self.subscriptions, key=lambda t: (t != TOP10, t.casefold()))
