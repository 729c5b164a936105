import asyncio

import pytest

from conftest import RecordingChannel, make_set
from rankwatch.delivery.channel import OperatorReporter
from rankwatch.dispatch.dispatcher import NotificationDispatcher
from rankwatch.models.enums import TOP10, ChannelKind
from rankwatch.storage.subscriber_registry import SubscriberRegistry

OPERATOR = "operator"

PREV = make_set({"PA": [("A", 10), ("B", 8)], "CRO": [("A", 3)]})
CURR = make_set({"PA": [("B", 12), ("A", 10)], "CRO": [("A", 3)]})


@pytest.fixture
def registry(state_dir):
    return SubscriberRegistry(state_dir / "subscribers.json")


def make_dispatcher(registry, channel):
    return NotificationDispatcher(
        registry, channel, OperatorReporter(channel, OPERATOR), neighbor_window=0
    )


def test_first_cycle_notifies_every_target(registry, channel):
    registry.get_or_create("u1", ChannelKind.DIRECT)
    registry.subscribe("u1", "A")
    registry.subscribe("u1", "Nobody")

    report = asyncio.run(make_dispatcher(registry, channel).dispatch_cycle(None, CURR))

    titles = [m.title for m in channel.to("u1")]
    assert titles == ["Top 10 Leaderboard", "Rank Notification", "Rank Notification"]
    assert report.sent == 3
    assert report.failed == 0


def test_only_targets_with_changes_are_notified(registry, channel):
    registry.get_or_create("u1", ChannelKind.DIRECT)
    registry.subscribe("u1", "A")
    registry.unsubscribe("u1", TOP10)
    registry.get_or_create("u2", ChannelKind.DIRECT)
    registry.unsubscribe("u2", TOP10)
    registry.subscribe("u2", "Z")

    report = asyncio.run(make_dispatcher(registry, channel).dispatch_cycle(PREV, CURR))

    [message] = channel.to("u1")
    assert [f.name for f in message.fields] == ["PA"]
    assert "moved down" in message.fields[0].value
    assert channel.to("u2") == []
    assert report.sent == 1
    assert report.skipped == 1


def test_no_changes_means_no_messages(registry, channel):
    registry.get_or_create("u1", ChannelKind.DIRECT)
    report = asyncio.run(make_dispatcher(registry, channel).dispatch_cycle(CURR, CURR))
    assert channel.sent == []
    assert report.skipped == 1


def test_delivery_failure_is_isolated_and_reported(registry):
    channel = RecordingChannel(failing=["u1"])
    for subscriber_id in ("u1", "u2", "u3"):
        registry.get_or_create(subscriber_id, ChannelKind.DIRECT)

    report = asyncio.run(make_dispatcher(registry, channel).dispatch_cycle(PREV, CURR))

    assert len(channel.to("u2")) == 1
    assert len(channel.to("u3")) == 1
    assert report.failed == 1
    assert report.failures[0].subscriber_id == "u1"
    [operator_report] = channel.to(OPERATOR)
    assert "u1" in operator_report.description


def test_unreachable_operator_does_not_break_dispatch(registry):
    channel = RecordingChannel(failing=["u1", OPERATOR])
    registry.get_or_create("u1", ChannelKind.DIRECT)
    registry.get_or_create("u2", ChannelKind.GROUP)

    report = asyncio.run(make_dispatcher(registry, channel).dispatch_cycle(PREV, CURR))

    assert report.sent == 1
    assert channel.sent[0][0] == "u2"
    assert channel.sent[0][2] == ChannelKind.GROUP
