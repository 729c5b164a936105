import asyncio
import json

import httpx
import pytest

from rankwatch.delivery.discord_channel import (
    DISCORD_API_BASE_URL,
    DiscordChannel,
    build_embed,
)
from rankwatch.delivery.channel import RecipientUnavailableError
from rankwatch.models.enums import ChannelKind
from rankwatch.rendering.messages import RenderedMessage


def make_message():
    message = RenderedMessage(title="Rank Notification", description="hi")
    message.add_field("People Analytics", "Team K2IV moved up")
    return message


def discord_for(responder):
    client = httpx.AsyncClient(
        base_url=DISCORD_API_BASE_URL, transport=httpx.MockTransport(responder)
    )
    return DiscordChannel("token", client=client)


def test_build_embed():
    assert build_embed(make_message()) == {
        "title": "Rank Notification",
        "color": 0x008891,
        "description": "hi",
        "fields": [
            {"name": "People Analytics", "value": "Team K2IV moved up", "inline": False}
        ],
    }


def test_direct_messages_open_a_dm_channel_once():
    calls = []

    def responder(request):
        calls.append((request.url.path, json.loads(request.content)))
        if request.url.path.endswith("/users/@me/channels"):
            return httpx.Response(200, json={"id": "555"})
        return httpx.Response(200, json={"id": "1"})

    channel = discord_for(responder)

    async def send_twice():
        await channel.deliver("42", make_message(), ChannelKind.DIRECT)
        await channel.deliver("42", make_message(), ChannelKind.DIRECT)

    asyncio.run(send_twice())

    paths = [path for path, _ in calls]
    assert paths == [
        "/api/v10/users/@me/channels",
        "/api/v10/channels/555/messages",
        "/api/v10/channels/555/messages",
    ]
    assert calls[0][1] == {"recipient_id": "42"}
    assert calls[1][1]["embeds"][0]["title"] == "Rank Notification"


def test_group_messages_go_straight_to_the_channel():
    paths = []

    def responder(request):
        paths.append(request.url.path)
        return httpx.Response(200, json={"id": "1"})

    asyncio.run(discord_for(responder).deliver("777", make_message(), ChannelKind.GROUP))
    assert paths == ["/api/v10/channels/777/messages"]


def test_revoked_access_raises_delivery_error():
    def responder(request):
        return httpx.Response(403, json={"message": "Cannot send messages to this user"})

    with pytest.raises(RecipientUnavailableError):
        asyncio.run(discord_for(responder).deliver("777", make_message(), ChannelKind.GROUP))


def test_token_is_required():
    with pytest.raises(ValueError):
        DiscordChannel("")
