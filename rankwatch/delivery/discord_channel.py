from typing import Any, Dict, Optional

import httpx
from loguru import logger
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from rankwatch.models.enums import ChannelKind
from rankwatch.rendering.messages import RenderedMessage
from .channel import DeliveryChannel, DeliveryError, RecipientUnavailableError

DISCORD_API_BASE_URL = "https://discord.com/api/v10"

# Define common HTTP status codes that warrant a retry
RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}


class _RetryableDeliveryError(DeliveryError):
    pass


def build_embed(message: RenderedMessage) -> Dict[str, Any]:
    """Converts a rendered message into a Discord embed payload."""
    embed: Dict[str, Any] = {"title": message.title, "color": message.color}
    if message.description:
        embed["description"] = message.description
    if message.fields:
        embed["fields"] = [
            {"name": field.name, "value": field.value, "inline": False}
            for field in message.fields
        ]
    return embed


class DiscordChannel(DeliveryChannel):
    """Delivers messages as embeds through the Discord REST API."""

    def __init__(self, token: str, client: Optional[httpx.AsyncClient] = None):
        if not token:
            raise ValueError("A Discord bot token is required.")
        self.client = client or httpx.AsyncClient(
            base_url=DISCORD_API_BASE_URL,
            timeout=httpx.Timeout(15.0),
            headers={
                "Authorization": f"Bot {token}",
                "User-Agent": "DiscordBot (rankwatch, 0.1.0)",
            },
        )
        # Direct recipients are user ids; messages go to their DM channel
        self._dm_channels: Dict[str, str] = {}

    async def deliver(
        self,
        recipient_id: str,
        message: RenderedMessage,
        channel_kind: ChannelKind = ChannelKind.DIRECT,
    ) -> None:
        if channel_kind == ChannelKind.DIRECT:
            channel_id = await self._dm_channel_id(recipient_id)
        else:
            channel_id = recipient_id
        await self._post(
            f"/channels/{channel_id}/messages", {"embeds": [build_embed(message)]}
        )
        logger.debug(f"Delivered '{message.title}' to {recipient_id}")

    async def _dm_channel_id(self, user_id: str) -> str:
        cached = self._dm_channels.get(user_id)
        if cached:
            return cached
        response = await self._post("/users/@me/channels", {"recipient_id": user_id})
        try:
            channel_id = str(response.json()["id"])
        except (ValueError, KeyError) as e:
            raise DeliveryError(f"Unexpected DM channel response for {user_id}") from e
        self._dm_channels[user_id] = channel_id
        return channel_id

    async def _post(self, path: str, payload: Dict[str, Any]) -> httpx.Response:
        try:
            return await self._post_with_retries(path, payload)
        except _RetryableDeliveryError as e:
            logger.error(f"Max retries exceeded for Discord request to {path}: {e}")
            raise DeliveryError(str(e)) from e
        except httpx.RequestError as e:
            logger.error(f"Network error after retries for Discord request to {path}: {e}")
            raise DeliveryError(f"Network error: {e}") from e

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type((httpx.RequestError, _RetryableDeliveryError)),
        reraise=True,
    )
    async def _post_with_retries(
        self, path: str, payload: Dict[str, Any]
    ) -> httpx.Response:
        response = await self.client.post(path, json=payload)

        if response.status_code in {403, 404}:
            # Recipient blocked the bot, left the server, or the channel is gone
            raise RecipientUnavailableError(
                f"Discord refused {path} ({response.status_code})"
            )
        if response.status_code in RETRYABLE_STATUS_CODES:
            retry_after = response.headers.get("Retry-After")
            logger.warning(
                f"Discord returned {response.status_code} for {path}. Retry-After: {retry_after}"
            )
            raise _RetryableDeliveryError(
                f"Discord returned {response.status_code} for {path}"
            )
        if response.status_code >= 400:
            logger.error(f"Discord error {response.status_code} for {path}: {response.text}")
            raise DeliveryError(f"Discord returned {response.status_code} for {path}")
        return response

    async def close(self) -> None:
        """Closes the underlying HTTP client."""
        await self.client.aclose()
        logger.info("Closed Discord HTTP client")
