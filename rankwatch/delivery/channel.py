from abc import ABC, abstractmethod
from typing import Optional

from loguru import logger

from rankwatch.models.enums import ChannelKind
from rankwatch.rendering.messages import RenderedMessage, render_error


class DeliveryError(Exception):
    """Raised when a message could not be delivered to one recipient."""

    pass


class RecipientUnavailableError(DeliveryError):
    """The recipient is gone or no longer accepts messages (403/404)."""

    pass


class DeliveryChannel(ABC):
    """Abstract base class for outbound message delivery."""

    @abstractmethod
    async def deliver(
        self,
        recipient_id: str,
        message: RenderedMessage,
        channel_kind: ChannelKind = ChannelKind.DIRECT,
    ) -> None:
        """Delivers ``message`` to ``recipient_id``.

        Raises:
            DeliveryError: If the message was not accepted by the platform.
        """
        pass

    async def close(self) -> None:
        pass


class OperatorReporter:
    """Sends error reports to the operator on a best-effort basis."""

    def __init__(self, channel: DeliveryChannel, operator_id: Optional[str]):
        self.channel = channel
        self.operator_id = operator_id

    async def notify(self, message: RenderedMessage) -> bool:
        if not self.operator_id:
            logger.warning(f"No operator configured; dropping '{message.title}'.")
            return False
        try:
            await self.channel.deliver(self.operator_id, message, ChannelKind.DIRECT)
            return True
        except Exception as e:
            # Never report a failed report; that way lies recursion
            logger.error(f"Could not deliver operator message '{message.title}': {e}")
            return False

    async def report(self, error: object) -> bool:
        logger.debug(f"Reporting error to operator: {error}")
        return await self.notify(render_error(error))
