from typing import List, Optional

from loguru import logger
from pydantic import BaseModel, Field

from rankwatch.delivery.channel import DeliveryChannel, DeliveryError, OperatorReporter
from rankwatch.diff.engine import diff_contests
from rankwatch.models.leaderboard import SnapshotSet
from rankwatch.models.subscriber import Subscriber
from rankwatch.rendering.messages import RenderedMessage, render_target_update
from rankwatch.storage.subscriber_registry import SubscriberRegistry


class DeliveryFailure(BaseModel):
    subscriber_id: str
    target: str
    error: str


class DispatchReport(BaseModel):
    """What one dispatch cycle did."""

    sent: int = 0
    skipped: int = 0
    failures: List[DeliveryFailure] = Field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)


class NotificationDispatcher:
    """Maps a snapshot transition onto the subscribers it concerns.

    Deliveries run one after another; each is isolated so that a failing
    recipient never prevents the rest from being notified.
    """

    def __init__(
        self,
        registry: SubscriberRegistry,
        channel: DeliveryChannel,
        reporter: OperatorReporter,
        *,
        top_n: int = 10,
        neighbor_window: int = 2,
        report_disappearance: bool = False,
    ):
        self.registry = registry
        self.channel = channel
        self.reporter = reporter
        self.top_n = top_n
        self.neighbor_window = neighbor_window
        self.report_disappearance = report_disappearance

    async def dispatch_cycle(
        self, previous: Optional[SnapshotSet], current: SnapshotSet
    ) -> DispatchReport:
        report = DispatchReport()
        first_observation = previous is None
        # Copy before the first await; registry changes apply from the next cycle
        subscribers = self.registry.subscribers()
        logger.info(
            f"Dispatching cycle to {len(subscribers)} subscribers "
            f"(first observation: {first_observation})"
        )

        for subscriber in subscribers:
            for target in subscriber.sorted_targets():
                events_by_contest = diff_contests(
                    previous,
                    current,
                    target,
                    top_n=self.top_n,
                    report_disappearance=self.report_disappearance,
                )
                has_events = any(events_by_contest.values())
                if not has_events and not first_observation:
                    report.skipped += 1
                    continue

                message = render_target_update(
                    target,
                    current,
                    events_by_contest,
                    first_observation=first_observation,
                    top_n=self.top_n,
                    neighbor_window=self.neighbor_window,
                )
                if await self._deliver(subscriber, target, message, report):
                    report.sent += 1

        logger.success(
            f"Dispatch finished: {report.sent} sent, {report.failed} failed, "
            f"{report.skipped} without changes"
        )
        return report

    async def _deliver(
        self,
        subscriber: Subscriber,
        target: str,
        message: RenderedMessage,
        report: DispatchReport,
    ) -> bool:
        try:
            await self.channel.deliver(subscriber.id, message, subscriber.channel_kind)
            return True
        except DeliveryError as e:
            logger.warning(
                f"Delivery of '{target}' to {subscriber.id} failed: {e}"
            )
            error = e
        except Exception as e:
            logger.exception(
                f"Unexpected error delivering '{target}' to {subscriber.id}: {e}"
            )
            error = e

        report.failures.append(
            DeliveryFailure(subscriber_id=subscriber.id, target=target, error=str(error))
        )
        await self.reporter.report(
            f"Failed to notify {subscriber.id} about '{target}': {error}"
        )
        return False
