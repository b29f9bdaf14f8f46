"""Outbox relay: delivers side effects written alongside order changes.

Messages are leased in a short transaction, handled with no transaction
open, and then marked delivered or rescheduled with exponential backoff.
Delivery is at-least-once, so every handler must be idempotent.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, Optional
from uuid import UUID

from ...core.config import Settings, settings as default_settings
from ...domain.enums import OutboxStatus, OutboxTopic
from ...domain.exceptions import BadRequest, Conflict, NoDriversAvailable, NotFound
from ...domain.repositories.unit_of_work import IUnitOfWork
from ...domain.services.ports import DispatchPartnerClient, NotificationService

logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any]], Awaitable[None]]


class RetryLater(Exception):
    """Raised by a handler when the message should be tried again later"""


@dataclass
class RelayResult:
    delivered: int = 0
    retried: int = 0
    failed: int = 0


class OutboxRelay:

    def __init__(self, uow: IUnitOfWork, handlers: Dict[OutboxTopic, Handler], config: Settings = default_settings):
        self.uow = uow
        self.handlers = handlers
        self.config = config

    async def relay_due(self, now: Optional[datetime] = None) -> RelayResult:
        now = now or datetime.utcnow()
        # Long enough for every handler in the batch to finish
        lease_until = now + timedelta(seconds=max(60, self.config.EXTERNAL_CALL_TIMEOUT_SECONDS * 3))
        async with self.uow:
            messages = await self.uow.outbox.claim_due(now, self.config.OUTBOX_BATCH_SIZE, lease_until)

        result = RelayResult()
        for message in messages:
            handler = self.handlers.get(message.topic)
            try:
                if handler is None:
                    raise LookupError(f"No handler registered for {message.topic.value}")
                await handler(message.payload)
            except Exception as e:
                message.schedule_retry(repr(e), self.config.OUTBOX_RETRY_BASE_SECONDS, self.config.OUTBOX_MAX_ATTEMPTS)
                if message.status == OutboxStatus.FAILED:
                    result.failed += 1
                    logger.error(f"Outbox message {message.id} ({message.topic.value}) failed for good: {e!r}")
                else:
                    result.retried += 1
                    logger.warning(
                        f"Outbox message {message.id} ({message.topic.value}) attempt {message.attempts} failed, "
                        f"next at {message.next_attempt_at:%H:%M:%S}: {e!r}"
                    )
            else:
                message.mark_delivered()
                result.delivered += 1

            async with self.uow:
                await self.uow.outbox.update(message)

        if messages:
            logger.info(
                f"Outbox relay: {result.delivered} delivered, {result.retried} retrying, {result.failed} failed"
            )
        return result


def build_handlers(
    coordinator,
    matcher,
    notifications: NotificationService,
    partner: DispatchPartnerClient,
    timeout: float,
) -> Dict[OutboxTopic, Handler]:
    """Topic -> handler table wired to the live use cases and collaborators"""

    async def send_notification(payload: Dict[str, Any]) -> None:
        await asyncio.wait_for(
            notifications.notify(UUID(payload["user_id"]), payload["event"], payload["payload"]),
            timeout,
        )

    async def notify_partner(payload: Dict[str, Any]) -> None:
        await asyncio.wait_for(partner.request_delivery(payload), timeout)

    async def dispatch(payload: Dict[str, Any]) -> None:
        order_id = UUID(payload["order_id"])
        exclude = [UUID(d) for d in payload.get("exclude_driver_ids", [])]
        try:
            await matcher.assign_driver_to_order(order_id, exclude_driver_ids=exclude)
        except NoDriversAvailable as e:
            raise RetryLater(str(e)) from e
        except (NotFound, Conflict, BadRequest) as e:
            # Cancelled, already assigned, or otherwise no longer dispatchable
            logger.info(f"Dropping dispatch request for order {order_id}: {e.message}")

    async def settle_refund(payload: Dict[str, Any]) -> None:
        refund_id = UUID(payload["refund_id"])
        try:
            settled = await coordinator.settle_refund(refund_id)
        except NotFound:
            logger.error(f"Refund {refund_id} referenced by the outbox does not exist")
            return
        if not settled:
            raise RetryLater(f"Refund {refund_id} is still pending")

    return {
        OutboxTopic.NOTIFICATION: send_notification,
        OutboxTopic.DISPATCH_PARTNER: notify_partner,
        OutboxTopic.DISPATCH_REQUESTED: dispatch,
        OutboxTopic.PAYMENT_REFUND: settle_refund,
    }
