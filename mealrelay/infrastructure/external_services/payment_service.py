"""Payment service backed by Stripe PaymentIntents"""

import asyncio
import logging
from uuid import UUID

import stripe

from ...core.config import settings
from ...domain.services.ports import PaymentGateway, PaymentIntent, RefundResult

logger = logging.getLogger(__name__)


class StripePaymentService(PaymentGateway):
    """Only two operations are consumed: create a payment and refund it.

    The Stripe SDK is blocking, so calls run in a worker thread; that keeps
    ``asyncio.wait_for`` in the caller able to abandon a hung request.
    """

    def __init__(self, api_key: str = None):
        stripe.api_key = api_key or settings.STRIPE_SECRET_KEY
        stripe.max_network_retries = 0

    async def create_payment_intent(self, order_id: UUID, amount_cents: int, currency: str = "USD") -> PaymentIntent:
        intent = await asyncio.to_thread(
            stripe.PaymentIntent.create,
            amount=amount_cents,
            currency=currency.lower(),
            metadata={"order_id": str(order_id)},
            automatic_payment_methods={"enabled": True},
            idempotency_key=f"order-{order_id}-intent",
        )
        logger.info(f"Created payment intent {intent.id} for order {order_id}")
        return PaymentIntent(reference=intent.id, client_secret=intent.client_secret, status=intent.status)

    async def refund(self, payment_reference: str, amount_cents: int, idempotency_key: str) -> RefundResult:
        try:
            refund = await asyncio.to_thread(
                stripe.Refund.create,
                payment_intent=payment_reference,
                amount=amount_cents,
                idempotency_key=idempotency_key,
            )
        except stripe.CardError as e:
            logger.warning(f"Stripe declined refund for {payment_reference}: {e.user_message}")
            return RefundResult(success=False, failure_reason=e.user_message or str(e))
        except stripe.InvalidRequestError as e:
            logger.warning(f"Stripe rejected refund for {payment_reference}: {e}")
            return RefundResult(success=False, failure_reason=str(e))

        if refund.status == "failed":
            return RefundResult(success=False, gateway_refund_id=refund.id, failure_reason=refund.failure_reason)
        logger.info(f"Stripe refund {refund.id} ({refund.status}) for {payment_reference}")
        return RefundResult(success=True, gateway_refund_id=refund.id)
