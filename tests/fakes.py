"""In-memory stand-ins for the external collaborators."""

from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from mealrelay.domain.services.ports import (
    DispatchPartnerClient,
    GeocodingService,
    NotificationService,
    PaymentGateway,
    PaymentIntent,
    RefundResult,
    RouteEstimate,
)


class FakePaymentGateway(PaymentGateway):
    def __init__(self):
        self.intents: List[Tuple[UUID, int]] = []
        self.refunds: List[Tuple[str, int, str]] = []
        self.decline_refunds = False
        self.raise_on_refund: Optional[Exception] = None

    async def create_payment_intent(self, order_id: UUID, amount_cents: int, currency: str = "USD") -> PaymentIntent:
        self.intents.append((order_id, amount_cents))
        return PaymentIntent(reference=f"pi_{order_id.hex[:12]}", client_secret="secret", status="requires_payment_method")

    async def refund(self, payment_reference: str, amount_cents: int, idempotency_key: str) -> RefundResult:
        if self.raise_on_refund is not None:
            raise self.raise_on_refund
        if self.decline_refunds:
            return RefundResult(success=False, failure_reason="card_declined")
        self.refunds.append((payment_reference, amount_cents, idempotency_key))
        return RefundResult(success=True, gateway_refund_id=f"re_{len(self.refunds)}")


class FakeGeocoding(GeocodingService):
    def __init__(self, minutes: int = 7, distance_km: float = 2.2, fail: bool = False):
        self.minutes = minutes
        self.distance_km = distance_km
        self.fail = fail
        self.calls = 0

    async def distance_and_eta_between(self, origin, destination) -> RouteEstimate:
        self.calls += 1
        if self.fail:
            raise ConnectionError("route service unreachable")
        return RouteEstimate(distance_km=self.distance_km, minutes=self.minutes, source="route_service")


class FakeNotificationService(NotificationService):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: List[Tuple[UUID, str, Dict[str, Any]]] = []

    async def notify(self, user_id: UUID, event: str, payload: Dict[str, Any]) -> None:
        if self.fail:
            raise ConnectionError("notification service down")
        self.sent.append((user_id, event, payload))

    def events_for(self, user_id: UUID) -> List[str]:
        return [event for recipient, event, _ in self.sent if recipient == user_id]


class FakeDispatchPartner(DispatchPartnerClient):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.requests: List[Dict[str, Any]] = []

    async def request_delivery(self, payload: Dict[str, Any]) -> None:
        if self.fail:
            raise ConnectionError("dispatch partner unavailable")
        self.requests.append(payload)
