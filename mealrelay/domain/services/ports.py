"""Interfaces of the external collaborators the order core talks to.

Adapters live in ``infrastructure/external_services``; tests swap in fakes.
Every method may block on the network, so callers bound them with a timeout
and never call them while holding a row lock.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional
from uuid import UUID

from ..value_objects.geo import GeoPoint


@dataclass(frozen=True)
class PaymentIntent:
    reference: str
    client_secret: Optional[str] = None
    status: Optional[str] = None


@dataclass(frozen=True)
class RefundResult:
    success: bool
    gateway_refund_id: Optional[str] = None
    failure_reason: Optional[str] = None


@dataclass(frozen=True)
class RouteEstimate:
    distance_km: float
    minutes: int
    source: str  # "route_service" or "haversine"


class PaymentGateway(ABC):

    @abstractmethod
    async def create_payment_intent(self, order_id: UUID, amount_cents: int, currency: str = "USD") -> PaymentIntent:
        pass

    @abstractmethod
    async def refund(self, payment_reference: str, amount_cents: int, idempotency_key: str) -> RefundResult:
        """Declines come back as ``success=False``; transport failures raise"""
        pass


class GeocodingService(ABC):

    @abstractmethod
    async def distance_and_eta_between(self, origin: GeoPoint, destination: GeoPoint) -> RouteEstimate:
        pass


class NotificationService(ABC):

    @abstractmethod
    async def notify(self, user_id: UUID, event: str, payload: Dict[str, Any]) -> None:
        pass


class DispatchPartnerClient(ABC):

    @abstractmethod
    async def request_delivery(self, payload: Dict[str, Any]) -> None:
        pass
