"""Chef and menu item entities (read side of the chef catalogue)"""

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from ..enums import VerificationStatus
from ..exceptions import BadRequest
from ..value_objects.geo import GeoPoint, haversine_km


@dataclass
class Chef:
    id: UUID
    user_id: UUID
    business_name: str
    is_active: bool
    verification_status: VerificationStatus
    payment_onboarding_complete: bool
    minimum_order_cents: int
    location: Optional[GeoPoint]
    delivery_radius_km: float

    def ensure_accepting_orders(self) -> None:
        if not self.is_active:
            raise BadRequest("Chef is not currently accepting orders")
        if self.verification_status != VerificationStatus.APPROVED:
            raise BadRequest("Chef is not verified")
        if not self.payment_onboarding_complete:
            raise BadRequest("Chef has not completed payment setup")
        if self.location is None:
            raise BadRequest("Chef has no pickup location")

    def ensure_delivers_to(self, destination: GeoPoint) -> float:
        distance = haversine_km(self.location, destination)
        if distance > self.delivery_radius_km:
            raise BadRequest(
                f"Delivery address is {distance:.1f} km away; "
                f"{self.business_name} delivers within {self.delivery_radius_km:g} km"
            )
        return distance


@dataclass
class MenuItem:
    id: UUID
    chef_id: UUID
    name: str
    price_cents: int
    is_available: bool
