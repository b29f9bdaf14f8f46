"""Driver and driver-assignment entities"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4
import math

from ..enums import AssignmentStatus, VerificationStatus
from ..value_objects.geo import GeoPoint


@dataclass
class Driver:
    id: UUID
    user_id: UUID
    first_name: str
    last_name: str
    vehicle_type: str
    is_available: bool
    verification_status: VerificationStatus
    location: Optional[GeoPoint] = None
    location_updated_at: Optional[datetime] = None
    average_rating: float = 0.0
    total_deliveries: int = 0
    successful_deliveries: int = 0
    cancelled_deliveries: int = 0
    total_earnings_cents: int = 0

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_dispatchable(self) -> bool:
        return (
            self.is_available
            and self.verification_status == VerificationStatus.APPROVED
            and self.location is not None
        )

    def record_delivery(self, earnings_cents: int) -> None:
        self.total_deliveries += 1
        self.successful_deliveries += 1
        self.total_earnings_cents += earnings_cents


@dataclass(frozen=True)
class DriverCandidate:
    """A dispatchable driver ranked for one pickup point"""
    driver_id: UUID
    user_id: UUID
    first_name: str
    last_name: str
    vehicle_type: str
    distance_km: float
    average_rating: float


def estimate_pickup_minutes(distance_km: float, minutes_per_km: float = 3.0) -> int:
    return math.ceil(distance_km * minutes_per_km)


@dataclass
class DriverAssignment:
    order_id: UUID
    driver_id: UUID
    distance_km: float
    estimated_pickup_minutes: int
    status: AssignmentStatus = AssignmentStatus.PENDING
    id: UUID = field(default_factory=uuid4)
    assigned_at: datetime = field(default_factory=datetime.utcnow)
    accepted_at: Optional[datetime] = None
    declined_at: Optional[datetime] = None
    decline_reason: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.status == AssignmentStatus.PENDING
