"""Dispatch DTOs"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class AssignDriverRequest(BaseModel):
    driver_id: Optional[UUID] = None
    search_radius_km: Optional[float] = Field(default=None, gt=0, le=100)


class DeclineAssignmentRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class DriverCandidateResponse(BaseModel):
    driver_id: UUID
    first_name: str
    last_name: str
    vehicle_type: str
    distance_km: float
    average_rating: float

    @classmethod
    def from_entity(cls, candidate):
        return cls(
            driver_id=candidate.driver_id,
            first_name=candidate.first_name,
            last_name=candidate.last_name,
            vehicle_type=candidate.vehicle_type,
            distance_km=round(candidate.distance_km, 2),
            average_rating=candidate.average_rating,
        )


class NearbyDriversResponse(BaseModel):
    drivers: List[DriverCandidateResponse]
    radius_km: float


class AssignmentResponse(BaseModel):
    id: UUID
    order_id: UUID
    driver_id: UUID
    status: str
    distance_km: float
    estimated_pickup_minutes: int
    assigned_at: datetime
    accepted_at: Optional[datetime] = None
    declined_at: Optional[datetime] = None
    decline_reason: Optional[str] = None

    @classmethod
    def from_entity(cls, assignment):
        return cls(
            id=assignment.id,
            order_id=assignment.order_id,
            driver_id=assignment.driver_id,
            status=assignment.status.value,
            distance_km=round(assignment.distance_km, 2),
            estimated_pickup_minutes=assignment.estimated_pickup_minutes,
            assigned_at=assignment.assigned_at,
            accepted_at=assignment.accepted_at,
            declined_at=assignment.declined_at,
            decline_reason=assignment.decline_reason,
        )
