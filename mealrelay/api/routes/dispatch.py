"""Dispatch routes: driver search, assignment and driver responses"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from ...application.dtos.dispatch_dtos import (
    AssignDriverRequest,
    AssignmentResponse,
    DeclineAssignmentRequest,
    DriverCandidateResponse,
    NearbyDriversResponse,
)
from ...application.dtos.order_dtos import OrderResponse, ReasonRequest
from ...application.use_cases.dispatch_matcher import DispatchMatcher
from ...api.dependencies import get_current_actor, get_current_admin, get_dispatch_matcher
from ...domain.entities.actor import Actor


router = APIRouter(tags=["dispatch"])


@router.get("/drivers/nearby", response_model=NearbyDriversResponse)
async def find_nearby_drivers(
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    radius_km: Optional[float] = Query(default=None, gt=0, le=100),
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    actor: Actor = Depends(get_current_admin),
    matcher: DispatchMatcher = Depends(get_dispatch_matcher),
):
    """Available, verified drivers nearest first"""
    candidates = await matcher.find_available_drivers_near(latitude, longitude, radius_km, limit)
    return NearbyDriversResponse(
        drivers=[DriverCandidateResponse.from_entity(c) for c in candidates],
        radius_km=matcher.search_radius(radius_km),
    )


@router.post("/orders/{order_id}/assign", response_model=AssignmentResponse)
async def assign_driver(
    order_id: UUID,
    body: AssignDriverRequest,
    actor: Actor = Depends(get_current_admin),
    matcher: DispatchMatcher = Depends(get_dispatch_matcher),
):
    """Reserve a specific driver, or the nearest one when none is given"""
    assignment = await matcher.assign_driver_to_order(
        order_id,
        driver_id=body.driver_id,
        search_radius_km=body.search_radius_km,
        assigned_by=actor.label,
    )
    return AssignmentResponse.from_entity(assignment)


@router.post("/orders/{order_id}/unassign", response_model=OrderResponse)
async def unassign_driver(
    order_id: UUID,
    body: Optional[ReasonRequest] = None,
    actor: Actor = Depends(get_current_admin),
    matcher: DispatchMatcher = Depends(get_dispatch_matcher),
):
    order = await matcher.unassign_driver(order_id, actor, body.reason if body else None)
    return OrderResponse.from_entity(order)


@router.post("/assignments/{assignment_id}/accept", response_model=AssignmentResponse)
async def accept_assignment(
    assignment_id: UUID,
    actor: Actor = Depends(get_current_actor),
    matcher: DispatchMatcher = Depends(get_dispatch_matcher),
):
    """Driver accepts the order offered to them"""
    driver = await matcher.driver_for(actor)
    assignment = await matcher.accept_assignment(driver.id, assignment_id, actor.label)
    return AssignmentResponse.from_entity(assignment)


@router.post("/assignments/{assignment_id}/decline", response_model=AssignmentResponse)
async def decline_assignment(
    assignment_id: UUID,
    body: Optional[DeclineAssignmentRequest] = None,
    actor: Actor = Depends(get_current_actor),
    matcher: DispatchMatcher = Depends(get_dispatch_matcher),
):
    driver = await matcher.driver_for(actor)
    assignment = await matcher.decline_assignment(
        driver.id, assignment_id, body.reason if body else None, actor.label
    )
    return AssignmentResponse.from_entity(assignment)
