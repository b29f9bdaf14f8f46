"""Driver dispatch: find eligible drivers for a ready order and reserve one.

Searching takes no locks. Reserving, accepting and declining each run in a
single transaction holding the order row lock; the assignment itself is
resolved with a conditional update so that only one of two racing drivers
can win it.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional
from uuid import UUID

from ...core.config import Settings, settings as default_settings
from ...domain.entities.actor import Actor
from ...domain.entities.driver import Driver, DriverAssignment, DriverCandidate, estimate_pickup_minutes
from ...domain.entities.order import Order, SYSTEM_ACTOR
from ...domain.enums import AssignmentStatus, OrderStatus
from ...domain.exceptions import BadRequest, Conflict, DomainError, Forbidden, NoDriversAvailable, NotFound, TransientFailure
from ...domain.repositories.unit_of_work import IUnitOfWork
from ...domain.services.ports import GeocodingService, RouteEstimate
from ...domain.value_objects.geo import GeoPoint, bounding_box, haversine_km, travel_minutes
from . import outbox_messages
from .order_access import OrderAccess
from .order_notifier import OrderNotifier

logger = logging.getLogger(__name__)

# Rows read from the bounding-box pre-filter before exact distance ranking
PREFILTER_ROW_CAP = 500


def rank_candidates(
    center: GeoPoint,
    drivers: Iterable[Driver],
    radius_km: float,
    limit: int,
    exclude_driver_ids: Iterable[UUID] = (),
) -> List[DriverCandidate]:
    """Nearest first, higher rating first on equal distance, capped at ``limit``"""
    excluded = set(exclude_driver_ids)
    candidates = []
    for driver in drivers:
        if not driver.is_dispatchable or driver.id in excluded:
            continue
        distance = haversine_km(center, driver.location)
        if distance > radius_km:
            continue
        candidates.append(DriverCandidate(
            driver_id=driver.id,
            user_id=driver.user_id,
            first_name=driver.first_name,
            last_name=driver.last_name,
            vehicle_type=driver.vehicle_type,
            distance_km=distance,
            average_rating=driver.average_rating,
        ))
    candidates.sort(key=lambda c: (c.distance_km, -c.average_rating))
    return candidates[:limit]


class DispatchMatcher:

    def __init__(
        self,
        uow: IUnitOfWork,
        geocoding: GeocodingService,
        notifier: OrderNotifier,
        config: Settings = default_settings,
    ):
        self.uow = uow
        self.geocoding = geocoding
        self.notifier = notifier
        self.config = config

    def search_radius(self, radius_km: Optional[float] = None) -> float:
        return self.config.DEFAULT_SEARCH_RADIUS_KM if radius_km is None else radius_km

    async def find_available_drivers_near(
        self,
        latitude: float,
        longitude: float,
        radius_km: Optional[float] = None,
        limit: Optional[int] = None,
        exclude_driver_ids: Iterable[UUID] = (),
    ) -> List[DriverCandidate]:
        radius_km = self.search_radius(radius_km)
        limit = self.config.MAX_DRIVER_CANDIDATES if limit is None else limit
        if radius_km <= 0:
            raise BadRequest("Search radius must be positive")
        if limit <= 0:
            raise BadRequest("Candidate limit must be positive")
        try:
            center = GeoPoint(latitude, longitude)
        except ValueError as e:
            raise BadRequest(str(e))

        async with self.uow:
            drivers = await self.uow.drivers.find_dispatchable_in(center, bounding_box(center, radius_km), PREFILTER_ROW_CAP)
        return rank_candidates(center, drivers, radius_km, limit, exclude_driver_ids)

    async def assign_driver_to_order(
        self,
        order_id: UUID,
        driver_id: Optional[UUID] = None,
        search_radius_km: Optional[float] = None,
        assigned_by: str = SYSTEM_ACTOR,
        exclude_driver_ids: Iterable[UUID] = (),
    ) -> DriverAssignment:
        """Reserve a driver for a READY_FOR_PICKUP order.

        Candidate search and the route estimate happen before the order lock
        is taken; both preconditions are checked again under the lock.
        """
        async with self.uow:
            order = await self.uow.orders.get_by_id(order_id)
        if order is None:
            raise NotFound("Order not found")
        order.ensure_dispatchable()
        if order.pickup_location is None:
            raise BadRequest("Order has no pickup location")

        if driver_id is not None:
            async with self.uow:
                driver = await self.uow.drivers.get_by_id(driver_id)
            if driver is None:
                raise NotFound("Driver not found")
            if not driver.is_dispatchable:
                raise BadRequest("Driver is not available or not verified")
            distance_km = haversine_km(order.pickup_location, driver.location)
        else:
            candidates = await self.find_available_drivers_near(
                order.pickup_location.latitude,
                order.pickup_location.longitude,
                search_radius_km,
                exclude_driver_ids=exclude_driver_ids,
            )
            if not candidates:
                raise NoDriversAvailable()
            driver_id = candidates[0].driver_id
            distance_km = candidates[0].distance_km

        pickup_minutes = estimate_pickup_minutes(distance_km, self.config.PICKUP_MINUTES_PER_KM)
        route = await self._route_estimate(order)

        async with self.uow:
            order = await self.uow.orders.get_for_update(order_id)
            if order is None:
                raise NotFound("Order not found")
            order.ensure_dispatchable()

            driver = await self.uow.drivers.get_for_update(driver_id)
            if driver is None or not driver.is_dispatchable:
                raise BadRequest("Driver is no longer available")

            assignment = DriverAssignment(
                order_id=order.id,
                driver_id=driver.id,
                distance_km=distance_km,
                estimated_pickup_minutes=pickup_minutes,
            )
            await self.uow.assignments.add(assignment)

            order.reserve_driver(driver.id, assignment.id, distance_km, pickup_minutes, assigned_by)
            if route is not None:
                order.estimated_delivery_at = assignment.assigned_at + timedelta(minutes=pickup_minutes + route.minutes)
            await self.uow.orders.update(order)
            await self.uow.outbox.add(outbox_messages.dispatch_partner(order, assignment))
            events = order.get_events()

        logger.info(
            f"Order {order.id} reserved for driver {driver.id} "
            f"({distance_km:.2f} km, ~{pickup_minutes} min to pickup) by {assigned_by}"
        )
        await self.notifier.publish(events)
        return assignment

    async def accept_assignment(self, driver_id: UUID, assignment_id: UUID, changed_by: str = None) -> DriverAssignment:
        changed_by = changed_by or str(driver_id)
        async with self.uow:
            assignment = await self._own_assignment(driver_id, assignment_id)
            order = await self._lock_order(assignment.order_id)

            resolved = await self.uow.assignments.resolve_pending(assignment_id, driver_id, AssignmentStatus.ACCEPTED)
            if resolved is None:
                raise Conflict("Assignment not found or already processed")
            if order.assigned_driver_id != driver_id:
                raise Conflict("Order is no longer reserved for this driver")

            order.transition_to(OrderStatus.ASSIGNED_TO_DRIVER, changed_by, "driver_accepted")
            await self.uow.orders.update(order)
            events = order.get_events()

        logger.info(f"Driver {driver_id} accepted assignment {assignment_id} for order {order.id}")
        await self.notifier.publish(events)
        return resolved

    async def decline_assignment(
        self,
        driver_id: UUID,
        assignment_id: UUID,
        reason: Optional[str] = None,
        changed_by: str = None,
    ) -> DriverAssignment:
        changed_by = changed_by or str(driver_id)
        reason = reason or "declined_by_driver"
        async with self.uow:
            assignment = await self._own_assignment(driver_id, assignment_id)
            order = await self._lock_order(assignment.order_id)

            resolved = await self.uow.assignments.resolve_pending(
                assignment_id, driver_id, AssignmentStatus.DECLINED, reason
            )
            if resolved is None:
                raise Conflict("Assignment not found or already processed")

            if order.assigned_driver_id == driver_id:
                order.release_driver(changed_by, reason)
                await self.uow.orders.update(order)
                await self._request_redispatch(order, [driver_id])
            events = order.get_events()

        logger.info(f"Driver {driver_id} declined assignment {assignment_id} for order {order.id}: {reason}")
        await self.notifier.publish(events)
        return resolved

    async def unassign_driver(self, order_id: UUID, actor: Actor, reason: Optional[str] = None) -> Order:
        """Admin takes the driver off an order and puts it back in the pool"""
        OrderAccess(self.uow).require_admin(actor, "unassign drivers")
        reason = reason or "unassigned_by_admin"

        async with self.uow:
            order = await self._lock_order(order_id)
            driver_id = order.assigned_driver_id
            if driver_id is None:
                raise BadRequest("Order has no driver to unassign")
            if order.status not in (OrderStatus.READY_FOR_PICKUP, OrderStatus.ASSIGNED_TO_DRIVER):
                raise BadRequest(f"Cannot unassign the driver of an order that is {order.status.value}")

            pending = await self.uow.assignments.get_pending_for_order(order.id)
            if pending is not None:
                await self.uow.assignments.resolve_pending(pending.id, None, AssignmentStatus.DECLINED, reason)

            order.release_driver(actor.label, reason)
            await self.uow.orders.update(order)
            await self._request_redispatch(order, [driver_id])
            events = order.get_events()

        logger.info(f"Driver {driver_id} unassigned from order {order.id} by {actor.label}")
        await self.notifier.publish(events)
        return order

    async def expire_stale_assignments(self, now: Optional[datetime] = None) -> int:
        """Decline pending assignments nobody answered or whose driver went away.

        Each assignment is expired in its own transaction; one failure does
        not stop the sweep.
        """
        now = now or datetime.utcnow()
        cutoff = now - timedelta(seconds=self.config.ASSIGNMENT_ACCEPT_TIMEOUT_SECONDS)
        async with self.uow:
            unavailable = await self.uow.assignments.list_pending_for_unavailable_drivers()
            stale = await self.uow.assignments.list_stale_pending(cutoff)

        to_expire = {a.id: (a, "driver_unavailable") for a in unavailable}
        for assignment in stale:
            to_expire.setdefault(assignment.id, (assignment, "timeout"))

        expired = 0
        for assignment, reason in to_expire.values():
            try:
                if await self._expire(assignment, reason):
                    expired += 1
            except (DomainError, TransientFailure) as e:
                logger.warning(f"Could not expire assignment {assignment.id}: {e}")
        if expired:
            logger.info(f"Expired {expired} pending driver assignments")
        return expired

    async def _expire(self, assignment: DriverAssignment, reason: str) -> bool:
        async with self.uow:
            order = await self._lock_order(assignment.order_id)
            resolved = await self.uow.assignments.resolve_pending(
                assignment.id, None, AssignmentStatus.DECLINED, reason
            )
            if resolved is None:
                return False
            if order.assigned_driver_id == assignment.driver_id and order.status == OrderStatus.READY_FOR_PICKUP:
                order.release_driver(SYSTEM_ACTOR, reason)
                await self.uow.orders.update(order)
                await self._request_redispatch(order, [assignment.driver_id])
            events = order.get_events()

        logger.info(f"Assignment {assignment.id} for order {assignment.order_id} expired ({reason})")
        await self.notifier.publish(events)
        return True

    async def driver_for(self, actor: Actor) -> Driver:
        """Driver profile of the calling user"""
        async with self.uow:
            driver = await OrderAccess(self.uow).driver_for(actor)
        if driver is None:
            raise Forbidden("Only drivers can answer assignments")
        return driver

    async def _own_assignment(self, driver_id: UUID, assignment_id: UUID) -> DriverAssignment:
        assignment = await self.uow.assignments.get_by_id(assignment_id)
        if assignment is None or assignment.driver_id != driver_id:
            raise NotFound("Assignment not found")
        if not assignment.is_pending:
            raise Conflict("Assignment not found or already processed")
        return assignment

    async def _lock_order(self, order_id: UUID) -> Order:
        order = await self.uow.orders.get_for_update(order_id)
        if order is None:
            raise NotFound("Order not found")
        return order

    async def _request_redispatch(self, order: Order, exclude_driver_ids: List[UUID]) -> None:
        if self.config.AUTO_DISPATCH_ENABLED and order.status == OrderStatus.READY_FOR_PICKUP:
            await self.uow.outbox.add(outbox_messages.dispatch_requested(order.id, exclude_driver_ids))

    async def _route_estimate(self, order: Order) -> Optional[RouteEstimate]:
        """Pickup-to-dropoff estimate; falls back to straight line at a flat speed"""
        if order.delivery_location is None:
            return None
        try:
            return await asyncio.wait_for(
                self.geocoding.distance_and_eta_between(order.pickup_location, order.delivery_location),
                self.config.EXTERNAL_CALL_TIMEOUT_SECONDS,
            )
        except Exception as e:
            logger.warning(f"Route estimate for order {order.id} unavailable, using straight line: {e!r}")
            distance_km = haversine_km(order.pickup_location, order.delivery_location)
            return RouteEstimate(
                distance_km=round(distance_km, 2),
                minutes=travel_minutes(distance_km, self.config.FALLBACK_SPEED_KMH),
                source="haversine",
            )
