"""Driver and assignment repository implementations using SQLAlchemy ORM"""

import math
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import and_, or_, update
from sqlalchemy.orm import Session

from ...domain.entities.driver import Driver, DriverAssignment
from ...domain.enums import AssignmentStatus, VerificationStatus
from ...domain.repositories.driver_repository import IAssignmentRepository, IDriverRepository
from ...domain.value_objects.geo import BoundingBox, GeoPoint
from ..orm.driver_model import DriverAssignmentModel, DriverModel
from .db_errors import translate_db_errors


def _longitude_filter(box: BoundingBox):
    """Longitude range, split in two when the box crosses the antimeridian"""
    lng = DriverModel.current_longitude
    if box.min_longitude < -180.0 and box.max_longitude > 180.0:
        return None
    if box.min_longitude < -180.0:
        return or_(lng >= box.min_longitude + 360.0, lng <= box.max_longitude)
    if box.max_longitude > 180.0:
        return or_(lng >= box.min_longitude, lng <= box.max_longitude - 360.0)
    return lng.between(box.min_longitude, box.max_longitude)


class DriverRepositoryImpl(IDriverRepository):

    def __init__(self, session: Session):
        self.session = session

    async def get_by_id(self, driver_id: UUID) -> Optional[Driver]:
        model = self.session.query(DriverModel).filter(DriverModel.id == driver_id).first()
        return self._map_to_entity(model) if model else None

    async def get_by_user_id(self, user_id: UUID) -> Optional[Driver]:
        model = self.session.query(DriverModel).filter(DriverModel.user_id == user_id).first()
        return self._map_to_entity(model) if model else None

    async def get_for_update(self, driver_id: UUID) -> Optional[Driver]:
        with translate_db_errors("locking driver"):
            model = (
                self.session.query(DriverModel)
                .filter(DriverModel.id == driver_id)
                .populate_existing()
                .with_for_update()
                .first()
            )
        return self._map_to_entity(model) if model else None

    async def find_dispatchable_in(self, center: GeoPoint, box: BoundingBox, max_rows: int) -> List[Driver]:
        query = self.session.query(DriverModel).filter(
            DriverModel.is_available.is_(True),
            DriverModel.verification_status == VerificationStatus.APPROVED,
            DriverModel.current_latitude.isnot(None),
            DriverModel.current_longitude.isnot(None),
            DriverModel.current_latitude.between(box.min_latitude, box.max_latitude),
        )
        lng_filter = _longitude_filter(box)
        if lng_filter is not None:
            query = query.filter(lng_filter)

        # Planar distance proxy so the row cap keeps the closest drivers
        d_lat = DriverModel.current_latitude - center.latitude
        d_lng = (DriverModel.current_longitude - center.longitude) * math.cos(math.radians(center.latitude))
        query = query.order_by(d_lat * d_lat + d_lng * d_lng, DriverModel.average_rating.desc())
        return [self._map_to_entity(m) for m in query.limit(max_rows).all()]

    async def update(self, driver: Driver) -> Driver:
        model = self.session.get(DriverModel, driver.id)
        model.is_available = driver.is_available
        model.verification_status = driver.verification_status
        model.current_latitude = driver.location.latitude if driver.location else None
        model.current_longitude = driver.location.longitude if driver.location else None
        model.location_updated_at = driver.location_updated_at
        model.average_rating = driver.average_rating
        model.total_deliveries = driver.total_deliveries
        model.successful_deliveries = driver.successful_deliveries
        model.cancelled_deliveries = driver.cancelled_deliveries
        model.total_earnings_cents = driver.total_earnings_cents
        with translate_db_errors("updating driver"):
            self.session.flush()
        return driver

    def _map_to_entity(self, model: DriverModel) -> Driver:
        location = None
        if model.current_latitude is not None and model.current_longitude is not None:
            location = GeoPoint(model.current_latitude, model.current_longitude)
        return Driver(
            id=model.id,
            user_id=model.user_id,
            first_name=model.first_name,
            last_name=model.last_name,
            vehicle_type=model.vehicle_type,
            is_available=model.is_available,
            verification_status=model.verification_status,
            location=location,
            location_updated_at=model.location_updated_at,
            average_rating=model.average_rating or 0.0,
            total_deliveries=model.total_deliveries,
            successful_deliveries=model.successful_deliveries,
            cancelled_deliveries=model.cancelled_deliveries,
            total_earnings_cents=model.total_earnings_cents,
        )


class AssignmentRepositoryImpl(IAssignmentRepository):

    def __init__(self, session: Session):
        self.session = session

    async def get_by_id(self, assignment_id: UUID) -> Optional[DriverAssignment]:
        model = (
            self.session.query(DriverAssignmentModel)
            .filter(DriverAssignmentModel.id == assignment_id)
            .populate_existing()
            .first()
        )
        return self._map_to_entity(model) if model else None

    async def get_pending_for_order(self, order_id: UUID) -> Optional[DriverAssignment]:
        model = (
            self.session.query(DriverAssignmentModel)
            .filter(
                DriverAssignmentModel.order_id == order_id,
                DriverAssignmentModel.status == AssignmentStatus.PENDING,
            )
            .populate_existing()
            .first()
        )
        return self._map_to_entity(model) if model else None

    async def list_for_order(self, order_id: UUID) -> List[DriverAssignment]:
        models = (
            self.session.query(DriverAssignmentModel)
            .filter(DriverAssignmentModel.order_id == order_id)
            .order_by(DriverAssignmentModel.assigned_at)
            .all()
        )
        return [self._map_to_entity(m) for m in models]

    async def add(self, assignment: DriverAssignment) -> DriverAssignment:
        self.session.add(DriverAssignmentModel(
            id=assignment.id,
            order_id=assignment.order_id,
            driver_id=assignment.driver_id,
            status=assignment.status,
            distance_km=assignment.distance_km,
            estimated_pickup_minutes=assignment.estimated_pickup_minutes,
            assigned_at=assignment.assigned_at,
        ))
        # The partial unique index turns a second pending row into a Conflict
        with translate_db_errors("creating driver assignment"):
            self.session.flush()
        return assignment

    async def resolve_pending(
        self,
        assignment_id: UUID,
        driver_id: Optional[UUID],
        status: AssignmentStatus,
        reason: Optional[str] = None,
    ) -> Optional[DriverAssignment]:
        now = datetime.utcnow()
        if status == AssignmentStatus.ACCEPTED:
            values = {'status': status, 'accepted_at': now}
        else:
            values = {'status': status, 'declined_at': now, 'decline_reason': reason}

        conditions = [
            DriverAssignmentModel.id == assignment_id,
            DriverAssignmentModel.status == AssignmentStatus.PENDING,
        ]
        if driver_id is not None:
            conditions.append(DriverAssignmentModel.driver_id == driver_id)

        stmt = (
            update(DriverAssignmentModel)
            .where(and_(*conditions))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        with translate_db_errors("resolving driver assignment"):
            result = self.session.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self.get_by_id(assignment_id)

    async def list_stale_pending(self, assigned_before: datetime, limit: int = 100) -> List[DriverAssignment]:
        models = (
            self.session.query(DriverAssignmentModel)
            .filter(
                DriverAssignmentModel.status == AssignmentStatus.PENDING,
                DriverAssignmentModel.assigned_at < assigned_before,
            )
            .order_by(DriverAssignmentModel.assigned_at)
            .limit(limit)
            .all()
        )
        return [self._map_to_entity(m) for m in models]

    async def list_pending_for_unavailable_drivers(self, limit: int = 100) -> List[DriverAssignment]:
        models = (
            self.session.query(DriverAssignmentModel)
            .join(DriverModel, DriverModel.id == DriverAssignmentModel.driver_id)
            .filter(
                DriverAssignmentModel.status == AssignmentStatus.PENDING,
                or_(
                    DriverModel.is_available.is_(False),
                    DriverModel.verification_status != VerificationStatus.APPROVED,
                ),
            )
            .order_by(DriverAssignmentModel.assigned_at)
            .limit(limit)
            .all()
        )
        return [self._map_to_entity(m) for m in models]

    def _map_to_entity(self, model: DriverAssignmentModel) -> DriverAssignment:
        return DriverAssignment(
            id=model.id,
            order_id=model.order_id,
            driver_id=model.driver_id,
            status=model.status,
            distance_km=model.distance_km,
            estimated_pickup_minutes=model.estimated_pickup_minutes,
            assigned_at=model.assigned_at,
            accepted_at=model.accepted_at,
            declined_at=model.declined_at,
            decline_reason=model.decline_reason,
        )
