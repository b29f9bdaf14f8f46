"""API dependencies"""

from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.security import verify_token
from ..db.database import get_db
from ..domain.entities.actor import Actor
from ..domain.enums import UserRole
from ..domain.repositories.unit_of_work import IUnitOfWork
from ..domain.services.ports import GeocodingService, NotificationService, PaymentGateway
from ..application.use_cases.dispatch_matcher import DispatchMatcher
from ..application.use_cases.lifecycle_coordinator import LifecycleCoordinator
from ..application.use_cases.order_notifier import OrderNotifier
from ..infrastructure.repositories.unit_of_work_impl import UnitOfWorkImpl
from ..infrastructure.external_services.geocoding_service import GoogleDistanceMatrixService
from ..infrastructure.external_services.notification_service import HttpNotificationService
from ..infrastructure.external_services.payment_service import StripePaymentService


security = HTTPBearer()


def _unauthorized(detail: str = "Invalid token") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_actor(credentials: HTTPAuthorizationCredentials = Depends(security)) -> Actor:
    """Authenticated caller from the bearer token's ``sub`` and ``role`` claims"""
    claims = verify_token(credentials.credentials)
    if not claims:
        raise _unauthorized()
    try:
        return Actor(user_id=UUID(claims["sub"]), role=UserRole(claims["role"]))
    except ValueError:
        raise _unauthorized()


async def get_current_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    """Get current admin actor"""
    if not actor.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return actor


def get_unit_of_work(db: Session = Depends(get_db)) -> IUnitOfWork:
    """Get unit of work"""
    return UnitOfWorkImpl(db)


def get_payment_gateway() -> PaymentGateway:
    return StripePaymentService()


def get_geocoding_service() -> GeocodingService:
    return GoogleDistanceMatrixService()


def get_notification_service() -> NotificationService:
    return HttpNotificationService()


def get_order_notifier(
    unit_of_work: IUnitOfWork = Depends(get_unit_of_work),
    notifications: NotificationService = Depends(get_notification_service),
) -> OrderNotifier:
    return OrderNotifier(unit_of_work, notifications, settings.EXTERNAL_CALL_TIMEOUT_SECONDS)


def get_lifecycle_coordinator(
    unit_of_work: IUnitOfWork = Depends(get_unit_of_work),
    payments: PaymentGateway = Depends(get_payment_gateway),
    notifier: OrderNotifier = Depends(get_order_notifier),
) -> LifecycleCoordinator:
    return LifecycleCoordinator(unit_of_work, payments, notifier, settings)


def get_dispatch_matcher(
    unit_of_work: IUnitOfWork = Depends(get_unit_of_work),
    geocoding: GeocodingService = Depends(get_geocoding_service),
    notifier: OrderNotifier = Depends(get_order_notifier),
) -> DispatchMatcher:
    return DispatchMatcher(unit_of_work, geocoding, notifier, settings)
