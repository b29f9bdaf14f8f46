import asyncio
import logging

from .celery_app import celery_app
from .core.config import settings
from .db.database import SessionLocal
from .application.use_cases.dispatch_matcher import DispatchMatcher
from .application.use_cases.lifecycle_coordinator import LifecycleCoordinator
from .application.use_cases.order_notifier import OrderNotifier
from .application.use_cases.outbox_relay import OutboxRelay, build_handlers
from .infrastructure.repositories.unit_of_work_impl import UnitOfWorkImpl
from .infrastructure.external_services.dispatch_partner_service import HttpDispatchPartnerClient
from .infrastructure.external_services.geocoding_service import GoogleDistanceMatrixService
from .infrastructure.external_services.notification_service import HttpNotificationService
from .infrastructure.external_services.payment_service import StripePaymentService

# Import all ORM models to ensure relationships are resolved
import mealrelay.infrastructure.orm  # noqa: F401

logger = logging.getLogger(__name__)


class _Services:
    """Use cases wired to one session for the duration of a task"""

    def __init__(self, db):
        self.uow = UnitOfWorkImpl(db)
        self.notifications = HttpNotificationService()
        notifier = OrderNotifier(self.uow, self.notifications, settings.EXTERNAL_CALL_TIMEOUT_SECONDS)
        self.coordinator = LifecycleCoordinator(self.uow, StripePaymentService(), notifier, settings)
        self.matcher = DispatchMatcher(self.uow, GoogleDistanceMatrixService(), notifier, settings)


def _run(coro_factory):
    db = SessionLocal()
    try:
        return asyncio.run(coro_factory(_Services(db)))
    finally:
        db.close()


@celery_app.task(bind=True, max_retries=3)
def relay_outbox(self):
    """Deliver due outbox messages."""
    try:
        def relay(services):
            handlers = build_handlers(
                services.coordinator,
                services.matcher,
                services.notifications,
                HttpDispatchPartnerClient(),
                settings.EXTERNAL_CALL_TIMEOUT_SECONDS,
            )
            return OutboxRelay(services.uow, handlers, settings).relay_due()

        result = _run(relay)
        return {"delivered": result.delivered, "retried": result.retried, "failed": result.failed}
    except Exception as exc:
        logger.error(f"Error relaying outbox: {exc}")
        raise self.retry(countdown=10 * (self.request.retries + 1))


@celery_app.task(bind=True, max_retries=3)
def expire_stale_assignments(self):
    """Decline driver assignments that were never answered."""
    try:
        expired = _run(lambda services: services.matcher.expire_stale_assignments())
        return {"expired": expired}
    except Exception as exc:
        logger.error(f"Error expiring stale assignments: {exc}")
        raise self.retry(countdown=30 * (self.request.retries + 1))


@celery_app.task(bind=True, max_retries=3)
def retry_pending_refunds(self):
    """Re-attempt refunds the payment processor has not confirmed yet."""
    try:
        settled = _run(lambda services: services.coordinator.retry_pending_refunds(settings.OUTBOX_BATCH_SIZE))
        return {"settled": settled}
    except Exception as exc:
        logger.error(f"Error retrying pending refunds: {exc}")
        raise self.retry(countdown=60 * (self.request.retries + 1))
