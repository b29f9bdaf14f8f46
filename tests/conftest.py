import os
from pathlib import Path

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["TESTING"] = "true"

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from mealrelay.application.use_cases.dispatch_matcher import DispatchMatcher
from mealrelay.application.use_cases.lifecycle_coordinator import LifecycleCoordinator
from mealrelay.application.use_cases.order_notifier import OrderNotifier
from mealrelay.core.config import settings
from mealrelay.db.models import Base
from mealrelay.infrastructure.repositories.unit_of_work_impl import UnitOfWorkImpl
import mealrelay.infrastructure.orm  # noqa: F401

from fakes import FakeDispatchPartner, FakeGeocoding, FakeNotificationService, FakePaymentGateway
from factories import Marketplace


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = str(Path(item.fspath))
        if "/domain/" in test_path:
            item.add_marker(pytest.mark.domain)
        elif "/application/" in test_path:
            item.add_marker(pytest.mark.application)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def session(session_factory):
    db = session_factory()
    yield db
    db.close()


@pytest.fixture()
def uow(session):
    return UnitOfWorkImpl(session)


@pytest.fixture()
def payments():
    return FakePaymentGateway()


@pytest.fixture()
def geocoding():
    return FakeGeocoding()


@pytest.fixture()
def notifications():
    return FakeNotificationService()


@pytest.fixture()
def partner():
    return FakeDispatchPartner()


@pytest.fixture()
def notifier(uow, notifications):
    return OrderNotifier(uow, notifications, timeout=1.0)


@pytest.fixture()
def coordinator(uow, payments, notifier):
    return LifecycleCoordinator(uow, payments, notifier, settings)


@pytest.fixture()
def matcher(uow, geocoding, notifier):
    return DispatchMatcher(uow, geocoding, notifier, settings)


@pytest.fixture()
def market(session, coordinator, matcher):
    return Marketplace(session, coordinator, matcher)
