"""Translate SQLAlchemy failures into domain errors"""

import logging
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ...domain.exceptions import Conflict, TransientFailure

logger = logging.getLogger(__name__)


@contextmanager
def translate_db_errors(action: str):
    try:
        yield
    except StaleDataError as e:
        raise Conflict("Order was modified by a concurrent request, please retry") from e
    except IntegrityError as e:
        logger.info(f"Integrity violation while {action}: {e.orig}")
        raise Conflict(f"Conflicting concurrent write while {action}") from e
    except OperationalError as e:
        # Lock timeouts, dropped connections, "database is locked"
        logger.warning(f"Database unavailable while {action}: {e.orig}")
        raise TransientFailure(f"Database temporarily unavailable while {action}") from e
