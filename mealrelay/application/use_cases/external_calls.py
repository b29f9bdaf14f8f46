"""Bounded calls to external collaborators"""

import asyncio
import logging
from typing import Awaitable, TypeVar

from ...domain.exceptions import DomainError, TransientFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def call_external(awaitable: Awaitable[T], timeout: float, action: str) -> T:
    """Await a collaborator call, turning timeouts and failures into TransientFailure.

    Never call this while a row lock is held.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except asyncio.TimeoutError as e:
        logger.warning(f"Timed out after {timeout}s {action}")
        raise TransientFailure(f"Timed out {action}", retry_after_seconds=int(timeout) or 1) from e
    except (DomainError, TransientFailure):
        raise
    except Exception as e:
        logger.warning(f"External call failed {action}: {e}")
        raise TransientFailure(f"External service failed {action}") from e
