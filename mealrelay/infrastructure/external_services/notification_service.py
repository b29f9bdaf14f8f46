"""HTTP client for the notification collaborator (push/email/SMS fan-out)"""

import logging
from typing import Any, Dict
from uuid import UUID

import httpx

from ...core.config import settings
from ...domain.services.ports import NotificationService

logger = logging.getLogger(__name__)


class HttpNotificationService(NotificationService):

    def __init__(self, base_url: str = None, timeout: float = None):
        self.base_url = base_url or settings.NOTIFICATION_SERVICE_URL
        self.timeout = timeout or settings.EXTERNAL_CALL_TIMEOUT_SECONDS

    async def notify(self, user_id: UUID, event: str, payload: Dict[str, Any]) -> None:
        if not self.base_url:
            logger.debug(f"Notification service not configured; dropping {event} for {user_id}")
            return

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                f"{self.base_url.rstrip('/')}/notifications",
                json={"user_id": str(user_id), "event": event, "payload": payload},
            )
            response.raise_for_status()
