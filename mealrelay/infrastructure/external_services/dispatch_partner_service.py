"""Downstream delivery partner that mirrors our driver reservations"""

import logging
from typing import Any, Dict

import httpx

from ...core.config import settings
from ...domain.services.ports import DispatchPartnerClient

logger = logging.getLogger(__name__)


class HttpDispatchPartnerClient(DispatchPartnerClient):

    def __init__(self, base_url: str = None, timeout: float = None):
        self.base_url = base_url or settings.DISPATCH_PARTNER_URL
        self.timeout = timeout or settings.EXTERNAL_CALL_TIMEOUT_SECONDS

    async def request_delivery(self, payload: Dict[str, Any]) -> None:
        if not self.base_url:
            logger.debug(f"No dispatch partner configured; skipping order {payload.get('order_id')}")
            return

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                f"{self.base_url.rstrip('/')}/dispatches",
                json=payload,
                headers={"Idempotency-Key": str(payload.get("assignment_id") or payload.get("order_id"))},
            )
            response.raise_for_status()
        logger.info(f"Dispatch partner accepted order {payload.get('order_id')}")
