"""Refund entity"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from ..commission import RefundSplit
from ..enums import RefundStatus
from ..exceptions import Conflict


@dataclass
class Refund:
    order_id: UUID
    amount_cents: int
    chef_refund_cents: int
    platform_refund_cents: int
    reason: str
    requested_by: str
    status: RefundStatus = RefundStatus.PENDING
    gateway_refund_id: Optional[str] = None
    failure_reason: Optional[str] = None
    attempts: int = 0
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None

    @classmethod
    def request(cls, order_id: UUID, split: RefundSplit, reason: str, requested_by: str) -> "Refund":
        return cls(
            order_id=order_id,
            amount_cents=split.refund_amount_cents,
            chef_refund_cents=split.chef_refund_cents,
            platform_refund_cents=split.platform_refund_cents,
            reason=reason,
            requested_by=requested_by,
        )

    def mark_succeeded(self, gateway_refund_id: str) -> None:
        if self.status != RefundStatus.PENDING:
            raise Conflict(f"Refund {self.id} is already {self.status.value}")
        self.status = RefundStatus.SUCCEEDED
        self.gateway_refund_id = gateway_refund_id
        self.failure_reason = None
        self.completed_at = datetime.utcnow()

    def record_failed_attempt(self, reason: str, give_up: bool = False) -> None:
        self.attempts += 1
        self.failure_reason = reason
        if give_up:
            self.status = RefundStatus.FAILED
            self.completed_at = datetime.utcnow()
