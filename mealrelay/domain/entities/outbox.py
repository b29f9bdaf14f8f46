"""Outbox message entity"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from ..enums import OutboxStatus, OutboxTopic


@dataclass
class OutboxMessage:
    """Side effect written in the same transaction as the change causing it"""
    topic: OutboxTopic
    aggregate_id: UUID
    payload: Dict[str, Any]
    status: OutboxStatus = OutboxStatus.PENDING
    attempts: int = 0
    last_error: Optional[str] = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=datetime.utcnow)
    next_attempt_at: datetime = field(default_factory=datetime.utcnow)
    delivered_at: Optional[datetime] = None

    def mark_delivered(self) -> None:
        self.status = OutboxStatus.DELIVERED
        self.delivered_at = datetime.utcnow()
        self.last_error = None

    def schedule_retry(self, error: str, base_seconds: int, max_attempts: int) -> None:
        """Exponential backoff; gives up after ``max_attempts``"""
        self.attempts += 1
        self.last_error = error[:1000]
        if self.attempts >= max_attempts:
            self.status = OutboxStatus.FAILED
            return
        self.next_attempt_at = datetime.utcnow() + timedelta(seconds=base_seconds * 2 ** (self.attempts - 1))
