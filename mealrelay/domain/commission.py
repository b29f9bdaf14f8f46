"""Commission arithmetic: how an order's money is split.

Every percentage is rounded half-up to a whole cent on its own before it is
summed, in both ``calculate`` and ``calculate_refund``.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from .entities.ledger import LedgerEntry
from .enums import LedgerActorType, LedgerEntryKind
from .exceptions import BadRequest
from .value_objects.money import Money, round_half_up


@dataclass(frozen=True)
class CommissionPolicy:
    platform_fee_rate: Decimal
    tax_rate: Decimal
    default_delivery_fee_cents: int

    @classmethod
    def from_settings(cls, settings) -> "CommissionPolicy":
        return cls(
            platform_fee_rate=Decimal(str(settings.PLATFORM_FEE_RATE)),
            tax_rate=Decimal(str(settings.TAX_RATE)),
            default_delivery_fee_cents=settings.DEFAULT_DELIVERY_FEE_CENTS,
        )


DEFAULT_POLICY = CommissionPolicy(
    platform_fee_rate=Decimal("0.15"),
    tax_rate=Decimal("0.08"),
    default_delivery_fee_cents=500,
)


@dataclass(frozen=True)
class CommissionBreakdown:
    subtotal_cents: int
    platform_fee_cents: int
    chef_earnings_cents: int
    tax_cents: int
    delivery_fee_cents: int
    total_cents: int


@dataclass(frozen=True)
class RefundSplit:
    refund_amount_cents: int
    chef_refund_cents: int
    platform_refund_cents: int


class CommissionEngine:
    """Pure money math over a commission policy; writes nothing"""

    def __init__(self, policy: CommissionPolicy = DEFAULT_POLICY):
        self.policy = policy

    def calculate(self, subtotal_cents: int, delivery_fee_cents: Optional[int] = None) -> CommissionBreakdown:
        if subtotal_cents < 0:
            raise BadRequest("Subtotal cannot be negative")
        if delivery_fee_cents is None:
            delivery_fee_cents = self.policy.default_delivery_fee_cents
        if delivery_fee_cents < 0:
            raise BadRequest("Delivery fee cannot be negative")

        platform_fee_cents = round_half_up(Decimal(subtotal_cents) * self.policy.platform_fee_rate)
        tax_cents = round_half_up(Decimal(subtotal_cents) * self.policy.tax_rate)

        return CommissionBreakdown(
            subtotal_cents=subtotal_cents,
            platform_fee_cents=platform_fee_cents,
            chef_earnings_cents=subtotal_cents - platform_fee_cents,
            tax_cents=tax_cents,
            delivery_fee_cents=delivery_fee_cents,
            total_cents=subtotal_cents + tax_cents + delivery_fee_cents,
        )

    def calculate_refund(self, original: CommissionBreakdown, refund_amount_cents: Optional[int] = None) -> RefundSplit:
        """Split a refund proportionally over the order's persisted breakdown"""
        if refund_amount_cents is None:
            refund_amount_cents = original.total_cents
        if refund_amount_cents <= 0:
            raise BadRequest("Refund amount must be positive")
        if refund_amount_cents > original.total_cents:
            raise BadRequest("Refund amount exceeds the order total")
        if original.total_cents == 0:
            return RefundSplit(refund_amount_cents, 0, 0)

        fraction = Decimal(refund_amount_cents) / Decimal(original.total_cents)
        return RefundSplit(
            refund_amount_cents=refund_amount_cents,
            chef_refund_cents=round_half_up(Decimal(original.chef_earnings_cents) * fraction),
            platform_refund_cents=round_half_up(Decimal(original.platform_fee_cents) * fraction),
        )

    def calculate_refund_for_total(self, original_total_cents: int, refund_amount_cents: Optional[int] = None) -> RefundSplit:
        """Quote a refund when only the total is known.

        Derives the subtotal by inverting the current policy, so it is an
        estimate; orders always refund against their stored breakdown.
        """
        divisor = Decimal(1) + self.policy.tax_rate
        subtotal = round_half_up(
            Decimal(max(original_total_cents - self.policy.default_delivery_fee_cents, 0)) / divisor
        )
        estimate = self.calculate(subtotal)
        estimate = CommissionBreakdown(
            subtotal_cents=estimate.subtotal_cents,
            platform_fee_cents=estimate.platform_fee_cents,
            chef_earnings_cents=estimate.chef_earnings_cents,
            tax_cents=estimate.tax_cents,
            delivery_fee_cents=original_total_cents - estimate.subtotal_cents - estimate.tax_cents,
            total_cents=original_total_cents,
        )
        return self.calculate_refund(estimate, refund_amount_cents)

    # Ledger entries --------------------------------------------------------

    @staticmethod
    def chef_earning_entry(order_id: UUID, chef_id: UUID, breakdown: CommissionBreakdown) -> LedgerEntry:
        return LedgerEntry(
            order_id=order_id,
            actor_type=LedgerActorType.CHEF,
            actor_id=chef_id,
            kind=LedgerEntryKind.ORDER_EARNING,
            amount_cents=breakdown.chef_earnings_cents,
        )

    @staticmethod
    def platform_fee_entry(order_id: UUID, breakdown: CommissionBreakdown) -> LedgerEntry:
        return LedgerEntry(
            order_id=order_id,
            actor_type=LedgerActorType.PLATFORM,
            kind=LedgerEntryKind.PLATFORM_FEE,
            amount_cents=breakdown.platform_fee_cents,
        )

    @staticmethod
    def driver_delivery_entry(order_id: UUID, driver_id: UUID, delivery_fee_cents: int) -> LedgerEntry:
        return LedgerEntry(
            order_id=order_id,
            actor_type=LedgerActorType.DRIVER,
            actor_id=driver_id,
            kind=LedgerEntryKind.DELIVERY_EARNING,
            amount_cents=delivery_fee_cents,
        )

    @staticmethod
    def reversal_entries(order_id: UUID, chef_id: UUID, split: RefundSplit, reason: str = None) -> List[LedgerEntry]:
        entries = []
        if split.chef_refund_cents:
            entries.append(LedgerEntry(
                order_id=order_id,
                actor_type=LedgerActorType.CHEF,
                actor_id=chef_id,
                kind=LedgerEntryKind.ORDER_EARNING_REVERSAL,
                amount_cents=-split.chef_refund_cents,
                description=reason,
            ))
        if split.platform_refund_cents:
            entries.append(LedgerEntry(
                order_id=order_id,
                actor_type=LedgerActorType.PLATFORM,
                kind=LedgerEntryKind.PLATFORM_FEE_REVERSAL,
                amount_cents=-split.platform_refund_cents,
                description=reason,
            ))
        return entries


def format_cents(cents: int) -> str:
    return str(Money(cents))
